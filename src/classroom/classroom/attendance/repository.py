from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def create_record(
        self,
        *,
        class_id: int,
        session_date: date,
        session_time: str,
        snapshot: Sequence[int],
        marked_by: Optional[int] = None,
    ) -> Optional[int]:
        """Insert a draft record with one unmarked entry per snapshot member.

        Returns None when a record for (class, date, time label) exists.
        """

        raise NotImplementedError

    def get(self, *, record_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def find_session(self, *, class_id: int, session_date: date, session_time: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_class(
        self,
        *,
        class_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        """Newest session first."""

        raise NotImplementedError

    def write_entries(
        self,
        *,
        record_id: int,
        marks: Sequence[tuple[int, AttendanceStatus, Optional[str]]],
        marked_at: datetime,
    ) -> bool:
        """Write (student_id, status, note) marks only while the record is draft.

        All marks are written or none, and the record counts are recomputed
        in the same transaction. Returns False when the record is no longer
        draft (or gone).
        """

        raise NotImplementedError

    def finalize(self, *, record_id: int, finalized_at: datetime) -> bool:
        """Compare-and-swap draft -> final."""

        raise NotImplementedError

    def update_session(self, *, record_id: int, session_date: date, session_time: str) -> bool:
        """Only while draft. Raises DuplicateSessionError on a clash with another record."""

        raise NotImplementedError

    def delete(self, *, record_id: int) -> bool:
        raise NotImplementedError

    def delete_for_class(self, *, class_id: int) -> int:
        raise NotImplementedError
