from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import Visibility
from .model import ClassRecord


class ClassRepository(Protocol):
    """Storage for class records and their rosters.

    Roster writes are compare-and-swap on ``version``: they succeed only if the
    stored version still equals ``expected_version`` and then bump it.
    """

    def create(
        self,
        *,
        name: str,
        description: Optional[str],
        batch_id: int,
        teacher_id: Optional[int],
        visibility: Visibility,
        capacity: Optional[int],
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, class_id: int) -> Optional[ClassRecord]:
        raise NotImplementedError

    def find_by_batch_and_name(self, *, batch_id: int, name: str) -> Optional[ClassRecord]:
        """Active class with this exact name in the batch."""

        raise NotImplementedError

    def list_by_batch(self, *, batch_id: int, include_inactive: bool = False) -> Sequence[ClassRecord]:
        raise NotImplementedError

    def list_by_batches(self, *, batch_ids: Iterable[int]) -> Sequence[ClassRecord]:
        """Active classes of any of the batches."""

        raise NotImplementedError

    def list_by_teacher(self, *, teacher_id: int) -> Sequence[ClassRecord]:
        raise NotImplementedError

    def list_for_student(self, *, student_id: int) -> Sequence[ClassRecord]:
        """Classes whose roster contains the student."""

        raise NotImplementedError

    def update_fields(self, *, class_id: int, fields: dict, expected_version: Optional[int] = None) -> bool:
        """Update scalar columns; with ``expected_version`` the write is conditional."""

        raise NotImplementedError

    def write_roster(
        self,
        *,
        class_id: int,
        add: Sequence[int] = (),
        remove: Sequence[int] = (),
        expected_version: int,
    ) -> bool:
        raise NotImplementedError

    def delete(self, *, class_id: int) -> bool:
        raise NotImplementedError
