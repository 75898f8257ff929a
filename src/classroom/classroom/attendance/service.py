from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Mapping, Optional, Sequence, Union

from ..classes.service import ClassRegistry
from ..common.datetime_utils import now_local, parse_iso_date
from ..common.validators import optional_text, require_max_length, require_non_empty, require_positive_id
from ..core.constants import ATTENDANCE_NOTE_MAX_LENGTH, SESSION_TIME_MAX_LENGTH
from ..core.enums import AttendanceStatus, Role
from ..core.events import EventSink, NullEventSink
from ..core.exceptions import (
    AlreadyFinalError,
    AuthorizationError,
    ClassInactiveError,
    DuplicateSessionError,
    EmptyRosterError,
    NotFoundError,
    NotInRosterError,
    RecordFinalizedError,
    ValidationError,
)
from ..core.logging import get_logger
from .model import AttendanceRecord, StudentSessionRow
from .repository import AttendanceRepository

log = get_logger(__name__)

DateLike = Union[date, str]


def coerce_status(value) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"status must be one of: {allowed}", field="status")


def coerce_date(value: DateLike, field_name: str = "session_date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        raise ValidationError(f"{field_name} is required", field=field_name)
    return parse_iso_date(value, field_name)


def validate_session_time(value: Optional[str]) -> str:
    value = require_non_empty(value, "session_time")
    return require_max_length(value, "session_time", SESSION_TIME_MAX_LENGTH)


def _check_range(start: Optional[date], end: Optional[date]) -> None:
    if start and end and start > end:
        raise ValidationError("start_date must be on or before end_date", field="start_date")


class AttendanceSessionStore:
    """Use case: attendance sessions from draft to final.

    A record's snapshot is fixed when the draft is created; later roster
    changes never reach it. Entry writes are conditional on the record still
    being draft in storage, and ``submit`` is a single draft -> final swap, so
    a mark that loses against a submit fails with RecordFinalizedError.
    Counts are stored by the repository in the same transaction as the
    entries they tally.
    """

    def __init__(
        self,
        records: AttendanceRepository,
        registry: ClassRegistry,
        *,
        events: Optional[EventSink] = None,
        require_non_empty_roster: bool = True,
        clock: Callable[[], datetime] = now_local,
    ):
        self._records = records
        self._registry = registry
        self._events = events or NullEventSink()
        self._require_non_empty = bool(require_non_empty_roster)
        self._clock = clock

    # -------- Queries --------
    def get(self, record_id: int) -> AttendanceRecord:
        record = self._records.get(record_id=require_positive_id(record_id, "record_id"))
        if not record:
            raise NotFoundError("Attendance record not found")
        return record

    def list_for_class(
        self,
        class_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        _check_range(start, end)
        self._registry.get(class_id)
        return self._records.list_for_class(class_id=int(class_id), start=start, end=end)

    def get_by_date(self, class_id: int, session_date: DateLike) -> Sequence[AttendanceRecord]:
        """All sessions of a class on one day."""
        day = coerce_date(session_date)
        return self.list_for_class(class_id, start=day, end=day)

    def list_for_student(
        self,
        class_id: int,
        student_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[StudentSessionRow]:
        """Sessions whose snapshot includes the student."""
        student_id = require_positive_id(student_id, "student_id")
        rows: list[StudentSessionRow] = []
        for r in self.list_for_class(class_id, start=start, end=end):
            if student_id not in r.snapshot:
                continue
            entry = r.entries.get(student_id)
            rows.append(
                StudentSessionRow(
                    record_id=r.record_id,
                    session_date=r.session_date,
                    session_time=r.session_time,
                    record_status=r.status,
                    status=entry.status if entry else None,
                    note=entry.note if entry else None,
                )
            )
        return rows

    # -------- Lifecycle --------
    def create_draft(
        self,
        class_id: int,
        session_date: DateLike,
        session_time: str,
        *,
        marked_by: Optional[int] = None,
    ) -> AttendanceRecord:
        class_id = require_positive_id(class_id, "class_id")
        day = coerce_date(session_date)
        session_time = validate_session_time(session_time)

        klass = self._registry.get(class_id)
        if not klass.is_active:
            raise ClassInactiveError("Cannot take attendance for an inactive class")

        snapshot = self._registry.get_roster_snapshot(class_id)
        if not snapshot and self._require_non_empty:
            raise EmptyRosterError("No students enrolled in this class")

        if self._records.find_session(class_id=class_id, session_date=day, session_time=session_time):
            raise DuplicateSessionError(
                "Attendance already exists for this date and session time",
                field="session_time",
            )

        record_id = self._records.create_record(
            class_id=class_id,
            session_date=day,
            session_time=session_time,
            snapshot=snapshot,
            marked_by=int(marked_by) if marked_by else None,
        )
        if record_id is None:
            raise DuplicateSessionError(
                "Attendance already exists for this date and session time",
                field="session_time",
            )

        log.info("attendance_draft_created", record_id=record_id, class_id=class_id, students=len(snapshot))
        self._events.emit("attendance.created", record_id=record_id, class_id=class_id)
        return self.get(record_id)

    def mark_status(
        self,
        record_id: int,
        student_id: int,
        status,
        *,
        note: Optional[str] = None,
    ) -> AttendanceRecord:
        student_id = require_positive_id(student_id, "student_id")
        return self.mark_many(record_id, {student_id: (status, note)})

    def mark_many(
        self,
        record_id: int,
        marks: Mapping[int, object],
    ) -> AttendanceRecord:
        """Mark several students at once.

        ``marks`` maps student id to a status, or to a ``(status, note)``
        pair. Every id is validated before anything is written.
        """
        record = self.get(record_id)
        if not marks:
            raise ValidationError("At least one attendance mark is required", field="marks")

        rows: list[tuple[int, AttendanceStatus, Optional[str]]] = []
        for raw_id, value in marks.items():
            sid = require_positive_id(raw_id, "student_id")
            status, note = value if isinstance(value, tuple) else (value, None)
            rows.append((sid, coerce_status(status), optional_text(note, "note", ATTENDANCE_NOTE_MAX_LENGTH)))
        if len({sid for sid, _, _ in rows}) != len(rows):
            raise ValidationError("Each student can only be marked once per request", field="marks")

        if record.is_final:
            raise RecordFinalizedError("Attendance has been submitted and can no longer be changed")
        outsiders = sorted(sid for sid, _, _ in rows if sid not in record.snapshot)
        if outsiders:
            raise NotInRosterError(
                f"Students not in this session's roster: {', '.join(map(str, outsiders))}",
                field="student_id",
            )

        if not self._records.write_entries(record_id=record.record_id, marks=rows, marked_at=self._clock()):
            raise RecordFinalizedError("Attendance has been submitted and can no longer be changed")

        log.info("attendance_marked", record_id=record.record_id, marks=len(rows))
        return self.get(record.record_id)

    def update_session(
        self,
        record_id: int,
        *,
        session_date: Optional[DateLike] = None,
        session_time: Optional[str] = None,
    ) -> AttendanceRecord:
        record = self.get(record_id)
        if record.is_final:
            raise RecordFinalizedError("Attendance has been submitted and can no longer be changed")

        day = coerce_date(session_date) if session_date is not None else record.session_date
        label = validate_session_time(session_time) if session_time is not None else record.session_time
        if (day, label) == (record.session_date, record.session_time):
            return record

        clash = self._records.find_session(class_id=record.class_id, session_date=day, session_time=label)
        if clash and clash.record_id != record.record_id:
            raise DuplicateSessionError(
                "Attendance already exists for this date and session time",
                field="session_time",
            )

        if not self._records.update_session(record_id=record.record_id, session_date=day, session_time=label):
            raise RecordFinalizedError("Attendance has been submitted and can no longer be changed")

        log.info("attendance_session_updated", record_id=record.record_id, session_date=day.isoformat(), session_time=label)
        return self.get(record.record_id)

    def submit(self, record_id: int) -> AttendanceRecord:
        """Freeze the record. A second submit raises AlreadyFinalError."""
        record = self.get(record_id)
        if record.is_final:
            raise AlreadyFinalError("Attendance has already been submitted")

        if not self._records.finalize(record_id=record.record_id, finalized_at=self._clock()):
            raise AlreadyFinalError("Attendance has already been submitted")
        final = self.get(record.record_id)

        log.info("attendance_submitted", record_id=record.record_id, class_id=record.class_id, **final.counts.to_dict())
        self._events.emit("attendance.submitted", record_id=record.record_id, class_id=record.class_id)
        return final

    def delete(self, record_id: int, *, current_role=None) -> None:
        """Destructive: removes the record whatever its status."""
        role = current_role.value if isinstance(current_role, Role) else current_role
        if role not in (Role.ADMIN.value, Role.TEACHER.value):
            raise AuthorizationError("Only teachers or administrators can delete attendance")

        record = self.get(record_id)
        if not self._records.delete(record_id=record.record_id):
            raise NotFoundError("Attendance record not found")

        log.info("attendance_deleted", record_id=record.record_id, class_id=record.class_id, status=record.status.value)
        self._events.emit("attendance.deleted", record_id=record.record_id, class_id=record.class_id)
