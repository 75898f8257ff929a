from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Mapping, Optional

from ..core.enums import AttendanceStatus, RecordStatus


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else None


@dataclass(frozen=True)
class AttendanceEntry:
    """One snapshot member's mark inside a record."""

    student_id: int
    status: AttendanceStatus
    note: Optional[str] = None
    marked_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "status": self.status.value,
            "note": self.note or "",
            "marked_at": _ts(self.marked_at),
        }


@dataclass(frozen=True)
class AttendanceCounts:
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    total: int = 0

    @property
    def marked(self) -> int:
        return self.present + self.absent + self.late + self.excused

    @property
    def unmarked(self) -> int:
        return self.total - self.marked

    def to_dict(self) -> dict:
        return {
            "present": self.present,
            "absent": self.absent,
            "late": self.late,
            "excused": self.excused,
            "total": self.total,
            "unmarked": self.unmarked,
        }


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one dated session of a class.

    ``snapshot`` is the roster at creation time, sorted. ``entries`` only
    holds snapshot members that have been marked.
    """

    record_id: int
    class_id: int
    session_date: date
    session_time: str
    status: RecordStatus
    snapshot: tuple[int, ...]
    entries: Mapping[int, AttendanceEntry] = field(default_factory=dict)
    counts: AttendanceCounts = field(default_factory=AttendanceCounts)
    marked_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None

    @property
    def is_final(self) -> bool:
        return self.status == RecordStatus.FINAL

    def status_of(self, student_id: int) -> Optional[AttendanceStatus]:
        entry = self.entries.get(student_id)
        return entry.status if entry else None

    def to_dict(self, *, include_entries: bool = True) -> dict:
        out = {
            "record_id": self.record_id,
            "class_id": self.class_id,
            "session_date": self.session_date.strftime("%Y-%m-%d"),
            "session_time": self.session_time,
            "status": self.status.value,
            "snapshot": list(self.snapshot),
            "counts": self.counts.to_dict(),
            "marked_by": self.marked_by,
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
            "finalized_at": _ts(self.finalized_at),
        }
        if include_entries:
            out["entries"] = [
                self.entries[sid].to_dict() if sid in self.entries else {"student_id": sid, "status": None}
                for sid in self.snapshot
            ]
        return out


@dataclass(frozen=True)
class StudentSessionRow:
    """Read-model: one student's line in one session."""

    record_id: int
    session_date: date
    session_time: str
    record_status: RecordStatus
    status: Optional[AttendanceStatus]
    note: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "session_date": self.session_date.strftime("%Y-%m-%d"),
            "session_time": self.session_time,
            "record_status": self.record_status.value,
            "status": self.status.value if self.status else None,
            "note": self.note or "",
        }


@dataclass(frozen=True)
class ClassAttendanceStats:
    class_id: int
    total_sessions: int
    roster_size: int
    counts: AttendanceCounts
    total_attendance_slots: int
    average_attendance: float
    start: Optional[date] = None
    end: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "total_sessions": self.total_sessions,
            "total_students": self.roster_size,
            "present_count": self.counts.present,
            "absent_count": self.counts.absent,
            "late_count": self.counts.late,
            "excused_count": self.counts.excused,
            "total_attendance_slots": self.total_attendance_slots,
            "average_attendance": self.average_attendance,
            "date_range": {
                "start_date": self.start.isoformat() if self.start else None,
                "end_date": self.end.isoformat() if self.end else None,
            },
        }


@dataclass(frozen=True)
class StudentAttendanceStats:
    class_id: int
    student_id: int
    total_sessions: int
    counts: AttendanceCounts
    attendance_percentage: float
    start: Optional[date] = None
    end: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "student_id": self.student_id,
            "total_sessions": self.total_sessions,
            "present_count": self.counts.present,
            "absent_count": self.counts.absent,
            "late_count": self.counts.late,
            "excused_count": self.counts.excused,
            "attendance_percentage": self.attendance_percentage,
            "date_range": {
                "start_date": self.start.isoformat() if self.start else None,
                "end_date": self.end.isoformat() if self.end else None,
            },
        }
