from __future__ import annotations

from datetime import date
from typing import Optional

from ..classes.service import ClassRegistry
from ..common.validators import require_positive_id
from ..core.exceptions import NotFoundError, ValidationError
from .aggregator import aggregate, attendance_rate, combine
from .model import ClassAttendanceStats, StudentAttendanceStats
from .repository import AttendanceRepository


class AttendanceReportService:
    """Read-only statistics over a class's attendance records."""

    def __init__(self, attendance: AttendanceRepository, registry: ClassRegistry):
        self._attendance = attendance
        self._registry = registry

    def _records(self, class_id: int, start: Optional[date], end: Optional[date]):
        if start and end and start > end:
            raise ValidationError("start_date must be on or before end_date", field="start_date")
        return self._attendance.list_for_class(class_id=class_id, start=start, end=end)

    def class_stats(
        self,
        class_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> ClassAttendanceStats:
        klass = self._registry.get(require_positive_id(class_id, "class_id"))
        records = self._records(klass.class_id, start, end)

        counts = combine(aggregate(r.entries.values(), len(r.snapshot)) for r in records)
        return ClassAttendanceStats(
            class_id=klass.class_id,
            total_sessions=len(records),
            roster_size=klass.roster_size,
            counts=counts,
            total_attendance_slots=counts.marked,
            average_attendance=attendance_rate(counts),
            start=start,
            end=end,
        )

    def student_stats(
        self,
        class_id: int,
        student_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> StudentAttendanceStats:
        """Counts only sessions in which the student was marked."""
        klass = self._registry.get(require_positive_id(class_id, "class_id"))
        student_id = require_positive_id(student_id, "student_id")

        records = self._records(klass.class_id, start, end)
        if student_id not in klass.roster and not any(student_id in r.snapshot for r in records):
            raise NotFoundError("Student is not enrolled in this class")

        marks = [r.status_of(student_id) for r in records]
        marks = [m for m in marks if m is not None]
        counts = aggregate(marks, len(marks))
        return StudentAttendanceStats(
            class_id=klass.class_id,
            student_id=student_id,
            total_sessions=len(marks),
            counts=counts,
            attendance_percentage=attendance_rate(counts),
            start=start,
            end=end,
        )
