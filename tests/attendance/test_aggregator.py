from datetime import datetime

from classroom.attendance.aggregator import aggregate, attendance_rate, combine
from classroom.attendance.model import AttendanceCounts, AttendanceEntry
from classroom.core.enums import AttendanceStatus


def test_aggregate_counts_each_status_and_unmarked_remainder():
    entries = [
        AttendanceEntry(student_id=1, status=AttendanceStatus.PRESENT),
        AttendanceEntry(student_id=2, status=AttendanceStatus.PRESENT),
        AttendanceEntry(student_id=3, status=AttendanceStatus.LATE),
        AttendanceEntry(student_id=4, status=AttendanceStatus.EXCUSED, marked_at=datetime(2024, 1, 1, 9, 0)),
    ]

    counts = aggregate(entries, total=6)

    assert counts == AttendanceCounts(present=2, absent=0, late=1, excused=1, total=6)
    assert counts.marked == 4
    assert counts.unmarked == 2


def test_aggregate_accepts_raw_statuses_and_skips_none():
    counts = aggregate([AttendanceStatus.ABSENT, None, "late"], total=3)

    assert (counts.absent, counts.late, counts.unmarked) == (1, 1, 1)


def test_aggregate_of_nothing_is_all_unmarked():
    counts = aggregate([], total=5)

    assert counts.marked == 0
    assert counts.unmarked == 5


def test_combine_and_rate():
    total = combine(
        [
            AttendanceCounts(present=2, absent=1, late=0, excused=0, total=3),
            AttendanceCounts(present=0, absent=1, late=1, excused=1, total=3),
        ]
    )

    assert total == AttendanceCounts(present=2, absent=2, late=1, excused=1, total=6)
    assert attendance_rate(total) == 50.0
    assert attendance_rate(AttendanceCounts(present=1, total=3), slots=3) == 33.33
    assert attendance_rate(AttendanceCounts()) == 0.0
