from __future__ import annotations

from datetime import date

import pytest

from classroom.core.enums import AttendanceStatus
from classroom.core.exceptions import NotFoundError

P, A, L, E = AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.LATE, AttendanceStatus.EXCUSED


@pytest.fixture
def class_with_history(container, make_class):
    record = make_class()
    container.enrollment_coordinator.add_students(record.class_id, [1, 2, 3])
    store = container.attendance_store

    first = store.create_draft(record.class_id, date(2024, 3, 1), "Morning")
    store.mark_many(first.record_id, {1: P, 2: A, 3: L})
    store.submit(first.record_id)

    second = store.create_draft(record.class_id, date(2024, 3, 8), "Morning")
    store.mark_many(second.record_id, {1: P, 2: E})
    return record


def test_class_stats_sum_marked_slots(container, class_with_history):
    stats = container.attendance_report_service.class_stats(class_with_history.class_id)

    assert stats.total_sessions == 2
    assert stats.roster_size == 3
    assert (stats.counts.present, stats.counts.absent, stats.counts.late, stats.counts.excused) == (2, 1, 1, 1)
    assert stats.total_attendance_slots == 5
    assert stats.average_attendance == 60.0
    assert stats.to_dict()["date_range"] == {"start_date": None, "end_date": None}


def test_class_stats_with_date_range(container, class_with_history):
    stats = container.attendance_report_service.class_stats(
        class_with_history.class_id, start=date(2024, 3, 2), end=date(2024, 3, 31)
    )

    assert stats.total_sessions == 1
    assert stats.total_attendance_slots == 2
    assert stats.average_attendance == 50.0


def test_student_stats_only_count_marked_sessions(container, class_with_history):
    reports = container.attendance_report_service

    first = reports.student_stats(class_with_history.class_id, 1)
    third = reports.student_stats(class_with_history.class_id, 3)

    assert first.total_sessions == 2
    assert first.attendance_percentage == 100.0
    assert third.total_sessions == 1
    assert third.counts.late == 1
    assert third.attendance_percentage == 100.0


def test_student_stats_survive_leaving_the_class(container, class_with_history):
    container.enrollment_coordinator.leave(class_with_history.class_id, 2)

    stats = container.attendance_report_service.student_stats(class_with_history.class_id, 2)

    assert stats.total_sessions == 2
    assert stats.attendance_percentage == 0.0


def test_student_stats_unknown_student(container, class_with_history):
    with pytest.raises(NotFoundError):
        container.attendance_report_service.student_stats(class_with_history.class_id, 19)
