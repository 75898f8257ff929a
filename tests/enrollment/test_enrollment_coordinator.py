from __future__ import annotations

import threading
from datetime import date

import pytest

from classroom.classes.model import ClassPatch
from classroom.core.enums import AttendanceStatus, Visibility
from classroom.core.exceptions import (
    CapacityExceededError,
    ClassInactiveError,
    ConflictError,
    DuplicateEnrollmentError,
    NotFoundError,
    ValidationError,
    VisibilityViolationError,
)
from classroom.enrollment.service import EnrollmentCoordinator

from fakes import InMemoryClasses


def test_open_join_without_capacity_always_succeeds(container, make_class):
    record = make_class()

    for sid in range(1, 11):
        result = container.enrollment_coordinator.join_open(record.class_id, sid)
        assert result.roster_size == sid

    assert container.class_registry.get(record.class_id).roster_size == 10


def test_join_open_rules(container, make_class):
    open_class = make_class("Open", capacity=1)
    hidden = make_class("Hidden", visibility=Visibility.UNLISTED)
    ask = make_class("Ask", visibility=Visibility.REQUEST_TO_JOIN)
    enrollment = container.enrollment_coordinator

    enrollment.join_open(open_class.class_id, 1)

    with pytest.raises(DuplicateEnrollmentError):
        enrollment.join_open(open_class.class_id, 1)
    with pytest.raises(CapacityExceededError):
        enrollment.join_open(open_class.class_id, 2)
    with pytest.raises(VisibilityViolationError):
        enrollment.join_open(hidden.class_id, 2)
    with pytest.raises(VisibilityViolationError):
        enrollment.join_open(ask.class_id, 2)


def test_join_open_requires_batch_membership_and_active_class(container, make_class):
    record = make_class()

    with pytest.raises(VisibilityViolationError):
        container.enrollment_coordinator.join_open(record.class_id, 101)

    container.class_registry.update(record.class_id, ClassPatch(is_active=False))
    with pytest.raises(ClassInactiveError):
        container.enrollment_coordinator.join_open(record.class_id, 1)


def test_add_students_is_all_or_nothing(container, make_class):
    record = make_class(capacity=3)
    enrollment = container.enrollment_coordinator
    enrollment.add_students(record.class_id, [1])

    with pytest.raises(CapacityExceededError) as exc:
        enrollment.add_students(record.class_id, [2, 3, 4])

    assert exc.value.requested == 3
    assert exc.value.available == 2
    assert container.class_registry.get(record.class_id).roster == frozenset({1})


def test_add_students_skips_enrolled_and_repeated_ids(container, make_class):
    record = make_class(capacity=3)
    enrollment = container.enrollment_coordinator
    enrollment.add_students(record.class_id, [1, 2])

    result = enrollment.add_students(record.class_id, [2, 3, 3, 1])

    assert result.added == (3,)
    assert result.already_enrolled == (2, 1)
    assert result.roster_size == 3
    assert result.available_spots == 0


def test_add_students_validates_input(container, make_class):
    record = make_class()

    with pytest.raises(ValidationError) as exc:
        container.enrollment_coordinator.add_students(record.class_id, [])
    assert exc.value.field == "student_ids"

    with pytest.raises(ValidationError):
        container.enrollment_coordinator.add_students(record.class_id, [1, 101])


def test_remove_non_member_is_not_found_and_changes_nothing(container, make_class):
    record = make_class()
    enrollment = container.enrollment_coordinator
    enrollment.add_students(record.class_id, [1, 2])
    enrollment.remove_student(record.class_id, 1)

    with pytest.raises(NotFoundError):
        enrollment.remove_student(record.class_id, 1)

    assert container.class_registry.get(record.class_id).roster == frozenset({2})


def test_removal_does_not_touch_finalized_attendance(container, make_class):
    record = make_class()
    container.enrollment_coordinator.add_students(record.class_id, [1, 2, 3])
    store = container.attendance_store
    draft = store.create_draft(record.class_id, date(2024, 3, 1), "Morning")
    store.mark_many(draft.record_id, {1: AttendanceStatus.PRESENT, 2: AttendanceStatus.ABSENT, 3: AttendanceStatus.LATE})
    final = store.submit(draft.record_id)

    container.enrollment_coordinator.leave(record.class_id, 2)

    after = store.get(draft.record_id)
    assert after.snapshot == final.snapshot == (1, 2, 3)
    assert after.entries == final.entries
    assert after.counts == final.counts


def test_concurrent_joins_never_exceed_capacity(container, make_class):
    record = make_class(capacity=5)
    enrollment = container.enrollment_coordinator
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()
    start = threading.Barrier(20)

    def worker(sid: int) -> None:
        start.wait()
        try:
            enrollment.join_open(record.class_id, sid)
            result = "ok"
        except CapacityExceededError:
            result = "full"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker, args=(sid,)) for sid in range(1, 21)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 5
    assert outcomes.count("full") == 15
    assert container.class_registry.get(record.class_id).roster_size == 5


def test_writers_in_separate_coordinators_are_caught_by_version_check(container, make_class):
    # Two coordinators without a shared lock behave like two processes.
    record = make_class(capacity=4)
    repo = container.classes_repo
    first = EnrollmentCoordinator(repo)
    second = EnrollmentCoordinator(repo)
    errors: list[Exception] = []
    start = threading.Barrier(2)

    def run(coordinator, ids):
        start.wait()
        try:
            coordinator.add_students(record.class_id, ids)
        except (CapacityExceededError, ConflictError) as e:
            errors.append(e)

    threads = [
        threading.Thread(target=run, args=(first, [1, 2, 3])),
        threading.Thread(target=run, args=(second, [4, 5, 6])),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    roster = container.class_registry.get(record.class_id).roster
    assert len(roster) <= 4
    assert len(errors) == 1
    assert roster in (frozenset({1, 2, 3}), frozenset({4, 5, 6}))


class AlwaysStaleClasses(InMemoryClasses):
    def write_roster(self, *, class_id, add=(), remove=(), expected_version):
        return False


def test_exhausted_cas_retries_raise_conflict():
    repo = AlwaysStaleClasses()
    class_id = repo.create(
        name="Race", description=None, batch_id=10, teacher_id=None, visibility=Visibility.OPEN, capacity=None
    )
    coordinator = EnrollmentCoordinator(repo, cas_retries=2)

    with pytest.raises(ConflictError):
        coordinator.join_open(class_id, 1)

    assert repo.get_by_id(class_id).roster == frozenset()
