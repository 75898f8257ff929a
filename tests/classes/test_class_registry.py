from __future__ import annotations

from datetime import date

import pytest

from classroom.classes.model import ClassPatch, NewClass
from classroom.core.enums import Role, Visibility
from classroom.core.exceptions import (
    AuthorizationError,
    DuplicateClassError,
    InvalidCapacityError,
    NotFoundError,
    ValidationError,
)

from conftest import BATCH_ID, OTHER_BATCH_ID


def test_create_returns_empty_active_class(container, events):
    record = container.class_registry.create(
        NewClass(name="  Openings  ", batch_id=BATCH_ID, description="Intro", capacity=5, teacher_id=900)
    )

    assert record.name == "Openings"
    assert record.roster == frozenset()
    assert record.is_active is True
    assert record.visibility == Visibility.OPEN
    assert record.available_spots == 5
    assert "class.created" in events.names()


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"name": ""}, "name"),
        ({"name": "x" * 101}, "name"),
        ({"description": "d" * 501}, "description"),
        ({"capacity": 0}, "capacity"),
        ({"capacity": 1001}, "capacity"),
        ({"visibility": "secret"}, "visibility"),
    ],
)
def test_create_rejects_invalid_input_with_field(container, kwargs, field):
    fields = {"name": "Endgames", "batch_id": BATCH_ID}
    fields.update(kwargs)

    with pytest.raises(ValidationError) as exc:
        container.class_registry.create(NewClass(**fields))

    assert exc.value.field == field


def test_create_rejects_unknown_batch(container):
    with pytest.raises(NotFoundError):
        container.class_registry.create(NewClass(name="Tactics", batch_id=999))


def test_duplicate_name_in_same_batch_is_rejected_but_other_batch_is_fine(container, make_class):
    make_class("Tactics")

    with pytest.raises(DuplicateClassError):
        make_class("Tactics")

    other = make_class("Tactics", batch_id=OTHER_BATCH_ID)
    assert other.batch_id == OTHER_BATCH_ID


def test_reactivation_cannot_duplicate_an_active_name(container, make_class):
    registry = container.class_registry
    old = make_class("Tactics")
    registry.update(old.class_id, ClassPatch(is_active=False))
    make_class("Tactics")

    with pytest.raises(DuplicateClassError) as exc:
        registry.update(old.class_id, ClassPatch(is_active=True))

    assert exc.value.field == "name"
    assert registry.get(old.class_id).is_active is False
    renamed = registry.update(old.class_id, ClassPatch(name="Tactics II", is_active=True))
    assert (renamed.name, renamed.is_active) == ("Tactics II", True)


def test_update_changes_fields_and_keeps_batch(container, make_class):
    record = make_class()

    updated = container.class_registry.update(
        record.class_id,
        ClassPatch(name="Chess 102", visibility=Visibility.REQUEST_TO_JOIN, capacity=3, batch_id=BATCH_ID),
    )

    assert updated.name == "Chess 102"
    assert updated.visibility == Visibility.REQUEST_TO_JOIN
    assert updated.capacity == 3
    assert updated.batch_id == BATCH_ID


def test_update_cannot_move_class_to_another_batch(container, make_class):
    record = make_class()

    with pytest.raises(ValidationError) as exc:
        container.class_registry.update(record.class_id, ClassPatch(batch_id=OTHER_BATCH_ID))

    assert exc.value.field == "batch_id"


def test_capacity_cannot_drop_below_roster_size(container, make_class):
    record = make_class(capacity=5)
    container.enrollment_coordinator.add_students(record.class_id, [1, 2, 3])

    with pytest.raises(InvalidCapacityError):
        container.class_registry.update(record.class_id, ClassPatch(capacity=2))

    assert container.class_registry.update(record.class_id, ClassPatch(capacity=3)).capacity == 3


def test_capacity_can_be_cleared(container, make_class):
    record = make_class(capacity=2)

    updated = container.class_registry.update(record.class_id, ClassPatch(clear_capacity=True))

    assert updated.capacity is None
    assert updated.available_spots is None


def test_roster_snapshot_is_sorted_immutable_copy(container, make_class):
    record = make_class()
    container.enrollment_coordinator.add_students(record.class_id, [7, 3, 5])

    snapshot = container.class_registry.get_roster_snapshot(record.class_id)
    container.enrollment_coordinator.remove_student(record.class_id, 5)

    assert snapshot == (3, 5, 7)
    assert isinstance(snapshot, tuple)


def test_delete_cascades_join_requests_but_keeps_attendance(container, make_class):
    record = make_class(visibility=Visibility.REQUEST_TO_JOIN)
    container.join_request_queue.request_join(record.class_id, 4)
    container.enrollment_coordinator.add_students(record.class_id, [1])
    container.attendance_store.create_draft(record.class_id, date(2024, 3, 1), "Morning")

    result = container.class_registry.delete(record.class_id)

    assert result.join_requests_deleted == 1
    assert result.attendance_records_deleted == 0
    assert container.join_requests_repo.list(class_id=record.class_id) == []
    assert len(container.attendance_repo.list_for_class(class_id=record.class_id)) == 1
    with pytest.raises(NotFoundError):
        container.class_registry.get(record.class_id)


def test_cascading_attendance_delete_requires_admin(container, make_class):
    record = make_class()
    container.enrollment_coordinator.add_students(record.class_id, [1])
    container.attendance_store.create_draft(record.class_id, date(2024, 3, 1), "Morning")

    with pytest.raises(AuthorizationError):
        container.class_registry.delete(record.class_id, cascade_attendance=True, current_role=Role.TEACHER)

    result = container.class_registry.delete(record.class_id, cascade_attendance=True, current_role=Role.ADMIN)
    assert result.attendance_records_deleted == 1
    assert container.attendance_repo.list_for_class(class_id=record.class_id) == []


def test_find_by_batch_and_name(container, make_class):
    record = make_class("Strategy")

    assert container.class_registry.find_by_batch_and_name(BATCH_ID, " Strategy ").class_id == record.class_id
    with pytest.raises(NotFoundError):
        container.class_registry.find_by_batch_and_name(OTHER_BATCH_ID, "Strategy")


def test_list_by_batch_hides_inactive_unless_asked(container, make_class):
    active = make_class("A")
    inactive = make_class("B")
    container.class_registry.update(inactive.class_id, ClassPatch(is_active=False))

    visible = [c.class_id for c in container.class_registry.list_by_batch(BATCH_ID)]
    everything = [c.class_id for c in container.class_registry.list_by_batch(BATCH_ID, include_inactive=True)]

    assert visible == [active.class_id]
    assert set(everything) == {active.class_id, inactive.class_id}


def test_available_classes_skip_unlisted_and_joined(container, make_class):
    open_class = make_class("Open")
    joined = make_class("Joined")
    make_class("Hidden", visibility=Visibility.UNLISTED)
    request_class = make_class("Ask", visibility=Visibility.REQUEST_TO_JOIN)
    make_class("Elsewhere", batch_id=OTHER_BATCH_ID)
    container.enrollment_coordinator.join_open(joined.class_id, 3)

    available = {c.class_id for c in container.class_registry.list_available_for_student(3)}

    assert available == {open_class.class_id, request_class.class_id}
    assert [c.class_id for c in container.class_registry.list_joined(3)] == [joined.class_id]


def test_eligible_students_are_batch_members_not_enrolled(container, make_class):
    record = make_class()
    container.enrollment_coordinator.add_students(record.class_id, list(range(1, 19)))

    assert container.class_registry.list_eligible_students(record.class_id) == [19, 20]


def test_members_use_directory_display_names(container, make_class):
    record = make_class()
    container.enrollment_coordinator.add_students(record.class_id, [2, 1, 3])

    members = container.class_registry.list_members(record.class_id)

    assert [m.student_id for m in members] == [1, 2, 3]
    assert members[0].display_name == "An Nguyen"
    assert members[1].display_name == "Binh"
    assert members[2].display_name == "3"
