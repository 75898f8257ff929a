from __future__ import annotations

import pytest

from classroom.classes.model import NewClass
from classroom.container import assemble
from classroom.core.enums import Visibility
from classroom.directory.model import UserProfile

from fakes import InMemoryAttendance, InMemoryClasses, InMemoryJoinRequests, RecordingEvents, StaticBatches, StaticUsers

BATCH_ID = 10
OTHER_BATCH_ID = 20


@pytest.fixture
def batches() -> StaticBatches:
    return StaticBatches({BATCH_ID: set(range(1, 21)), OTHER_BATCH_ID: {101, 102}})


@pytest.fixture
def users() -> StaticUsers:
    return StaticUsers(
        {
            1: UserProfile(user_id=1, email="an@example.com", first_name="An", last_name="Nguyen"),
            2: UserProfile(user_id=2, email="binh@example.com", first_name="Binh", last_name=None),
        }
    )


@pytest.fixture
def events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture
def container(batches, users, events):
    return assemble(
        classes_repo=InMemoryClasses(),
        join_requests_repo=InMemoryJoinRequests(),
        attendance_repo=InMemoryAttendance(),
        batches=batches,
        users=users,
        events=events,
    )


@pytest.fixture
def make_class(container):
    def _make(name: str = "Chess 101", *, visibility=Visibility.OPEN, capacity=None, batch_id=BATCH_ID, teacher_id=900):
        return container.class_registry.create(
            NewClass(name=name, batch_id=batch_id, visibility=visibility, capacity=capacity, teacher_id=teacher_id)
        )

    return _make
