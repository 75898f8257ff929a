from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

from ..common.locks import KeyedLocks
from ..common.retry import StaleWriteError, with_cas_retry
from ..common.validators import optional_text, require_int_range, require_max_length, require_non_empty, require_positive_id
from ..core.constants import (
    CAPACITY_MAX,
    CAPACITY_MIN,
    CLASS_DESCRIPTION_MAX_LENGTH,
    CLASS_NAME_MAX_LENGTH,
    DEFAULT_ROSTER_CAS_RETRIES,
)
from ..core.enums import Role, Visibility
from ..core.events import EventSink, NullEventSink
from ..core.exceptions import (
    AuthorizationError,
    DuplicateClassError,
    InvalidCapacityError,
    NotFoundError,
    ValidationError,
)
from ..core.logging import get_logger
from ..directory.repository import BatchDirectory, UserDirectory
from .model import ClassDeletion, ClassPatch, ClassRecord, MemberRow, NewClass
from .repository import ClassRepository

if TYPE_CHECKING:
    from ..attendance.repository import AttendanceRepository
    from ..join_requests.repository import JoinRequestRepository

log = get_logger(__name__)


def coerce_visibility(value) -> Visibility:
    if isinstance(value, Visibility):
        return value
    try:
        return Visibility(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(v.value for v in Visibility)
        raise ValidationError(f"visibility must be one of: {allowed}", field="visibility")


def validate_name(name: Optional[str]) -> str:
    name = require_non_empty(name, "name")
    return require_max_length(name, "name", CLASS_NAME_MAX_LENGTH)


def validate_capacity(capacity) -> Optional[int]:
    if capacity is None:
        return None
    return require_int_range(capacity, "capacity", CAPACITY_MIN, CAPACITY_MAX)


class ClassRegistry:
    """Use case: own class records (identity, policy, capacity, roster, active flag).

    Roster membership itself is written only by EnrollmentCoordinator; the
    registry shares the per-class lock so a capacity change cannot interleave
    with a roster write.
    """

    def __init__(
        self,
        classes: ClassRepository,
        join_requests: "JoinRequestRepository",
        attendance: "AttendanceRepository",
        *,
        batches: Optional[BatchDirectory] = None,
        users: Optional[UserDirectory] = None,
        locks: Optional[KeyedLocks] = None,
        events: Optional[EventSink] = None,
        cas_retries: int = DEFAULT_ROSTER_CAS_RETRIES,
    ):
        self._classes = classes
        self._join_requests = join_requests
        self._attendance = attendance
        self._batches = batches
        self._users = users
        self._locks = locks or KeyedLocks()
        self._events = events or NullEventSink()
        self._cas_retries = int(cas_retries)

    # -------- Lookups --------
    def get(self, class_id: int) -> ClassRecord:
        record = self._classes.get_by_id(int(class_id))
        if not record:
            raise NotFoundError("Class not found")
        return record

    def get_roster_snapshot(self, class_id: int) -> tuple[int, ...]:
        """Immutable, sorted copy of the roster at call time."""
        return tuple(sorted(self.get(class_id).roster))

    def find_by_batch_and_name(self, batch_id: int, name: str) -> ClassRecord:
        record = self._classes.find_by_batch_and_name(batch_id=int(batch_id), name=(name or "").strip())
        if not record:
            raise NotFoundError("Class not found for this batch")
        return record

    def list_by_batch(self, batch_id: int, *, include_inactive: bool = False) -> Sequence[ClassRecord]:
        return self._classes.list_by_batch(batch_id=int(batch_id), include_inactive=include_inactive)

    def list_by_teacher(self, teacher_id: int) -> Sequence[ClassRecord]:
        return self._classes.list_by_teacher(teacher_id=int(teacher_id))

    def list_joined(self, student_id: int) -> Sequence[ClassRecord]:
        return [c for c in self._classes.list_for_student(student_id=int(student_id)) if c.is_active]

    def list_available_for_student(self, student_id: int) -> Sequence[ClassRecord]:
        """Active, listed classes of the student's batches not yet joined."""
        if not self._batches:
            return []
        batch_ids = list(self._batches.batches_of_student(int(student_id)))
        if not batch_ids:
            return []
        return [
            c
            for c in self._classes.list_by_batches(batch_ids=batch_ids)
            if c.is_active and c.visibility != Visibility.UNLISTED and int(student_id) not in c.roster
        ]

    def list_eligible_students(self, class_id: int) -> list[int]:
        """Batch members who are not on the roster yet."""
        record = self.get(class_id)
        if not self._batches:
            return []
        return sorted(set(self._batches.students_in_batch(record.batch_id)) - record.roster)

    def list_members(self, class_id: int) -> list[MemberRow]:
        record = self.get(class_id)
        ids = sorted(record.roster)
        profiles = self._users.get_profiles(ids) if self._users and ids else {}
        rows = []
        for sid in ids:
            p = profiles.get(sid)
            rows.append(MemberRow(student_id=sid, display_name=p.display_name if p else str(sid), email=p.email if p else None))
        return rows

    # -------- Mutations --------
    def create(self, new: NewClass) -> ClassRecord:
        name = validate_name(new.name)
        description = optional_text(new.description, "description", CLASS_DESCRIPTION_MAX_LENGTH)
        batch_id = require_positive_id(new.batch_id, "batch_id")
        visibility = coerce_visibility(new.visibility)
        capacity = validate_capacity(new.capacity)

        if self._batches and not self._batches.batch_exists(batch_id):
            raise NotFoundError("Batch not found or inactive")

        if self._classes.find_by_batch_and_name(batch_id=batch_id, name=name):
            raise DuplicateClassError("Class with this name already exists for the batch", field="name")

        class_id = self._classes.create(
            name=name,
            description=description,
            batch_id=batch_id,
            teacher_id=int(new.teacher_id) if new.teacher_id else None,
            visibility=visibility,
            capacity=capacity,
        )
        log.info("class_created", class_id=class_id, batch_id=batch_id, visibility=visibility.value, capacity=capacity)
        self._events.emit("class.created", class_id=class_id, batch_id=batch_id, teacher_id=new.teacher_id)
        return self.get(class_id)

    def update(self, class_id: int, patch: ClassPatch) -> ClassRecord:
        class_id = int(class_id)

        def attempt() -> ClassRecord:
            current = self.get(class_id)
            fields = self._changed_fields(current, patch)
            if not fields:
                return current

            if not self._classes.update_fields(class_id=class_id, fields=fields, expected_version=current.version):
                raise StaleWriteError()
            return self.get(class_id)

        with self._locks.hold(class_id):
            updated = with_cas_retry(attempt, attempts=self._cas_retries, what=f"class {class_id}")

        log.info("class_updated", class_id=class_id)
        self._events.emit("class.updated", class_id=class_id)
        return updated

    def _changed_fields(self, current: ClassRecord, patch: ClassPatch) -> dict:
        if patch.batch_id is not None and int(patch.batch_id) != current.batch_id:
            raise ValidationError("The linked batch cannot be changed", field="batch_id")

        fields: dict = {}
        name = current.name
        if patch.name is not None:
            name = validate_name(patch.name)
            if name != current.name:
                fields["name"] = name

        # Active names are unique per batch, so a rename or a reactivation must not collide.
        reactivating = patch.is_active is True and not current.is_active
        will_be_active = current.is_active if patch.is_active is None else bool(patch.is_active)
        if will_be_active and ("name" in fields or reactivating):
            other = self._classes.find_by_batch_and_name(batch_id=current.batch_id, name=name)
            if other and other.class_id != current.class_id:
                raise DuplicateClassError("Class with this name already exists for the batch", field="name")

        if patch.description is not None:
            fields["description"] = optional_text(patch.description, "description", CLASS_DESCRIPTION_MAX_LENGTH)

        if patch.visibility is not None:
            fields["visibility"] = coerce_visibility(patch.visibility)

        if patch.clear_capacity and patch.capacity is not None:
            raise ValidationError("Pass either capacity or clear_capacity", field="capacity")
        if patch.clear_capacity:
            fields["capacity"] = None
        elif patch.capacity is not None:
            capacity = validate_capacity(patch.capacity)
            if capacity < current.roster_size:
                raise InvalidCapacityError(
                    f"Capacity {capacity} is below the current roster size {current.roster_size}",
                    field="capacity",
                )
            fields["capacity"] = capacity

        if patch.is_active is not None:
            fields["is_active"] = bool(patch.is_active)

        return fields

    def delete(
        self,
        class_id: int,
        *,
        cascade_attendance: bool = False,
        current_role: Optional[Role] = None,
    ) -> ClassDeletion:
        """Delete a class and its join requests.

        Attendance history is kept unless ``cascade_attendance`` is set, which
        is an administrative action.
        """
        class_id = int(class_id)
        if cascade_attendance and current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can delete attendance history")

        with self._locks.hold(class_id):
            self.get(class_id)
            requests_deleted = self._join_requests.delete_for_class(class_id=class_id)
            records_deleted = self._attendance.delete_for_class(class_id=class_id) if cascade_attendance else 0
            if not self._classes.delete(class_id=class_id):
                raise NotFoundError("Class not found")

        log.info(
            "class_deleted",
            class_id=class_id,
            join_requests_deleted=requests_deleted,
            attendance_records_deleted=records_deleted,
        )
        self._events.emit("class.deleted", class_id=class_id, cascade_attendance=cascade_attendance)
        return ClassDeletion(
            class_id=class_id,
            join_requests_deleted=requests_deleted,
            attendance_records_deleted=records_deleted,
        )
