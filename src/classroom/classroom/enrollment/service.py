from __future__ import annotations

from typing import Iterable, Optional

from ..classes.model import ClassRecord
from ..classes.repository import ClassRepository
from ..common.locks import KeyedLocks
from ..common.retry import StaleWriteError, with_cas_retry
from ..common.validators import require_positive_id
from ..core.constants import DEFAULT_ROSTER_CAS_RETRIES
from ..core.enums import Visibility
from ..core.events import EventSink, NullEventSink
from ..core.exceptions import (
    CapacityExceededError,
    ClassInactiveError,
    DuplicateEnrollmentError,
    NotFoundError,
    ValidationError,
    VisibilityViolationError,
)
from ..core.logging import get_logger
from ..directory.repository import BatchDirectory
from .model import EnrollmentResult

log = get_logger(__name__)


class EnrollmentCoordinator:
    """Use case: admit and remove students while keeping ``|roster| <= capacity``.

    Every roster write holds the class's in-process lock and is a
    compare-and-swap on the class version, so writers in other processes are
    detected and retried. Each attempt re-reads the class before deciding.
    """

    def __init__(
        self,
        classes: ClassRepository,
        *,
        batches: Optional[BatchDirectory] = None,
        locks: Optional[KeyedLocks] = None,
        events: Optional[EventSink] = None,
        cas_retries: int = DEFAULT_ROSTER_CAS_RETRIES,
    ):
        self._classes = classes
        self._batches = batches
        self._locks = locks or KeyedLocks()
        self._events = events or NullEventSink()
        self._cas_retries = int(cas_retries)

    def _load(self, class_id: int) -> ClassRecord:
        record = self._classes.get_by_id(class_id)
        if not record:
            raise NotFoundError("Class not found")
        return record

    def _run(self, class_id: int, attempt):
        with self._locks.hold(class_id):
            return with_cas_retry(attempt, attempts=self._cas_retries, what=f"class {class_id} roster")

    def _require_batch_members(self, record: ClassRecord, student_ids: Iterable[int]) -> None:
        if not self._batches:
            return
        members = set(self._batches.students_in_batch(record.batch_id))
        outsiders = sorted(set(student_ids) - members)
        if outsiders:
            raise ValidationError(
                f"Students not in the class batch: {', '.join(map(str, outsiders))}",
                field="student_ids",
            )

    def join_open(self, class_id: int, student_id: int) -> EnrollmentResult:
        """Self-service join for an open class."""
        class_id = require_positive_id(class_id, "class_id")
        student_id = require_positive_id(student_id, "student_id")

        record = self._load(class_id)
        if self._batches and record.batch_id not in set(self._batches.batches_of_student(student_id)):
            raise VisibilityViolationError("Only students of the class batch can join")

        def attempt() -> EnrollmentResult:
            current = self._load(class_id)
            if not current.is_active:
                raise ClassInactiveError("Class is not active")
            if current.visibility != Visibility.OPEN:
                raise VisibilityViolationError("This class cannot be joined directly")
            if student_id in current.roster:
                raise DuplicateEnrollmentError("You are already enrolled in this class")
            if current.is_full:
                raise CapacityExceededError(
                    "Class has reached maximum capacity",
                    requested=1,
                    available=0,
                )
            if not self._classes.write_roster(class_id=class_id, add=[student_id], expected_version=current.version):
                raise StaleWriteError()
            return EnrollmentResult(
                class_id=class_id,
                added=(student_id,),
                already_enrolled=(),
                roster_size=current.roster_size + 1,
                capacity=current.capacity,
            )

        result = self._run(class_id, attempt)
        log.info("student_joined", class_id=class_id, student_id=student_id, roster_size=result.roster_size)
        self._events.emit("enrollment.joined", class_id=class_id, student_id=student_id)
        return result

    def add_students(self, class_id: int, student_ids: Iterable[int]) -> EnrollmentResult:
        """Bulk add, all-or-nothing against capacity.

        Ids already on the roster (and repeats inside ``student_ids``) are
        skipped and do not count against capacity.
        """
        class_id = require_positive_id(class_id, "class_id")
        ids: list[int] = []
        for sid in student_ids or []:
            sid = require_positive_id(sid, "student_ids")
            if sid not in ids:
                ids.append(sid)
        if not ids:
            raise ValidationError("At least one student id is required", field="student_ids")

        self._require_batch_members(self._load(class_id), ids)

        def attempt() -> EnrollmentResult:
            current = self._load(class_id)
            new_ids = tuple(sid for sid in ids if sid not in current.roster)
            already = tuple(sid for sid in ids if sid in current.roster)

            available = current.available_spots
            if available is not None and len(new_ids) > available:
                raise CapacityExceededError(
                    f"Cannot add {len(new_ids)} student(s); class has {available} of {current.capacity} spot(s) left",
                    requested=len(new_ids),
                    available=available,
                )

            if new_ids and not self._classes.write_roster(
                class_id=class_id, add=new_ids, expected_version=current.version
            ):
                raise StaleWriteError()

            return EnrollmentResult(
                class_id=class_id,
                added=new_ids,
                already_enrolled=already,
                roster_size=current.roster_size + len(new_ids),
                capacity=current.capacity,
            )

        try:
            result = self._run(class_id, attempt)
        except CapacityExceededError as e:
            log.info("add_students_rejected", class_id=class_id, requested=e.requested, available=e.available)
            raise

        log.info(
            "students_added",
            class_id=class_id,
            added=len(result.added),
            skipped=len(result.already_enrolled),
            roster_size=result.roster_size,
        )
        if result.added:
            self._events.emit("enrollment.added", class_id=class_id, student_ids=list(result.added))
        return result

    def remove_student(self, class_id: int, student_id: int) -> EnrollmentResult:
        """Remove one student; a non-member raises NotFoundError and nothing changes.

        Attendance records keep their own snapshots and are never touched.
        """
        class_id = require_positive_id(class_id, "class_id")
        student_id = require_positive_id(student_id, "student_id")

        def attempt() -> EnrollmentResult:
            current = self._load(class_id)
            if student_id not in current.roster:
                raise NotFoundError("Student is not enrolled in this class")
            if not self._classes.write_roster(class_id=class_id, remove=[student_id], expected_version=current.version):
                raise StaleWriteError()
            return EnrollmentResult(
                class_id=class_id,
                added=(),
                already_enrolled=(),
                roster_size=current.roster_size - 1,
                capacity=current.capacity,
            )

        result = self._run(class_id, attempt)
        log.info("student_removed", class_id=class_id, student_id=student_id, roster_size=result.roster_size)
        self._events.emit("enrollment.removed", class_id=class_id, student_id=student_id)
        return result

    def leave(self, class_id: int, student_id: int) -> EnrollmentResult:
        """Student-initiated removal."""
        return self.remove_student(class_id, student_id)
