from __future__ import annotations

import math
from contextlib import ExitStack
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Sequence

from ..classes.model import ClassRecord
from ..classes.repository import ClassRepository
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..common.validators import optional_text, require_positive_id
from ..core.constants import DEFAULT_JOIN_REQUEST_COOLDOWN_MINUTES, DEFAULT_LIST_LIMIT, REQUEST_MESSAGE_MAX_LENGTH
from ..core.enums import JoinRequestStatus, Visibility
from ..core.events import EventSink, NullEventSink
from ..core.exceptions import (
    CapacityExceededError,
    ClassInactiveError,
    DuplicateEnrollmentError,
    DuplicateRequestError,
    NotFoundError,
    RequestAlreadyResolvedError,
    RequestCooldownError,
    ValidationError,
    VisibilityViolationError,
)
from ..core.logging import get_logger
from ..directory.repository import BatchDirectory
from ..enrollment.service import EnrollmentCoordinator
from .model import BulkApprovalResult, JoinEligibility, JoinRequest
from .repository import JoinRequestRepository

log = get_logger(__name__)


class JoinRequestQueue:
    """Use case: pending join requests for request_to_join classes.

    Approval never writes the roster itself: it goes through
    EnrollmentCoordinator.add_students so capacity is checked at approval
    time, under the class lock.
    """

    def __init__(
        self,
        requests: JoinRequestRepository,
        classes: ClassRepository,
        enrollment: EnrollmentCoordinator,
        *,
        batches: Optional[BatchDirectory] = None,
        locks: Optional[KeyedLocks] = None,
        events: Optional[EventSink] = None,
        cooldown_minutes: int = DEFAULT_JOIN_REQUEST_COOLDOWN_MINUTES,
        clock: Callable[[], datetime] = now_local,
    ):
        self._requests = requests
        self._classes = classes
        self._enrollment = enrollment
        self._batches = batches
        self._events = events or NullEventSink()
        self._cooldown = timedelta(minutes=max(int(cooldown_minutes), 0))
        self._clock = clock
        self._locks = locks or KeyedLocks()

    def _load_class(self, class_id: int) -> ClassRecord:
        record = self._classes.get_by_id(class_id)
        if not record:
            raise NotFoundError("Class not found")
        return record

    def _load_request(self, request_id: int) -> JoinRequest:
        req = self._requests.get(request_id=require_positive_id(request_id, "request_id"))
        if not req:
            raise NotFoundError("Join request not found")
        return req

    def _in_batch(self, record: ClassRecord, student_id: int) -> bool:
        if not self._batches:
            return True
        return record.batch_id in set(self._batches.batches_of_student(student_id))

    def _cooldown_minutes_left(self, class_id: int, student_id: int) -> int:
        if not self._cooldown:
            return 0
        latest = self._requests.latest_for(class_id=class_id, student_id=student_id)
        if not latest:
            return 0
        remaining = latest.requested_at + self._cooldown - self._clock()
        if remaining.total_seconds() <= 0:
            return 0
        return math.ceil(remaining.total_seconds() / 60)

    # -------- Student side --------
    def request_join(self, class_id: int, student_id: int, *, message: Optional[str] = None) -> JoinRequest:
        class_id = require_positive_id(class_id, "class_id")
        student_id = require_positive_id(student_id, "student_id")
        message = optional_text(message, "request_message", REQUEST_MESSAGE_MAX_LENGTH)

        record = self._load_class(class_id)
        if not record.is_active:
            raise ClassInactiveError("Class is not active")
        if record.visibility != Visibility.REQUEST_TO_JOIN:
            raise VisibilityViolationError("This class does not accept join requests")
        if student_id in record.roster:
            raise DuplicateEnrollmentError("You are already enrolled in this class")
        if not self._in_batch(record, student_id):
            raise VisibilityViolationError("Only students of the class batch can request to join")
        if self._requests.find_pending(class_id=class_id, student_id=student_id):
            raise DuplicateRequestError("You already have a pending request for this class")
        if record.is_full:
            raise CapacityExceededError(
                "Class has reached maximum capacity. No new requests can be accepted.",
                requested=1,
                available=0,
            )

        minutes_left = self._cooldown_minutes_left(class_id, student_id)
        if minutes_left:
            raise RequestCooldownError(
                f"Please wait {minutes_left} minute{'s' if minutes_left != 1 else ''} before sending another request",
                minutes_left=minutes_left,
            )

        request_id = self._requests.create(class_id=class_id, student_id=student_id, request_message=message)
        if request_id is None:
            raise DuplicateRequestError("You already have a pending request for this class")

        log.info("join_requested", request_id=request_id, class_id=class_id, student_id=student_id)
        self._events.emit("join_request.created", request_id=request_id, class_id=class_id, student_id=student_id)
        return self._load_request(request_id)

    def cancel(self, request_id: int, student_id: int) -> None:
        """The owning student withdraws a pending request."""
        req = self._load_request(request_id)
        if req.student_id != int(student_id):
            raise NotFoundError("Pending join request not found")
        with self._locks.hold(req.request_id):
            if not self._requests.delete_pending(request_id=req.request_id, student_id=req.student_id):
                raise RequestAlreadyResolvedError("This request has already been processed")
        log.info("join_request_cancelled", request_id=req.request_id, class_id=req.class_id)

    def list_for_student(self, student_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[JoinRequest]:
        return self._requests.list(student_id=int(student_id), limit=limit)

    def check_eligibility(self, class_id: int, student_id: int) -> JoinEligibility:
        record = self._load_class(int(class_id))
        student_id = int(student_id)

        def no(reason: str) -> JoinEligibility:
            return JoinEligibility(class_id=record.class_id, can_join=False, mode=None, reason=reason)

        if not record.is_active:
            return no("Class is not active")
        if student_id in record.roster:
            return no("You are already enrolled in this class")
        if not self._in_batch(record, student_id):
            return no("This class belongs to another batch")
        if record.visibility == Visibility.UNLISTED:
            return no("This class is invite only")
        if record.is_full:
            return no("Class has reached maximum capacity")
        if record.visibility == Visibility.OPEN:
            return JoinEligibility(record.class_id, True, "join", "You can join this open class directly")

        if self._requests.find_pending(class_id=record.class_id, student_id=student_id):
            return no("You already have a pending request for this class")
        minutes_left = self._cooldown_minutes_left(record.class_id, student_id)
        if minutes_left:
            return no(f"Please wait {minutes_left} minute(s) before sending another request")
        return JoinEligibility(record.class_id, True, "request", "You can send a request to join this class")

    # -------- Teacher side --------
    def list_pending(self, class_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[JoinRequest]:
        self._load_class(int(class_id))
        return self._requests.list(class_id=int(class_id), status=JoinRequestStatus.PENDING, limit=limit)

    def list_for_class(self, class_id: int, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[JoinRequest]:
        self._load_class(int(class_id))
        return self._requests.list(class_id=int(class_id), limit=limit)

    def approve(
        self,
        request_id: int,
        *,
        reviewer_id: Optional[int] = None,
        message: Optional[str] = None,
    ) -> JoinRequest:
        """Enroll the requester, then mark the request approved.

        On CapacityExceededError the request stays pending and the error
        propagates. An already-enrolled requester is still approved.
        """
        message = optional_text(message, "review_message", REQUEST_MESSAGE_MAX_LENGTH)
        req = self._load_request(request_id)

        with self._locks.hold(req.request_id):
            req = self._load_request(req.request_id)
            if not req.is_pending:
                raise RequestAlreadyResolvedError("This request has already been processed")

            try:
                self._enrollment.add_students(req.class_id, [req.student_id])
            except CapacityExceededError:
                log.info("join_request_approval_blocked", request_id=req.request_id, class_id=req.class_id)
                raise

            self._decide(req, JoinRequestStatus.APPROVED, reviewer_id, message)

        log.info("join_request_approved", request_id=req.request_id, class_id=req.class_id, student_id=req.student_id)
        self._events.emit("join_request.approved", request_id=req.request_id, class_id=req.class_id, student_id=req.student_id)
        return self._load_request(req.request_id)

    def reject(
        self,
        request_id: int,
        *,
        reviewer_id: Optional[int] = None,
        message: Optional[str] = None,
    ) -> JoinRequest:
        message = optional_text(message, "review_message", REQUEST_MESSAGE_MAX_LENGTH)
        req = self._load_request(request_id)

        with self._locks.hold(req.request_id):
            self._decide(req, JoinRequestStatus.REJECTED, reviewer_id, message)

        log.info("join_request_rejected", request_id=req.request_id, class_id=req.class_id)
        self._events.emit("join_request.rejected", request_id=req.request_id, class_id=req.class_id, student_id=req.student_id)
        return self._load_request(req.request_id)

    def bulk_approve(
        self,
        request_ids: Iterable[int],
        *,
        reviewer_id: Optional[int] = None,
        message: Optional[str] = None,
    ) -> BulkApprovalResult:
        """Approve several pending requests of one class, all or nothing."""
        message = optional_text(message, "review_message", REQUEST_MESSAGE_MAX_LENGTH)
        ids = self._unique_ids(request_ids)

        with ExitStack() as stack:
            # Ascending id order so overlapping bulk calls cannot deadlock.
            for rid in sorted(ids):
                stack.enter_context(self._locks.hold(rid))

            reqs = self._load_many(ids)
            resolved = [r.request_id for r in reqs if not r.is_pending]
            if resolved:
                raise RequestAlreadyResolvedError(f"Requests already processed: {', '.join(map(str, resolved))}")
            class_ids = {r.class_id for r in reqs}
            if len(class_ids) != 1:
                raise ValidationError("All requests must belong to the same class", field="request_ids")
            class_id = class_ids.pop()

            result = self._enrollment.add_students(class_id, [r.student_id for r in reqs])
            for r in reqs:
                self._decide(r, JoinRequestStatus.APPROVED, reviewer_id, message)

        already = set(result.already_enrolled)
        log.info("join_requests_bulk_approved", class_id=class_id, approved=len(reqs))
        self._events.emit("join_request.bulk_approved", class_id=class_id, request_ids=list(ids))
        return BulkApprovalResult(
            class_id=class_id,
            approved=tuple(r.request_id for r in reqs),
            already_enrolled=tuple(r.request_id for r in reqs if r.student_id in already),
            roster_size=result.roster_size,
            capacity=result.capacity,
        )

    def bulk_reject(
        self,
        request_ids: Iterable[int],
        *,
        reviewer_id: Optional[int] = None,
        message: Optional[str] = None,
    ) -> tuple[int, ...]:
        """Reject the pending requests among ``request_ids``; returns the ids rejected."""
        message = optional_text(message, "review_message", REQUEST_MESSAGE_MAX_LENGTH)
        ids = self._unique_ids(request_ids)

        rejected: list[int] = []
        for req in self._load_many(ids):
            if not req.is_pending:
                continue
            with self._locks.hold(req.request_id):
                if self._requests.decide(
                    request_id=req.request_id,
                    status=JoinRequestStatus.REJECTED,
                    reviewed_by=reviewer_id,
                    review_message=message,
                ):
                    rejected.append(req.request_id)

        log.info("join_requests_bulk_rejected", rejected=len(rejected), requested=len(ids))
        return tuple(rejected)

    # -------- Helpers --------
    @staticmethod
    def _unique_ids(request_ids: Iterable[int]) -> list[int]:
        ids: list[int] = []
        for rid in request_ids or []:
            rid = require_positive_id(rid, "request_ids")
            if rid not in ids:
                ids.append(rid)
        if not ids:
            raise ValidationError("Request IDs are required", field="request_ids")
        return ids

    def _load_many(self, ids: list[int]) -> list[JoinRequest]:
        found = {r.request_id: r for r in self._requests.get_many(request_ids=ids)}
        missing = [rid for rid in ids if rid not in found]
        if missing:
            raise NotFoundError(f"Join requests not found: {', '.join(map(str, missing))}")
        return [found[rid] for rid in ids]

    def _decide(
        self,
        req: JoinRequest,
        status: JoinRequestStatus,
        reviewer_id: Optional[int],
        message: Optional[str],
    ) -> None:
        ok = self._requests.decide(
            request_id=req.request_id,
            status=status,
            reviewed_by=int(reviewer_id) if reviewer_id else None,
            review_message=message,
        )
        if not ok:
            raise RequestAlreadyResolvedError("This request has already been processed")
