from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import JoinRequestStatus
from .model import JoinRequest


class JoinRequestRepository(Protocol):
    def create(self, *, class_id: int, student_id: int, request_message: Optional[str]) -> Optional[int]:
        """Insert a pending request.

        Returns None when a pending request for the pair already exists
        (storage enforces one pending request per class and student).
        """

        raise NotImplementedError

    def get(self, *, request_id: int) -> Optional[JoinRequest]:
        raise NotImplementedError

    def get_many(self, *, request_ids: Iterable[int]) -> Sequence[JoinRequest]:
        raise NotImplementedError

    def find_pending(self, *, class_id: int, student_id: int) -> Optional[JoinRequest]:
        raise NotImplementedError

    def latest_for(self, *, class_id: int, student_id: int) -> Optional[JoinRequest]:
        raise NotImplementedError

    def list(
        self,
        *,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
        status: Optional[JoinRequestStatus] = None,
        limit: int = 200,
    ) -> Sequence[JoinRequest]:
        raise NotImplementedError

    def decide(
        self,
        *,
        request_id: int,
        status: JoinRequestStatus,
        reviewed_by: Optional[int],
        review_message: Optional[str] = None,
    ) -> bool:
        """Resolve a request only if it is still pending."""

        raise NotImplementedError

    def delete_pending(self, *, request_id: int, student_id: int) -> bool:
        raise NotImplementedError

    def delete_for_class(self, *, class_id: int) -> int:
        raise NotImplementedError
