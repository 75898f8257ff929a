from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import JoinRequestStatus


@dataclass(frozen=True)
class JoinRequest:
    request_id: int
    class_id: int
    student_id: int
    status: JoinRequestStatus
    requested_at: datetime
    request_message: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_message: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == JoinRequestStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "class_id": self.class_id,
            "student_id": self.student_id,
            "status": self.status.value,
            "requested_at": self.requested_at.strftime("%Y-%m-%d %H:%M:%S"),
            "request_message": self.request_message or "",
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.strftime("%Y-%m-%d %H:%M:%S") if self.reviewed_at else None,
            "review_message": self.review_message or "",
        }


@dataclass(frozen=True)
class JoinEligibility:
    """Answer to "can this student join, and how?".

    ``mode`` is "join" for open classes, "request" for request_to_join
    classes, None when the student cannot join.
    """

    class_id: int
    can_join: bool
    mode: Optional[str]
    reason: str

    def to_dict(self) -> dict:
        return {"class_id": self.class_id, "can_join": self.can_join, "mode": self.mode, "reason": self.reason}


@dataclass(frozen=True)
class BulkApprovalResult:
    class_id: int
    approved: tuple[int, ...]
    already_enrolled: tuple[int, ...]
    roster_size: int
    capacity: Optional[int]

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "approved": list(self.approved),
            "already_enrolled": list(self.already_enrolled),
            "roster_size": self.roster_size,
            "capacity": self.capacity,
        }
