from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Optional

from ..core.enums import Visibility


@dataclass(frozen=True)
class ClassRecord:
    """Domain entity: a class linked to one batch, with its roster."""

    class_id: int
    name: str
    description: Optional[str]
    batch_id: int
    visibility: Visibility
    capacity: Optional[int]
    roster: FrozenSet[int]
    is_active: bool
    created_at: datetime
    teacher_id: Optional[int] = None
    version: int = 0

    @property
    def roster_size(self) -> int:
        return len(self.roster)

    @property
    def available_spots(self) -> Optional[int]:
        """None when capacity is unlimited."""
        if self.capacity is None:
            return None
        return max(self.capacity - len(self.roster), 0)

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and len(self.roster) >= self.capacity

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "name": self.name,
            "description": self.description or "",
            "batch_id": self.batch_id,
            "teacher_id": self.teacher_id,
            "visibility": self.visibility.value,
            "capacity": self.capacity,
            "roster": sorted(self.roster),
            "roster_size": self.roster_size,
            "available_spots": self.available_spots,
            "is_active": self.is_active,
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        }


@dataclass(frozen=True)
class NewClass:
    """Input for ClassRegistry.create."""

    name: str
    batch_id: int
    description: Optional[str] = None
    visibility: Visibility = Visibility.OPEN
    capacity: Optional[int] = None
    teacher_id: Optional[int] = None


@dataclass(frozen=True)
class ClassPatch:
    """Input for ClassRegistry.update; None means "leave unchanged".

    ``description=""`` clears the description, ``clear_capacity=True`` makes
    the class unlimited. ``batch_id`` is only accepted if it equals the
    current one.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[Visibility] = None
    capacity: Optional[int] = None
    clear_capacity: bool = False
    is_active: Optional[bool] = None
    batch_id: Optional[int] = None


@dataclass(frozen=True)
class MemberRow:
    student_id: int
    display_name: str
    email: Optional[str] = None

    def to_dict(self) -> dict:
        return {"student_id": self.student_id, "display_name": self.display_name, "email": self.email or ""}


@dataclass(frozen=True)
class ClassDeletion:
    class_id: int
    join_requests_deleted: int
    attendance_records_deleted: int = 0
