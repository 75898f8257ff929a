from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EnrollmentResult:
    """Outcome of a roster write."""

    class_id: int
    added: tuple[int, ...]
    already_enrolled: tuple[int, ...]
    roster_size: int
    capacity: Optional[int]

    @property
    def available_spots(self) -> Optional[int]:
        if self.capacity is None:
            return None
        return self.capacity - self.roster_size

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "added": list(self.added),
            "already_enrolled": list(self.already_enrolled),
            "roster_size": self.roster_size,
            "capacity": self.capacity,
            "available_spots": self.available_spots,
        }
