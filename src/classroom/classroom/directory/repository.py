from __future__ import annotations

from typing import Iterable, Mapping, Protocol, Sequence

from .model import UserProfile


class BatchDirectory(Protocol):
    """Read-only view of batch membership, owned by an external service."""

    def batch_exists(self, batch_id: int) -> bool:
        raise NotImplementedError

    def students_in_batch(self, batch_id: int) -> Sequence[int]:
        raise NotImplementedError

    def batches_of_student(self, student_id: int) -> Sequence[int]:
        raise NotImplementedError


class UserDirectory(Protocol):
    def get_profiles(self, user_ids: Iterable[int]) -> Mapping[int, UserProfile]:
        """Profiles keyed by user id; unknown ids are omitted."""

        raise NotImplementedError
