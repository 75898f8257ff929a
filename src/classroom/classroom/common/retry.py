from __future__ import annotations

from typing import Callable, TypeVar

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_random

from ..core.exceptions import ConflictError
from ..core.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class StaleWriteError(Exception):
    """A compare-and-swap write lost against a concurrent writer."""


def with_cas_retry(operation: Callable[[], T], *, attempts: int, what: str) -> T:
    """Run ``operation`` until it stops raising StaleWriteError.

    ``operation`` must re-read fresh state on every call. After ``attempts``
    lost races a ConflictError is raised.
    """
    try:
        for attempt in Retrying(
            stop=stop_after_attempt(max(int(attempts), 1)),
            wait=wait_random(min=0, max=0.02),
            retry=retry_if_exception_type(StaleWriteError),
            reraise=True,
        ):
            with attempt:
                return operation()
    except StaleWriteError:
        log.warning("cas_retries_exhausted", what=what, attempts=attempts)
        raise ConflictError(f"Concurrent update on {what}; please retry")
    raise AssertionError("unreachable")
