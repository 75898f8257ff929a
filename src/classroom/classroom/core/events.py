from __future__ import annotations

from typing import Any, Protocol

from .logging import get_logger


class EventSink(Protocol):
    """Informational audit/notification hook.

    Services emit after a state change has been persisted; sinks must not
    raise back into the caller's flow.
    """

    def emit(self, event: str, **fields: Any) -> None:
        raise NotImplementedError


class LoggingEventSink:
    """Default sink: one structured log line per event."""

    def __init__(self, logger_name: str = "classroom.events"):
        self._log = get_logger(logger_name)

    def emit(self, event: str, **fields: Any) -> None:
        self._log.info(event, **fields)


class NullEventSink:
    def emit(self, event: str, **fields: Any) -> None:
        return None
