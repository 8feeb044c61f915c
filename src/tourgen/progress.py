"""Narrow progress and cancellation capabilities injected by the host."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

__all__ = [
    "CallbackProgress",
    "CancellationFlag",
    "CancellationToken",
    "ProgressEvent",
    "ProgressSink",
    "emit_progress",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    """Advisory progress notice; ``increment`` is a relative weight."""

    message: str
    increment: float = 0.0


class ProgressSink(Protocol):
    def emit(self, event: ProgressEvent) -> None: ...


class CancellationToken(Protocol):
    def is_cancelled(self) -> bool: ...


class CallbackProgress:
    """Adapt a plain callable into a :class:`ProgressSink`."""

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self._callback = callback

    def emit(self, event: ProgressEvent) -> None:
        self._callback(event)


class CancellationFlag:
    """Thread-safe token the host flips to request cancellation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


def emit_progress(sink: Optional[ProgressSink], message: str, increment: float = 0.0) -> None:
    """Send an event to ``sink``; a failing sink never disturbs the pipeline."""
    if sink is None:
        return
    try:
        sink.emit(ProgressEvent(message=message, increment=increment))
    except Exception:
        LOGGER.warning("Progress sink rejected event %r", message, exc_info=True)
