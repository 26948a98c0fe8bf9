"""Jobs, batches and the cancellation context that jobs carry."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from wpool.errors import CanceledError, DeadlineExceededError, PoolError

T = TypeVar("T")

JobFunc = Callable[[T], Optional[BaseException]]
"""A job function takes the payload and may return an error or raise."""


class Context:
    """Cancellation signal with an optional deadline."""

    def __init__(self, deadline: float | None = None) -> None:
        self._deadline = deadline
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._error: PoolError | None = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "Context":
        """A context that expires the given number of seconds from now."""
        return cls(deadline=time.monotonic() + seconds)

    def _finish(self, error: PoolError) -> None:
        with self._lock:
            if self._error is None:
                self._error = error
                self._event.set()

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._finish(DeadlineExceededError())

    def cancel(self) -> None:
        """Cancel the context; has no effect if it is already done."""
        self._finish(CanceledError())

    def done(self) -> bool:
        """Whether the context was canceled or its deadline passed."""
        self._check_deadline()
        return self._event.is_set()

    def error(self) -> PoolError | None:
        """The reason the context is done, or None while it is live."""
        self._check_deadline()
        return self._error

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or timeout passes; report whether done."""
        end = None if timeout is None else time.monotonic() + timeout
        while True:
            now = time.monotonic()
            limits = [t - now for t in (end, self._deadline) if t is not None]
            step = max(0.0, min(limits)) if limits else None
            if self._event.wait(step):
                return True
            if self.done():
                return True
            if end is not None and time.monotonic() >= end:
                return False


@dataclass(frozen=True)
class Job(Generic[T]):
    """A unit of work: fn is called with payload unless ctx is done first."""

    payload: Any = None
    fn: Optional[Callable[[Any], Optional[BaseException]]] = None
    priority: int = 0
    ctx: Optional[Context] = None
    cleanup: Optional[Callable[[], None]] = None


@dataclass
class Batch(Generic[T]):
    """A contiguous group of jobs taken from a queue.

    It must be handed back to the queue's on_batch_done once processed.
    meta is private to the queue that produced the batch.
    """

    jobs: Sequence[Job] = field(default_factory=list)
    segment: Any = None
    end: int = 0
    meta: Any = None