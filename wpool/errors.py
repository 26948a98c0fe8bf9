"""Exceptions raised by the worker pool and its queues."""

from __future__ import annotations

from typing import Any


class PoolError(Exception):
    """Base class for every error raised by the package."""

    default_message = "workerpool: error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class PoolClosedError(PoolError):
    """A job was submitted to a pool that has been shut down."""

    default_message = "workerpool: pool is closed"


class QueueFullError(PoolError):
    """The scheduling queue refused to accept a job."""

    default_message = "workerpool: queue is full"


class NilFuncError(PoolError):
    """A job was submitted or executed without a function."""

    default_message = "workerpool: job func is nil"


class JobPanicError(PoolError):
    """A job function raised; the exception was caught and converted."""

    default_message = "workerpool: job panic. "

    def __init__(self, value: Any = None) -> None:
        self.value = value
        if value is None:
            super().__init__()
        else:
            super().__init__(f"{self.default_message}\npanic: {value}")


class InvalidPriorityError(PoolError):
    """A job priority is outside the range the bucket queue accepts."""

    default_message = "bucket queue: invalid priority"


class QueuePushError(PoolError):
    """A bucket could not store a job in its underlying segmented queue."""

    default_message = "bucket queue: failed to push into segmented queue"


class NilSegmentError(PoolError):
    """The segmented queue has no tail segment to push into."""

    default_message = "NULL segment"


class CanceledError(PoolError):
    """The job's context was canceled."""

    default_message = "context canceled"


class DeadlineExceededError(PoolError, TimeoutError):
    """The deadline of a context or a shutdown wait passed."""

    default_message = "context deadline exceeded"