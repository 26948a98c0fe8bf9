"""Pool configuration: queue types, options and option helpers."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Callable

DEFAULT_SEGMENT_SIZE = 4096
"""Default number of jobs stored in one queue segment."""


def _default_workers() -> int:
    return os.cpu_count() or 1


DEFAULT_SEGMENT_COUNT = _default_workers() * 16
"""Default number of segments preallocated on startup; scales with CPUs."""


class QueueType(enum.IntEnum):
    """Scheduling strategy used by the pool."""

    SEGMENTED = 0
    REVOLVING_BUCKET = 1

    def __str__(self) -> str:
        if self is QueueType.SEGMENTED:
            return "SegmentedQueue"
        return "Unknown"


@dataclass
class Options:
    """Settings of a worker pool; zero values are replaced by defaults."""

    workers: int = 0
    segment_size: int = 0
    segment_count: int = 0
    pool_capacity: int = 0
    queue_type: QueueType = QueueType.SEGMENTED
    pin_workers: bool = False

    def fill_defaults(self) -> None:
        """Replace zero or negative fields with their defaults."""
        if self.workers <= 0:
            self.workers = _default_workers()
        if self.segment_size <= 0:
            self.segment_size = DEFAULT_SEGMENT_SIZE
        if self.segment_count <= 0:
            self.segment_count = DEFAULT_SEGMENT_COUNT


Option = Callable[[Options], None]


def with_workers(n: int) -> Option:
    """Set the number of workers."""

    def apply(o: Options) -> None:
        o.workers = n

    return apply


def with_segment_size(n: int) -> Option:
    """Set the number of jobs per queue segment."""

    def apply(o: Options) -> None:
        o.segment_size = n

    return apply


def with_segment_count(n: int) -> Option:
    """Set the number of segments preallocated on startup."""

    def apply(o: Options) -> None:
        o.segment_count = n

    return apply


def with_pinned_workers(enabled: bool) -> Option:
    """Enable or disable CPU pinning of workers."""

    def apply(o: Options) -> None:
        o.pin_workers = enabled

    return apply


def with_queue_type(qt: QueueType) -> Option:
    """Select the scheduler queue implementation."""

    def apply(o: Options) -> None:
        o.queue_type = qt

    return apply


def build_options(*args: Option) -> Options:
    """Apply the given options to fresh settings and fill in defaults."""
    options = Options()
    for opt in args:
        opt(options)
    options.fill_defaults()
    return options