"""Metrics hooks through which the pool reports queueing and execution."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod


class MetricsPolicy(ABC):
    """Hooks called by the pool; implementations must be thread-safe and cheap."""

    @abstractmethod
    def inc_executed(self) -> None:
        """Count one executed job."""

    @abstractmethod
    def inc_queued(self) -> None:
        """Count one queued job."""

    @abstractmethod
    def batch_dec_queued(self, n: int) -> None:
        """Remove n jobs from the queued count."""


class AtomicMetrics(MetricsPolicy):
    """Thread-safe counters of executed and currently queued jobs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._executed = 0
        self._queued = 0

    def executed(self) -> int:
        """Total number of executed jobs."""
        with self._lock:
            return self._executed

    def queued(self) -> int:
        """Current number of queued jobs."""
        with self._lock:
            return self._queued

    def inc_executed(self) -> None:
        with self._lock:
            self._executed += 1

    def inc_queued(self) -> None:
        with self._lock:
            self._queued += 1

    def batch_dec_queued(self, n: int) -> None:
        with self._lock:
            self._queued -= n


class NoopMetrics(MetricsPolicy):
    """Metrics that discard every update."""

    def inc_executed(self) -> None:
        pass

    def inc_queued(self) -> None:
        pass

    def batch_dec_queued(self, n: int) -> None:
        pass