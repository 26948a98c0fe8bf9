"""FIFO queue of jobs stored in fixed-size, recycled segments."""

from __future__ import annotations

import threading
from typing import Generic, Iterator, List, Optional, TypeVar

from wpool.errors import NilSegmentError
from wpool.job import Batch, Job
from wpool.options import Options
from wpool.stats import _stat_allocated, _stat_consumed, _stat_recycled

T = TypeVar("T")


class _Segment:
    """A fixed-capacity chunk of jobs; a node of the queue's linked list."""

    __slots__ = ("capacity", "jobs", "head", "inflight", "detached", "next", "generation")

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.jobs: List[Job] = []
        self.head = 0
        self.inflight = 0
        self.detached = False
        self.next: Optional[_Segment] = None
        self.generation = 1
        _stat_allocated()

    @property
    def full(self) -> bool:
        return len(self.jobs) >= self.capacity

    @property
    def pending(self) -> int:
        return len(self.jobs) - self.head

    def reset(self) -> None:
        self.jobs = []
        self.head = 0
        self.inflight = 0
        self.next = None
        self.detached = False
        self.generation += 1


class _SegmentPool:
    """Keeps up to `capacity` reusable segments."""

    def __init__(self, segment_size: int, capacity: int) -> None:
        self._segment_size = segment_size
        self._capacity = capacity
        self._free: List[_Segment] = []

    def preallocate(self, count: int) -> None:
        self._free.extend(_Segment(self._segment_size) for _ in range(count))

    def get(self) -> _Segment:
        if not self._free:
            return _Segment(self._segment_size)
        seg = self._free.pop()
        _stat_consumed()
        return seg

    def put(self, seg: _Segment) -> None:
        if len(self._free) < self._capacity:
            self._free.append(seg)
        _stat_recycled()

    def __len__(self) -> int:
        return len(self._free)


class SegmentedQueue(Generic[T]):
    """Thread-safe FIFO queue that hands out jobs in contiguous batches.

    A batch never spans two segments. Every batch must be returned through
    on_batch_done so that exhausted segments can be reused.
    """

    def __init__(self, options: Options) -> None:
        if options.segment_size <= 0:
            raise ValueError("segment size must be positive")
        self._segment_size = options.segment_size
        capacity = options.pool_capacity
        if capacity <= 0:
            capacity = options.segment_count * 2
        self._lock = threading.Lock()
        self._pool = _SegmentPool(options.segment_size, capacity)
        self._pool.preallocate(max(0, options.segment_count))
        first = self._pool.get()
        self._head: Optional[_Segment] = first
        self._tail: Optional[_Segment] = first

    @property
    def segment_size(self) -> int:
        """Number of jobs one segment holds."""
        return self._segment_size

    def push(self, job: Job) -> None:
        """Append a job at the tail of the queue."""
        with self._lock:
            seg = self._tail
            if seg is None:
                raise NilSegmentError()
            if seg.full:
                nxt = seg.next if seg.next is not None else self._pool.get()
                seg.next = nxt
                self._tail = nxt
                seg = nxt
            seg.jobs.append(job)

    def batch_pop(self) -> Optional[Batch]:
        """Remove every available job of the head segment, or return None if empty."""
        with self._lock:
            while True:
                seg = self._head
                if seg is None:
                    return None
                if seg.pending > 0:
                    start, end = seg.head, len(seg.jobs)
                    seg.head = end
                    seg.inflight += 1
                    return Batch(jobs=seg.jobs[start:end], segment=seg, end=end)
                if seg.next is None:
                    return None
                self._head = seg.next
                seg.detached = True
                self._try_recycle(seg)

    def on_batch_done(self, batch: Batch) -> None:
        """Release a batch returned by batch_pop."""
        seg = batch.segment
        if seg is None:
            return
        with self._lock:
            seg.inflight -= 1
            if seg.inflight < 0:
                raise RuntimeError("inflight went negative")
            self._try_recycle(seg)

    def _try_recycle(self, seg: _Segment) -> None:
        if not seg.detached or seg.inflight != 0:
            return
        if seg is self._head or seg is self._tail:
            return
        seg.reset()
        self._pool.put(seg)

    def _segments(self) -> Iterator[_Segment]:
        seg = self._head
        while seg is not None:
            yield seg
            seg = seg.next

    def maybe_has_work(self) -> bool:
        """Cheap check whether a batch_pop could return jobs."""
        with self._lock:
            seg = self._head
            if seg is None:
                return False
            return seg.pending > 0 or seg.next is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(seg.pending for seg in self._segments())