"""Priority scheduler made of 64 revolving FIFO buckets."""

from __future__ import annotations

import threading
import time
from typing import Generic, List, Optional, TypeVar

from wpool.errors import InvalidPriorityError, PoolError, QueuePushError
from wpool.job import Batch, Job
from wpool.options import Options
from wpool.segmented_queue import SegmentedQueue
from wpool.stats import (
    _sched_add_total_pops,
    _sched_bucket_push,
    _sched_mask_clear,
    _sched_pop_miss,
    _sched_pops,
    _sched_rotate_abort,
    _sched_rotate_call,
    _sched_rotate_move,
    _sched_total_push,
)

T = TypeVar("T")

MIN_BUCKET_PRIORITY = 1
MAX_BUCKET_PRIORITY = 63
BUCKET_COUNT = 64
_BUCKET_MASK = BUCKET_COUNT - 1


class RevolvingBucketQueue(Generic[T]):
    """Jobs go to bucket (base + priority) mod 64; the base bucket is served first.

    When the base bucket runs dry, the base moves to the lowest-numbered
    bucket that still holds work.
    """

    def __init__(self, options: Options) -> None:
        self._buckets: List[SegmentedQueue] = [SegmentedQueue(options) for _ in range(BUCKET_COUNT)]
        self._state_lock = threading.Lock()
        self._rotate_lock = threading.Lock()
        self._base = 0
        self._mask = 0
        self._has_work = False

    @property
    def base(self) -> int:
        """Index of the bucket currently being served."""
        with self._state_lock:
            return self._base

    def push(self, job: Job) -> None:
        """Enqueue a job according to its priority (1..63)."""
        priority = job.priority
        if not MIN_BUCKET_PRIORITY <= priority <= MAX_BUCKET_PRIORITY:
            raise InvalidPriorityError()
        with self._state_lock:
            base = self._base
        idx = (base + priority) & _BUCKET_MASK
        try:
            self._buckets[idx].push(job)
        except PoolError as exc:
            raise QueuePushError() from exc
        _sched_bucket_push(idx)
        _sched_total_push()
        with self._state_lock:
            self._mask |= 1 << idx
            self._has_work = True

    def batch_pop(self) -> Optional[Batch]:
        """Take a batch from the base bucket, rotating as needed; None if empty."""
        with self._state_lock:
            if not self._has_work:
                if self._mask == 0:
                    return None
                self._has_work = True
        while True:
            base = self.base
            bucket = self._buckets[base]
            batch = bucket.batch_pop()
            if batch is not None:
                batch.meta = base
                _sched_pops(base)
                _sched_add_total_pops(len(batch.jobs))
                return batch
            _sched_pop_miss(base)
            if bucket.maybe_has_work():
                _sched_rotate_abort()
                time.sleep(0)
                continue
            if not self._rotate():
                return None

    def _rotate(self) -> bool:
        _sched_rotate_call()
        with self._rotate_lock, self._state_lock:
            base = self._base
            if self._buckets[base].maybe_has_work():
                return True
            cleared = self._mask & ~(1 << base)
            if cleared == 0:
                self._mask = 0
                self._has_work = False
                _sched_mask_clear()
                return False
            self._base = (cleared & -cleared).bit_length() - 1
            self._mask = cleared
            _sched_rotate_move()
            return True

    def on_batch_done(self, batch: Batch) -> None:
        """Release a batch returned by batch_pop."""
        bucket = batch.meta
        if not isinstance(bucket, int) or isinstance(bucket, bool):
            raise TypeError("batch meta is not a bucket index")
        self._buckets[bucket].on_batch_done(batch)

    def maybe_has_work(self) -> bool:
        """Cheap check whether any bucket may hold work."""
        with self._state_lock:
            return self._mask != 0

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets)