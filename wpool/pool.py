"""Worker pool that runs submitted jobs in batches on a set of threads."""

from __future__ import annotations

import os
import queue
import threading
import time
from typing import Callable, List, Optional

from wpool.bucket_scheduler import RevolvingBucketQueue
from wpool.errors import (
    DeadlineExceededError,
    JobPanicError,
    NilFuncError,
    PoolClosedError,
    PoolError,
    QueueFullError,
)
from wpool.job import Batch, Job
from wpool.metrics import MetricsPolicy, NoopMetrics
from wpool.options import Options, QueueType
from wpool.segmented_queue import SegmentedQueue

DEFAULT_PUSH_BATCH = 256
"""Pending jobs needed before a submission wakes a worker eagerly."""

BATCH_TIMER_INTERVAL = 30e-6
"""Period of the timer that wakes a worker when jobs wait too long."""

ErrorHandler = Callable[[BaseException], None]


def pin_to_cpu(cpu: int) -> None:
    """Restrict the calling thread to one CPU; does nothing where unsupported."""
    setaffinity = getattr(os, "sched_setaffinity", None)
    if setaffinity is not None:
        setaffinity(0, {cpu})


def _make_queue(options: Options):
    if options.queue_type == QueueType.REVOLVING_BUCKET:
        return RevolvingBucketQueue(options)
    return SegmentedQueue(options)


class Pool:
    """A fixed set of worker threads fed through a batching queue.

    Job errors and exceptions raised by jobs are passed to on_job_error;
    they never stop a worker.
    """

    def __init__(
        self,
        metrics: Optional[MetricsPolicy] = None,
        options: Optional[Options] = None,
        *,
        on_job_error: Optional[ErrorHandler] = None,
        on_internal_error: Optional[ErrorHandler] = None,
        timer_interval: float = BATCH_TIMER_INTERVAL,
    ) -> None:
        opts = Options() if options is None else Options(**vars(options))
        opts.fill_defaults()
        self._options = opts
        self._metrics: MetricsPolicy = metrics if metrics is not None else NoopMetrics()
        self._metrics_lock = threading.Lock()
        self._queue = _make_queue(opts)
        self.on_job_error = on_job_error
        self.on_internal_error = on_internal_error
        self._timer_interval = timer_interval

        self._state_lock = threading.Lock()
        self._shutdown = False
        self._stop_once = threading.Lock()
        self._done = threading.Event()
        self._pending = 0
        self._batch_in_flight = False
        self._last_drain = time.monotonic()

        self._idle: "queue.Queue[int]" = queue.Queue(maxsize=opts.workers)
        self._wakes: List[threading.Event] = [threading.Event() for _ in range(opts.workers)]
        self._active: List[bool] = [False] * opts.workers
        self._threads: List[threading.Thread] = []

        for wid in range(opts.workers):
            self._active[wid] = True
            thread = threading.Thread(
                target=self._batch_worker, args=(wid,), name=f"wpool-worker-{wid}", daemon=True
            )
            self._threads.append(thread)
            thread.start()

        self._timer = threading.Thread(target=self._batch_timer, name="wpool-timer", daemon=True)
        self._timer.start()

    # -- public API -----------------------------------------------------

    def submit(self, job: Job) -> None:
        """Enqueue a job; may wake a worker once enough jobs are pending."""
        if self._shutdown:
            raise PoolClosedError()
        if job.fn is None:
            raise NilFuncError()
        if job.ctx is not None and job.ctx.done():
            raise job.ctx.error()
        try:
            self._queue.push(job)
        except PoolError as exc:
            raise QueueFullError() from exc
        self._metrics.inc_queued()

        with self._state_lock:
            self._pending += 1
            pending = self._pending
        if pending < DEFAULT_PUSH_BATCH:
            return
        if self._wake_idle_worker():
            with self._state_lock:
                self._last_drain = time.monotonic()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the pool and wait for workers; raise DeadlineExceededError on timeout."""
        with self._stop_once:
            if not self._shutdown:
                self._shutdown = True
                self._done.set()
                for wake in self._wakes:
                    wake.set()
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
            if thread.is_alive():
                raise DeadlineExceededError()

    def stop(self) -> None:
        """Shut down and wait for workers without a time limit."""
        self.shutdown()

    def metrics(self) -> MetricsPolicy:
        """The metrics object the pool reports to."""
        with self._metrics_lock:
            return self._metrics

    def active_workers(self) -> int:
        """Number of workers started and not yet exited."""
        with self._state_lock:
            return sum(self._active)

    def idle_count(self) -> int:
        """Number of workers waiting to be woken."""
        return self._idle.qsize()

    def __enter__(self) -> "Pool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -- internals ------------------------------------------------------

    def _report_internal_error(self, error: BaseException) -> None:
        if self.on_internal_error is not None:
            self.on_internal_error(error)

    def _report_job_error(self, error: BaseException) -> None:
        if self.on_job_error is not None:
            self.on_job_error(error)

    def _set_in_flight(self, value: bool) -> None:
        with self._state_lock:
            self._batch_in_flight = value

    def _wake_idle_worker(self) -> bool:
        with self._state_lock:
            if self._batch_in_flight:
                return False
            self._batch_in_flight = True
        try:
            wid = self._idle.get_nowait()
        except queue.Empty:
            self._set_in_flight(False)
            return False
        self._wakes[wid].set()
        return True

    def _run_job(self, job: Job) -> Optional[BaseException]:
        try:
            try:
                if job.ctx is not None and job.ctx.done():
                    return job.ctx.error()
                if job.fn is None:
                    return NilFuncError()
                try:
                    result = job.fn(job.payload)
                except Exception as exc:
                    error = JobPanicError(exc)
                    error.__cause__ = exc
                    return error
                return result if isinstance(result, BaseException) else None
            finally:
                self._metrics.inc_executed()
        finally:
            if job.cleanup is not None:
                try:
                    job.cleanup()
                except Exception:
                    pass

    def _run_batch(self, batch: Batch) -> None:
        for job in batch.jobs:
            error = self._run_job(job)
            if error is not None:
                self._report_job_error(error)

    def _process_batches(self) -> int:
        count = 0
        while True:
            batch = self._queue.batch_pop()
            if batch is None:
                return count
            self._run_batch(batch)
            count += len(batch.jobs)
            self._queue.on_batch_done(batch)

    def _batch_worker(self, wid: int) -> None:
        wake = self._wakes[wid]
        try:
            if self._options.pin_workers:
                try:
                    pin_to_cpu(wid % (os.cpu_count() or 1))
                except OSError as exc:
                    self._report_internal_error(exc)

            if self._done.is_set():
                return
            self._idle.put_nowait(wid)

            while True:
                wake.wait()
                wake.clear()
                if self._shutdown:
                    return
                processed = self._process_batches()
                self._metrics.batch_dec_queued(processed)
                with self._state_lock:
                    self._pending = max(0, self._pending - processed)
                    self._batch_in_flight = False
                    self._last_drain = time.monotonic()
                if self._shutdown:
                    return
                try:
                    self._idle.put_nowait(wid)
                except queue.Full:
                    pass
        finally:
            with self._state_lock:
                self._batch_in_flight = False
                self._active[wid] = False

    def _batch_timer(self) -> None:
        interval = self._timer_interval
        while not self._done.wait(interval):
            if self._shutdown:
                return
            with self._state_lock:
                pending = self._pending
                since_drain = time.monotonic() - self._last_drain
            if pending == 0 or since_drain < interval:
                continue
            self._wake_idle_worker()