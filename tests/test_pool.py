import random
import threading
import time

import pytest

from wpool.errors import (
    CanceledError,
    DeadlineExceededError,
    JobPanicError,
    NilFuncError,
    PoolClosedError,
    QueueFullError,
)
from wpool.job import Context, Job
from wpool.metrics import AtomicMetrics, NoopMetrics
from wpool.options import Options, QueueType, build_options, with_queue_type, with_workers
from wpool.pool import Pool

QUEUE_TYPES = [QueueType.SEGMENTED]


def new_test_pool(workers, qt, **kwargs):
    return Pool(NoopMetrics(), build_options(with_workers(workers), with_queue_type(qt)), **kwargs)


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.001)
    return predicate()


@pytest.mark.parametrize("qt", QUEUE_TYPES)
def test_job_success(qt):
    p = new_test_pool(1, qt)
    done = threading.Event()
    try:
        p.submit(Job(payload=1, ctx=Context.with_timeout(2.0), fn=lambda n: done.set()))
        assert done.wait(0.5), "job did not complete in time"
        p.shutdown(1.0)
        assert p.active_workers() == 0
    finally:
        p.stop()


@pytest.mark.parametrize("qt", QUEUE_TYPES)
def test_shutdown_timeout(qt):
    p = new_test_pool(1, qt)
    started = threading.Event()
    done = threading.Event()

    def slow(_):
        started.set()
        time.sleep(0.3)
        done.set()

    p.submit(Job(payload=1, ctx=Context(), fn=slow))
    assert started.wait(1.0), "job did not start in time"

    with pytest.raises(DeadlineExceededError):
        p.shutdown(0.01)

    assert done.wait(0.5), "job did not finish after shutdown timeout"
    assert p.shutdown() is None
    assert p.active_workers() == 0


@pytest.mark.parametrize("qt", QUEUE_TYPES)
def test_submit_after_shutdown(qt):
    p = new_test_pool(1, qt)
    p.shutdown()
    with pytest.raises(PoolClosedError):
        p.submit(Job(payload=1, ctx=Context(), fn=lambda n: None))


@pytest.mark.parametrize("qt", QUEUE_TYPES)
def test_panic_recovery_and_cleanup(qt):
    errors = []
    p = new_test_pool(1, qt, on_job_error=errors.append)
    lock = threading.Lock()
    cleaned = [0]
    second_done = threading.Event()

    def cleanup():
        with lock:
            cleaned[0] += 1

    def boom(_):
        raise RuntimeError("boom")

    try:
        p.submit(Job(payload=1, ctx=Context(), fn=boom, cleanup=cleanup))
        p.submit(Job(payload=2, ctx=Context(), fn=lambda n: second_done.set(), cleanup=cleanup))
        assert second_done.wait(0.5), "second job did not complete after first panicked"
        assert wait_until(lambda: cleaned[0] == 2, 1.0)
        with lock:
            assert cleaned[0] == 2
        assert len(errors) == 1
        assert isinstance(errors[0], JobPanicError)
        assert "boom" in str(errors[0])
    finally:
        p.stop()


@pytest.mark.parametrize("qt", QUEUE_TYPES)
def test_submit_canceled_context(qt):
    p = new_test_pool(1, qt)
    try:
        ctx = Context()
        ctx.cancel()
        with pytest.raises(CanceledError):
            p.submit(Job(ctx=ctx, fn=lambda n: None))
    finally:
        p.stop()


def test_submit_without_function_raises():
    p = new_test_pool(1, QueueType.SEGMENTED)
    try:
        with pytest.raises(NilFuncError):
            p.submit(Job(payload=1))
    finally:
        p.stop()


def test_returned_error_is_reported():
    errors = []
    p = new_test_pool(1, QueueType.SEGMENTED, on_job_error=errors.append)
    failure = ValueError("bad payload")
    try:
        p.submit(Job(payload=1, fn=lambda n: failure))
        assert wait_until(lambda: len(errors) == 1, 2.0)
        assert errors[0] is failure
    finally:
        p.stop()


def test_bucket_queue_rejects_zero_priority():
    p = new_test_pool(1, QueueType.REVOLVING_BUCKET)
    try:
        with pytest.raises(QueueFullError):
            p.submit(Job(payload=1, fn=lambda n: None))
    finally:
        p.stop()


def test_active_workers_and_idle_count():
    p = new_test_pool(3, QueueType.SEGMENTED)
    try:
        assert p.active_workers() == 3
        assert wait_until(lambda: p.idle_count() == 3, 2.0)
    finally:
        p.stop()
    assert p.active_workers() == 0


def test_context_manager_stops_pool():
    with new_test_pool(2, QueueType.SEGMENTED) as p:
        ran = threading.Event()
        p.submit(Job(payload=0, fn=lambda n: ran.set()))
        assert ran.wait(2.0)
    assert p.active_workers() == 0
    with pytest.raises(PoolClosedError):
        p.submit(Job(payload=0, fn=lambda n: None))


def test_atomic_metrics_track_execution():
    metrics = AtomicMetrics()
    p = Pool(metrics, build_options(with_workers(2)))
    total = 600
    try:
        assert p.metrics() is metrics
        for i in range(total):
            p.submit(Job(payload=i, fn=lambda n: None))
        assert wait_until(lambda: metrics.executed() == total and metrics.queued() == 0, 10.0)
        assert metrics.executed() == total
        assert metrics.queued() == 0
    finally:
        p.stop()


def test_many_producers_bucket_queue_all_jobs_executed():
    options = Options(
        workers=4,
        queue_type=QueueType.REVOLVING_BUCKET,
        segment_size=1024,
        segment_count=2,
        pool_capacity=64,
        pin_workers=False,
    )
    metrics = AtomicMetrics()
    p = Pool(metrics, options)
    lock = threading.Lock()
    executed = [0]
    submitted = [0]

    def work(_):
        with lock:
            executed[0] += 1

    def producer(seed):
        rng = random.Random(seed)
        for _ in range(500):
            p.submit(Job(payload=0, fn=work, priority=rng.randint(1, 62)))
            with lock:
                submitted[0] += 1

    try:
        producers = [threading.Thread(target=producer, args=(s,)) for s in range(4)]
        for t in producers:
            t.start()
        for t in producers:
            t.join()
        assert submitted[0] == 2000
        assert wait_until(lambda: metrics.executed() == 2000 and metrics.queued() == 0, 15.0)
        assert metrics.executed() == 2000
        assert metrics.queued() == 0
        assert executed[0] == 2000
    finally:
        p.stop()


def test_pinned_workers_still_run_jobs():
    p = Pool(NoopMetrics(), Options(workers=1, pin_workers=True))
    ran = threading.Event()
    try:
        p.submit(Job(payload=5, fn=lambda n: ran.set() if n == 5 else None))
        assert ran.wait(2.0)
    finally:
        p.stop()