# wpool

A thread-based worker pool for running large numbers of short jobs.
Workers take jobs off a queue in batches, and each batch runs in order on one worker thread.
Jobs run in parallel only because there are several workers.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## Usage

```python
from wpool.pool import Pool
from wpool.job import Job, Context
from wpool.metrics import AtomicMetrics
from wpool.options import build_options, with_workers, with_queue_type, QueueType

def work(n):
    print("processing", n)

metrics = AtomicMetrics()
opts = build_options(with_workers(4), with_queue_type(QueueType.SEGMENTED))
pool = Pool(metrics, opts, on_job_error=lambda err: print("job failed:", err))
for i in range(1000):
    pool.submit(Job(payload=i, fn=work))
```

A `Pool` can be used as a context manager. On exit it calls `stop()`.

### Jobs

A `Job` (`wpool.job`) is a frozen dataclass with these fields:

- `payload`: the value passed to `fn`.
- `fn`: called as `fn(payload)`. If it returns an exception instance, the pool counts it as a job error. If it raises, the pool catches the exception, wraps it in a `JobPanicError`, and the worker carries on.
- `priority`: used only by the revolving-bucket scheduler.
- `ctx`: an optional `Context`. If the context is done before the job runs, the job is skipped and the context's error is reported.
- `cleanup`: optional. It runs after the job, even if the job failed or was skipped. Exceptions it raises are ignored.

Every job error is passed to `on_job_error`. Errors from pinning workers to CPUs are passed to `on_internal_error`.

### Context

`Context.with_timeout(seconds)` makes a context that expires after the given number of seconds. `Context()` makes one with no deadline.

| Method | What it does |
| --- | --- |
| `cancel()` | Cancels the context. |
| `done()` | Reports whether the context is cancelled or expired. |
| `error()` | Returns `CanceledError` or `DeadlineExceededError`, or `None` if the context is still live. |
| `wait(timeout)` | Blocks until the context is done or the timeout runs out. |

### Submitting

`Pool.submit(job)` raises:

- `PoolClosedError` once the pool has been shut down.
- `NilFuncError` when the job has no `fn`.
- The context's `CanceledError` or `DeadlineExceededError` when `ctx` is already done.
- `QueueFullError` when the queue refuses the job. For example, the revolving-bucket queue refuses a job whose priority is out of range.

When 256 jobs are pending, a submission wakes an idle worker. A timer thread also wakes a worker when jobs have waited longer than `timer_interval`, which defaults to 30 µs.

### Shutdown

`pool.shutdown(timeout=None)` stops the pool and waits for the worker threads to exit. If the timeout runs out first, it raises `DeadlineExceededError`. Calling it again later is safe. `pool.stop()` waits with no limit.

A worker finishes the batches it is running. Jobs that are still queued when shutdown starts are not run.

### Inspection

- `pool.metrics()` returns the metrics object.
- `pool.active_workers()` returns the number of worker threads that are still alive.
- `pool.idle_count()` returns the number of workers waiting to be woken.

For metrics, `AtomicMetrics` has thread-safe `executed()` and `queued()` counters. `NoopMetrics` discards every update. You can write your own subclass of `MetricsPolicy`.

### Options

`wpool.options.Options` has these fields:

- `workers`
- `segment_size`
- `segment_count`
- `pool_capacity`
- `queue_type`
- `pin_workers`

Any field that is zero is filled in by `fill_defaults()`:

- `workers` defaults to the CPU count.
- `segment_size` defaults to 4096.
- `segment_count` defaults to CPU count × 16.

The helper functions `with_workers`, `with_segment_size`, `with_segment_count`, `with_pinned_workers` and `with_queue_type` each set one field. Pass them to `build_options` to build an `Options`.

If `pin_workers` is set, each worker calls `pin_to_cpu`. That uses `os.sched_setaffinity` where the platform has it, and does nothing elsewhere.

### Schedulers

- `QueueType.SEGMENTED` uses `SegmentedQueue` (`wpool.segmented_queue`). It is a FIFO queue made of fixed-size segments, and it reuses segments once they are drained. Each batch is all the pending jobs of the head segment.
- `QueueType.REVOLVING_BUCKET` uses `RevolvingBucketQueue` (`wpool.bucket_scheduler`).
  - A job with priority `p` (1–63) goes into bucket `(base + p) mod 64`.
  - The base bucket is served first.
  - When the base bucket is empty, the base moves to the lowest-numbered bucket that still holds work.
  - Calling `push` directly with a priority outside 1–63 raises `InvalidPriorityError`.
  - A `Job`'s default priority is 0, so jobs for this scheduler must set `priority`.

Both queues have the methods `push`, `batch_pop` (which returns `None` when the queue is empty), `on_batch_done`, `maybe_has_work` and `len()`.

### Debug statistics

`wpool.stats.set_debug(True)` turns on counters for segment allocation, reuse and scheduler rotation. Read them with `snapshot_stats()` and `scheduler_stats()`, and clear them with `reset_stats()`. To print them while debugging is on:

- `print_stat()` writes to stderr.
- `dump_scheduler_stats()` writes to stdout.

## What it does not do

wpool is a library only. It has no command-line tool and no benchmark runner. Workers are Python threads, so CPU-bound jobs do not run in parallel beyond what the interpreter allows.