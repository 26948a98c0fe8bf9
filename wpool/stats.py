"""Debug counters of queue and scheduler activity.

Counting is off by default; turn it on with set_debug(True).
"""

from __future__ import annotations

import sys
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Any

_lock = threading.Lock()
_debug = False
_segments: Counter = Counter()
_scheduler: Counter = Counter()
_bucket_pushes: Counter = Counter()
_bucket_pops: Counter = Counter()
_bucket_misses: Counter = Counter()


@dataclass(frozen=True)
class Stats:
    """Snapshot of segment queue counters; approximate, for trend analysis."""

    allocated: int = 0
    recycled: int = 0
    consumed: int = 0
    cas_miss: int = 0


def set_debug(enabled: bool) -> None:
    """Turn counting and printing of debug statistics on or off."""
    global _debug
    _debug = bool(enabled)


def reset_stats() -> None:
    """Clear every counter."""
    with _lock:
        for counter in (_segments, _scheduler, _bucket_pushes, _bucket_pops, _bucket_misses):
            counter.clear()


def _bump(counter: Counter, key: Any, n: int = 1) -> None:
    if not _debug:
        return
    with _lock:
        counter[key] += n


def _stat_allocated() -> None:
    _bump(_segments, "allocated")


def _stat_recycled() -> None:
    _bump(_segments, "recycled")


def _stat_consumed() -> None:
    _bump(_segments, "consumed")


def _stat_cas_miss() -> None:
    _bump(_segments, "cas_miss")


def _sched_bucket_push(bucket: int) -> None:
    _bump(_bucket_pushes, bucket)


def _sched_total_push() -> None:
    _bump(_scheduler, "total_pushes")


def _sched_pops(bucket: int) -> None:
    _bump(_bucket_pops, bucket)


def _sched_add_total_pops(n: int) -> None:
    _bump(_scheduler, "total_pops", n)


def _sched_pop_miss(bucket: int) -> None:
    _bump(_bucket_misses, bucket)


def _sched_rotate_abort() -> None:
    _bump(_scheduler, "rotate_aborts")


def _sched_mask_clear() -> None:
    _bump(_scheduler, "mask_clears")


def _sched_rotate_move() -> None:
    _bump(_scheduler, "rotate_moves")


def _sched_rotate_call() -> None:
    _bump(_scheduler, "rotate_calls")


def snapshot_stats() -> Stats:
    """Point-in-time copy of the segment queue counters."""
    with _lock:
        return Stats(
            allocated=_segments["allocated"],
            recycled=_segments["recycled"],
            consumed=_segments["consumed"],
            cas_miss=_segments["cas_miss"],
        )


def print_stat() -> None:
    """Print the segment queue counters to stderr when debugging is on."""
    if not _debug:
        return
    s = snapshot_stats()
    print(
        "allocated / recycled / consumed / CAS misses :",
        s.allocated,
        s.recycled,
        s.consumed,
        s.cas_miss,
        file=sys.stderr,
    )


def scheduler_stats() -> dict:
    """Scheduler counters, with per-bucket counts for buckets that saw activity."""
    with _lock:
        indices = sorted(set(_bucket_pushes) | set(_bucket_pops) | set(_bucket_misses))
        buckets = {
            i: {
                "pushes": _bucket_pushes[i],
                "pops": _bucket_pops[i],
                "pop_misses": _bucket_misses[i],
            }
            for i in indices
            if _bucket_pushes[i] or _bucket_pops[i] or _bucket_misses[i]
        }
        return {
            "rotate_calls": _scheduler["rotate_calls"],
            "rotate_moves": _scheduler["rotate_moves"],
            "rotate_aborts": _scheduler["rotate_aborts"],
            "mask_clears": _scheduler["mask_clears"],
            "total_pushes": _scheduler["total_pushes"],
            "total_pops": _scheduler["total_pops"],
            "buckets": buckets,
        }


def dump_scheduler_stats() -> None:
    """Print the scheduler counters to stdout when debugging is on."""
    if not _debug:
        return
    s = scheduler_stats()
    print(
        f"rotates: calls={s['rotate_calls']} moves={s['rotate_moves']} "
        f"aborts={s['rotate_aborts']} clears={s['mask_clears']} "
        f"totalPushes={s['total_pushes']} totalPops={s['total_pops']}"
    )
    for i, b in s["buckets"].items():
        print(f"  bucket[{i:02d}]: push={b['pushes']} pop={b['pops']} miss={b['pop_misses']}")