"""Thread-based batched worker pool with segmented and revolving-bucket schedulers."""

__version__ = "0.1.0"

__all__ = [
    "errors",
    "options",
    "metrics",
    "job",
    "stats",
    "segmented_queue",
    "bucket_scheduler",
    "pool",
]