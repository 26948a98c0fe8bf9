from wpool.options import (
    DEFAULT_SEGMENT_COUNT,
    DEFAULT_SEGMENT_SIZE,
    Options,
    QueueType,
    build_options,
    with_pinned_workers,
    with_queue_type,
    with_segment_count,
    with_segment_size,
    with_workers,
)


def test_fill_defaults_sets_workers():
    o = Options()
    o.fill_defaults()
    assert o.workers > 0


def test_fill_defaults_sets_segment_fields():
    o = Options()
    o.fill_defaults()
    assert o.segment_size == DEFAULT_SEGMENT_SIZE == 4096
    assert o.segment_count == DEFAULT_SEGMENT_COUNT
    assert o.segment_count > 0
    assert o.pool_capacity == 0
    assert o.queue_type is QueueType.SEGMENTED
    assert o.pin_workers is False


def test_fill_defaults_keeps_explicit_values():
    o = Options(workers=3, segment_size=512, segment_count=2, pool_capacity=8)
    o.fill_defaults()
    assert (o.workers, o.segment_size, o.segment_count, o.pool_capacity) == (3, 512, 2, 8)


def test_fill_defaults_replaces_negative_workers():
    o = Options(workers=-5)
    o.fill_defaults()
    assert o.workers > 0


def test_queue_type_names():
    default = build_options()
    assert str(default.queue_type) == "SegmentedQueue"
    bucket = build_options(with_queue_type(QueueType.REVOLVING_BUCKET))
    assert str(bucket.queue_type) == "Unknown"


def test_option_helpers_apply():
    o = Options()
    with_workers(7)(o)
    with_segment_size(1024)(o)
    with_segment_count(16)(o)
    with_pinned_workers(True)(o)
    with_queue_type(QueueType.REVOLVING_BUCKET)(o)
    assert o == Options(
        workers=7,
        segment_size=1024,
        segment_count=16,
        queue_type=QueueType.REVOLVING_BUCKET,
        pin_workers=True,
    )


def test_build_options_applies_in_order_and_fills_defaults():
    o = build_options(with_workers(1), with_workers(2), with_queue_type(QueueType.SEGMENTED))
    assert o.workers == 2
    assert o.segment_size == DEFAULT_SEGMENT_SIZE
    assert o.segment_count == DEFAULT_SEGMENT_COUNT


def test_build_options_without_arguments():
    assert build_options() == build_options()
    assert build_options().workers > 0