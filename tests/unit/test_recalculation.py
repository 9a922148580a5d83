import pytest
from conftest import InMemoryObjectStore

from storage_limit.services.events import UsageRecalculated
from storage_limit.services.recalculation import RecalculationEngine

MISSING = {10, 120, 240}


def five_mib_library() -> tuple[list[int], list[int | None]]:
    """250 objects whose sizes add up to exactly 5 MiB."""
    sizes = [20_971] * 250
    sizes[-1] += 5 * 1024 * 1024 - sum(sizes)
    present = [None if index in MISSING else size for index, size in enumerate(sizes)]
    return sizes, present


def test_recalculation_skips_missing_files(usage_store, sink):
    sizes, present = five_mib_library()
    assert sum(sizes) == 5_242_880
    store = InMemoryObjectStore(present)
    engine = RecalculationEngine(store, usage_store, sink, batch_size=100)

    result = engine.recalculate_with_report()

    expected = sum(size for index, size in enumerate(sizes) if index not in MISSING)
    assert expected == 5_179_967
    assert result.total_bytes == expected
    assert result.processed_count == 247
    assert result.missing_count == 3
    assert usage_store.get_current_usage() == expected
    assert store.calls == [(100, 0), (100, 100), (100, 200)]
    assert sink.of_type(UsageRecalculated) == [UsageRecalculated(expected, 247, 3)]


def test_recalculate_returns_total_and_updates_store(usage_store):
    _, present = five_mib_library()
    engine = RecalculationEngine(InMemoryObjectStore(present), usage_store, usage_store.events)

    assert engine.recalculate() == 5_179_967
    assert usage_store.get_current_usage() == 5_179_967


def test_recalculation_is_idempotent(usage_store, sink):
    engine = RecalculationEngine(InMemoryObjectStore([10, 20, None, 30]), usage_store, sink)

    first = engine.recalculate()
    second = engine.recalculate()

    assert first == second == 60
    assert usage_store.get_current_usage() == 60


def test_recalculation_corrects_drift(usage_store, sink):
    usage_store.apply_delta(999_999)
    engine = RecalculationEngine(InMemoryObjectStore([100, 200]), usage_store, sink)

    engine.recalculate()

    assert usage_store.get_current_usage() == 300


def test_pagination_stops_on_empty_page(usage_store, sink):
    store = InMemoryObjectStore([1] * 200)
    engine = RecalculationEngine(store, usage_store, sink, batch_size=100)

    assert engine.recalculate() == 200
    assert store.calls == [(100, 0), (100, 100), (100, 200)]


def test_empty_library_overwrites_with_zero(usage_store, sink):
    usage_store.apply_delta(500)
    engine = RecalculationEngine(InMemoryObjectStore([]), usage_store, sink)

    result = engine.recalculate_with_report()

    assert (result.total_bytes, result.processed_count, result.missing_count) == (0, 0, 0)
    assert usage_store.get_current_usage() == 0


def test_batch_size_must_be_positive(usage_store, sink):
    with pytest.raises(ValueError):
        RecalculationEngine(InMemoryObjectStore([]), usage_store, sink, batch_size=0)
