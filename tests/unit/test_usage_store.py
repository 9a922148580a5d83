import random
import threading

import pytest

from storage_limit.core.errors import PersistenceFailure
from storage_limit.db.session import make_engine, make_session_factory
from storage_limit.services.events import UsageCleared, UsageUpdated
from storage_limit.services.usage_store import UsageStore


def test_uninitialized_usage_reads_zero(usage_store):
    assert usage_store.get_record() is None
    assert usage_store.get_current_usage() == 0


def test_apply_delta_accumulates_and_emits(usage_store, sink):
    usage_store.apply_delta(1000)
    usage_store.apply_delta(500)

    assert usage_store.get_current_usage() == 1500
    updates = sink.of_type(UsageUpdated)
    assert [event.total_bytes for event in updates] == [1000, 1500]
    assert usage_store.get_record().last_updated == updates[-1].last_updated


def test_deletions_clamp_at_zero(usage_store):
    usage_store.apply_delta(100)
    assert usage_store.apply_delta(-250) == 0
    assert usage_store.get_current_usage() == 0


def test_negative_first_delta_creates_zero_record(usage_store):
    assert usage_store.apply_delta(-10) == 0
    assert usage_store.get_record().total_bytes == 0


def test_usage_never_goes_negative_for_random_deltas(usage_store):
    rng = random.Random(1234)
    for _ in range(60):
        usage_store.apply_delta(rng.randint(-5000, 4000))
        assert usage_store.get_current_usage() >= 0


def test_overwrite_replaces_total(usage_store, sink):
    usage_store.apply_delta(42)
    usage_store.overwrite(7)

    assert usage_store.get_current_usage() == 7
    assert sink.of_type(UsageUpdated)[-1].total_bytes == 7


def test_overwrite_rejects_negative_total(usage_store):
    with pytest.raises(ValueError):
        usage_store.overwrite(-1)


def test_clear_resets_usage(usage_store, sink):
    usage_store.apply_delta(300)
    usage_store.clear()

    assert usage_store.get_record() is None
    assert usage_store.get_current_usage() == 0
    assert len(sink.of_type(UsageCleared)) == 1


def test_concurrent_deltas_are_not_lost(usage_store):
    usage_store.overwrite(0)

    def worker():
        for _ in range(25):
            usage_store.apply_delta(10)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert usage_store.get_current_usage() == 4 * 25 * 10


def test_persistence_errors_propagate(tmp_path, sink):
    engine = make_engine(f"sqlite:///{tmp_path / 'no-tables.db'}")
    store = UsageStore(make_session_factory(engine), sink)

    with pytest.raises(PersistenceFailure):
        store.get_current_usage()
    with pytest.raises(PersistenceFailure):
        store.apply_delta(10)
    assert sink.events == []
    engine.dispose()
