import pytest

from storage_limit.core.errors import ObjectNotFound, PersistenceFailure
from storage_limit.services.lifecycle import MediaLifecycleHandler
from storage_limit.services.object_store import CatalogObjectStore
from storage_limit.services.recalculation import RecalculationEngine
from storage_limit.services.scheduler import PENDING_KEY, RecalculationScheduler
from storage_limit.services.storage import LocalFileBackend


@pytest.fixture
def catalog(session_factory, uploads_dir):
    return CatalogObjectStore(session_factory, LocalFileBackend(uploads_dir))


@pytest.fixture
def scheduler(catalog, usage_store, sink, leases, executor):
    engine = RecalculationEngine(catalog, usage_store, sink)
    return RecalculationScheduler(engine, leases, executor)


@pytest.fixture
def lifecycle(catalog, usage_store, scheduler):
    return MediaLifecycleHandler(catalog, usage_store, scheduler)


def test_register_adds_file_size_and_schedules_rescan(lifecycle, uploads_dir, usage_store, executor, leases):
    (uploads_dir / "clip.mp4").write_bytes(b"\0" * 4096)

    lifecycle.register("clip.mp4", "video/mp4")

    assert usage_store.get_current_usage() == 4096
    assert len(executor.jobs) == 1
    assert leases.is_held(PENDING_KEY)


def test_register_without_file_leaves_total_for_rescan(lifecycle, usage_store, executor):
    lifecycle.register("not-written-yet.jpg", "image/jpeg")

    assert usage_store.get_current_usage() == 0
    assert len(executor.jobs) == 1


def test_burst_of_uploads_schedules_one_rescan(lifecycle, uploads_dir, usage_store, executor):
    for index in range(10):
        (uploads_dir / f"{index}.png").write_bytes(b"x" * 100)
        lifecycle.register(f"{index}.png", "image/png")

    assert usage_store.get_current_usage() == 1000
    assert len(executor.jobs) == 1


def test_remove_subtracts_size_and_drops_object(lifecycle, catalog, uploads_dir, usage_store):
    (uploads_dir / "keep.png").write_bytes(b"x" * 300)
    (uploads_dir / "drop.png").write_bytes(b"x" * 200)
    lifecycle.register("keep.png", "image/png")
    dropped = lifecycle.register("drop.png", "image/png")

    size = lifecycle.remove(dropped.id)

    assert size == 200
    assert usage_store.get_current_usage() == 300
    with pytest.raises(ObjectNotFound):
        catalog.get_object(dropped.id)


def test_failed_removal_keeps_usage_and_object(lifecycle, catalog, uploads_dir, usage_store, monkeypatch):
    (uploads_dir / "a.png").write_bytes(b"x" * 500)
    obj = lifecycle.register("a.png", "image/png")

    def broken_remove(object_id):
        raise PersistenceFailure("Could not remove media object")

    monkeypatch.setattr(catalog, "remove_object", broken_remove)

    with pytest.raises(PersistenceFailure):
        lifecycle.remove(obj.id)

    assert usage_store.get_current_usage() == 500
    assert catalog.get_object(obj.id) == obj


def test_losing_a_removal_race_does_not_subtract_twice(lifecycle, catalog, uploads_dir, usage_store, monkeypatch):
    (uploads_dir / "keep.png").write_bytes(b"x" * 300)
    (uploads_dir / "a.png").write_bytes(b"x" * 500)
    lifecycle.register("keep.png", "image/png")
    obj = lifecycle.register("a.png", "image/png")
    real_remove = catalog.remove_object

    def remove_after_concurrent_delete(object_id):
        # another request deletes the row between our lookup and our delete
        real_remove(object_id)
        usage_store.apply_delta(-500)
        real_remove(object_id)

    monkeypatch.setattr(catalog, "remove_object", remove_after_concurrent_delete)

    with pytest.raises(ObjectNotFound):
        lifecycle.remove(obj.id)

    assert usage_store.get_current_usage() == 300


def test_remove_unknown_object(lifecycle):
    with pytest.raises(ObjectNotFound):
        lifecycle.remove("does-not-exist")


def test_metadata_update_schedules_only_with_metadata(lifecycle, catalog, executor, leases):
    obj = catalog.add_object("a.png", "image/png")

    assert lifecycle.on_metadata_updated(obj, {}) is False
    assert executor.jobs == []

    lifecycle.update_metadata(obj.id, {"width": 640, "height": 480})

    assert len(executor.jobs) == 1


def test_delayed_rescan_corrects_drift(lifecycle, scheduler, uploads_dir, usage_store, executor):
    (uploads_dir / "a.png").write_bytes(b"x" * 500)
    lifecycle.register("a.png", "image/png")
    usage_store.apply_delta(12_345)

    executor.run_pending(scheduler)

    assert usage_store.get_current_usage() == 500
    assert scheduler.consume_auto_recalculated() is True
    assert scheduler.consume_auto_recalculated() is False
