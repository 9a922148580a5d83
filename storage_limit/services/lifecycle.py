import logging
from typing import Any

from storage_limit.services.object_store import CatalogObjectStore, StoredObject
from storage_limit.services.scheduler import RecalculationScheduler
from storage_limit.services.usage_store import UsageStore

logger = logging.getLogger(__name__)


class MediaLifecycleHandler:
    """Keeps the running total in step with media created and deleted by the host."""

    def __init__(self, catalog: CatalogObjectStore, usage_store: UsageStore, scheduler: RecalculationScheduler):
        self.catalog = catalog
        self.usage_store = usage_store
        self.scheduler = scheduler

    def on_object_created(self, obj: StoredObject) -> int | None:
        size = self.catalog.size_of(obj)
        if size is not None:
            self.usage_store.apply_delta(size)
        else:
            logger.info("Created object %s has no file yet; leaving it to the rescan", obj.id)
        self.scheduler.schedule()
        return size

    def on_object_deleted(self, obj: StoredObject, size: int | None = None) -> int | None:
        if size is None:
            size = self.catalog.size_of(obj)
        if size is not None:
            self.usage_store.apply_delta(-size)
        return size

    def on_metadata_updated(self, obj: StoredObject, metadata: dict[str, Any] | None) -> bool:
        if not metadata:
            return False
        return self.scheduler.schedule()

    def register(self, object_key: str, mime_type: str, metadata: dict[str, Any] | None = None) -> StoredObject:
        obj = self.catalog.add_object(object_key, mime_type, metadata)
        self.on_object_created(obj)
        return obj

    def update_metadata(self, object_id: str, metadata: dict[str, Any]) -> StoredObject:
        obj = self.catalog.update_metadata(object_id, metadata)
        self.on_metadata_updated(obj, metadata)
        return obj

    def remove(self, object_id: str) -> int | None:
        obj = self.catalog.get_object(object_id)
        # size must be read while the file still exists
        size = self.catalog.size_of(obj)
        # the row goes first; a failed or lost removal leaves the total alone
        self.catalog.remove_object(object_id)
        if size is None:
            return None
        return self.on_object_deleted(obj, size)
