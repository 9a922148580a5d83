import logging
import time
from dataclasses import dataclass

from storage_limit.services.events import EventSink, UsageRecalculated
from storage_limit.services.object_store import ObjectStore
from storage_limit.services.usage_store import UsageStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass(frozen=True)
class RecalculationResult:
    total_bytes: int
    processed_count: int
    missing_count: int


class RecalculationEngine:
    """Authoritative rescan of every stored object.

    Incremental deltas drift (races, out-of-band file changes, crashes between
    an upload and its delta), so a full rescan is the only way back to an exact
    total. The sum is built locally and committed with a single overwrite, so
    concurrent rescans never publish a partial total; the last one to finish
    wins.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        usage_store: UsageStore,
        events: EventSink,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.object_store = object_store
        self.usage_store = usage_store
        self.events = events
        self.batch_size = batch_size

    def recalculate(self) -> int:
        return self.recalculate_with_report().total_bytes

    def recalculate_with_report(self) -> RecalculationResult:
        started = time.monotonic()
        total_bytes = 0
        processed = 0
        missing = 0
        offset = 0

        while True:
            page = self.object_store.list_objects(self.batch_size, offset)
            for obj in page:
                path = self.object_store.resolve_file(obj)
                size = self.object_store.file_size(path) if path is not None else None
                if size is None:
                    missing += 1
                    continue
                total_bytes += size
                processed += 1
            offset += self.batch_size
            if len(page) < self.batch_size:
                break

        self.usage_store.overwrite(total_bytes)
        result = RecalculationResult(total_bytes=total_bytes, processed_count=processed, missing_count=missing)
        logger.info(
            "Recalculated media usage: %d bytes, %d files, %d missing (%.2fs)",
            total_bytes,
            processed,
            missing,
            time.monotonic() - started,
        )
        self.events.emit(UsageRecalculated(total_bytes, processed, missing))
        return result
