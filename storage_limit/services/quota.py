import logging
from dataclasses import dataclass

from storage_limit.core.errors import InvalidQuotaConfig
from storage_limit.services.events import EventSink, UploadBlocked
from storage_limit.services.stats import (
    QuotaConfig,
    QuotaConfigSource,
    StorageStatus,
    UsageSnapshot,
    UsageStatsService,
)
from storage_limit.services.usage_store import UsageStore

logger = logging.getLogger(__name__)

UPLOAD_ALLOWED = "Upload allowed"
UPLOAD_ALLOWED_UNBLOCKED = "Upload allowed (blocking disabled)"
UPLOAD_DENIED = (
    "Upload failed: This file would exceed your storage limit of {max}. "
    "Current usage: {current}. Please upgrade your plan or delete some files to free up space."
)


@dataclass(frozen=True)
class UploadDecision:
    allowed: bool
    message: str
    stats: UsageSnapshot


@dataclass(frozen=True)
class UploadRestrictions:
    blocking_enabled: bool
    max_storage_bytes: int
    current_usage_bytes: int
    remaining_bytes: int
    percentage_used: float
    status: StorageStatus
    can_upload: bool


class QuotaGuard:
    def __init__(
        self,
        usage_store: UsageStore,
        stats: UsageStatsService,
        quota_source: QuotaConfigSource,
        events: EventSink,
    ):
        self.usage_store = usage_store
        self.stats = stats
        self.quota_source = quota_source
        self.events = events

    def would_exceed(self, additional_bytes: int) -> bool:
        return self._exceeds(self.quota_source.get_quota_config(), additional_bytes)

    def _exceeds(self, config: QuotaConfig, additional_bytes: int) -> bool:
        if additional_bytes < 0:
            raise ValueError("additional_bytes must be non-negative")
        # Callers probing with an unknown size send 0; never deny those.
        if additional_bytes == 0:
            return False
        if config.max_storage_bytes <= 0:
            if config.blocking_enabled:
                raise InvalidQuotaConfig(config.max_storage_bytes)
            return False
        return self.usage_store.get_current_usage() + additional_bytes > config.max_storage_bytes

    def evaluate_upload(self, file_size: int) -> UploadDecision:
        config = self.quota_source.get_quota_config()
        if not config.blocking_enabled:
            if file_size < 0:
                raise ValueError("file_size must be non-negative")
            return UploadDecision(allowed=True, message=UPLOAD_ALLOWED_UNBLOCKED, stats=self.stats.get_snapshot())

        exceeds = self._exceeds(config, file_size)
        snapshot = self.stats.get_snapshot()
        if not exceeds:
            return UploadDecision(allowed=True, message=UPLOAD_ALLOWED, stats=snapshot)

        logger.warning(
            "Blocked upload of %d bytes: usage %d of %d bytes",
            file_size,
            snapshot.total_bytes,
            snapshot.max_bytes,
        )
        self.events.emit(
            UploadBlocked(file_size=file_size, current_bytes=snapshot.total_bytes, max_bytes=snapshot.max_bytes)
        )
        message = UPLOAD_DENIED.format(max=snapshot.formatted.max, current=snapshot.formatted.total)
        return UploadDecision(allowed=False, message=message, stats=snapshot)

    def restrictions(self) -> UploadRestrictions:
        config = self.quota_source.get_quota_config()
        snapshot = self.stats.get_snapshot()
        return UploadRestrictions(
            blocking_enabled=config.blocking_enabled,
            max_storage_bytes=snapshot.max_bytes,
            current_usage_bytes=snapshot.total_bytes,
            remaining_bytes=snapshot.remaining_bytes,
            percentage_used=snapshot.percentage_used,
            status=snapshot.status,
            can_upload=snapshot.remaining_bytes > 0 or not config.blocking_enabled,
        )

    def max_uploadable_size(self, system_limit: int) -> int:
        """Largest single upload allowed by both the quota and the host's own limit."""
        config = self.quota_source.get_quota_config()
        if not config.blocking_enabled:
            return system_limit
        return min(self.stats.get_snapshot().remaining_bytes, system_limit)
