import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from storage_limit.services.formatting import format_bytes, format_percentage
from storage_limit.services.usage_store import UsageStore

CRITICAL_PERCENTAGE = 90
WARNING_PERCENTAGE = 75


class StorageStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class QuotaConfig:
    max_storage_bytes: int
    blocking_enabled: bool


class QuotaConfigSource(Protocol):
    def get_quota_config(self) -> QuotaConfig:
        ...


@dataclass(frozen=True)
class FormattedUsage:
    total: str
    max: str
    remaining: str
    percentage: str


@dataclass(frozen=True)
class UsageSnapshot:
    total_bytes: int
    max_bytes: int
    remaining_bytes: int
    percentage_used: float
    status: StorageStatus
    last_updated: dt.datetime | None
    formatted: FormattedUsage


@dataclass(frozen=True)
class FileStatistics:
    total_files: int
    by_type: dict[str, int]


def usage_percentage(total_bytes: int, max_bytes: int) -> float:
    """Share of the quota in use, clamped to [0, 100]; 0 when no quota is set."""
    if max_bytes <= 0:
        return 0.0
    return min(100.0, max(0.0, total_bytes * 100 / max_bytes))


def status_for(percentage: float) -> StorageStatus:
    if percentage >= CRITICAL_PERCENTAGE:
        return StorageStatus.CRITICAL
    if percentage >= WARNING_PERCENTAGE:
        return StorageStatus.WARNING
    return StorageStatus.NORMAL


class UsageStatsService:
    def __init__(self, usage_store: UsageStore, quota_source: QuotaConfigSource, catalog=None):
        self.usage_store = usage_store
        self.quota_source = quota_source
        self.catalog = catalog

    def get_snapshot(self) -> UsageSnapshot:
        record = self.usage_store.get_record()
        total = record.total_bytes if record else 0
        max_bytes = self.quota_source.get_quota_config().max_storage_bytes
        remaining = max(0, max_bytes - total)
        percentage = usage_percentage(total, max_bytes)
        return UsageSnapshot(
            total_bytes=total,
            max_bytes=max_bytes,
            remaining_bytes=remaining,
            percentage_used=percentage,
            status=status_for(percentage),
            last_updated=record.last_updated if record else None,
            formatted=FormattedUsage(
                total=format_bytes(total),
                max=format_bytes(max_bytes),
                remaining=format_bytes(remaining),
                percentage=format_percentage(percentage),
            ),
        )

    def get_file_statistics(self) -> FileStatistics:
        if self.catalog is None:
            return FileStatistics(total_files=0, by_type={})
        by_type = self.catalog.count_by_type()
        return FileStatistics(total_files=sum(by_type.values()), by_type=by_type)
