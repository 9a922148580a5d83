"""Builds the accounting services as one explicitly wired graph.

The API and the RQ worker each build their own graph from settings; nothing
looks services up through a process-wide singleton.
"""
from dataclasses import dataclass

from redis import Redis
from rq import Queue
from sqlalchemy.orm import sessionmaker

from storage_limit.core.config import Settings
from storage_limit.services.audit import AuditEventSink
from storage_limit.services.events import EventSink, FanOutEventSink, LoggingEventSink
from storage_limit.services.formatting import parse_size
from storage_limit.services.lifecycle import MediaLifecycleHandler
from storage_limit.services.object_store import CatalogObjectStore, FileBackend
from storage_limit.services.quota import QuotaGuard
from storage_limit.services.quota_settings import QuotaSettingsData, QuotaSettingsService
from storage_limit.services.recalculation import RecalculationEngine
from storage_limit.services.scheduler import (
    DeferredExecutor,
    LeaseStore,
    RecalculationScheduler,
    RedisLeaseStore,
    RQDeferredExecutor,
)
from storage_limit.services.stats import UsageStatsService
from storage_limit.services.storage import LocalFileBackend, S3FileBackend, StorageClient
from storage_limit.services.usage_store import UsageStore


@dataclass
class Services:
    settings: Settings
    session_factory: sessionmaker
    redis: Redis | None
    events: EventSink
    quota_settings: QuotaSettingsService
    usage_store: UsageStore
    catalog: CatalogObjectStore
    engine: RecalculationEngine
    scheduler: RecalculationScheduler
    stats: UsageStatsService
    guard: QuotaGuard
    lifecycle: MediaLifecycleHandler

    @property
    def system_upload_limit(self) -> int:
        return parse_size(self.settings.max_upload_size)


def build_file_backend(config: Settings) -> FileBackend:
    if config.storage_backend == "local":
        return LocalFileBackend(config.uploads_dir)
    return S3FileBackend(StorageClient(config))


def build_services(
    config: Settings,
    session_factory: sessionmaker,
    redis: Redis | None = None,
    leases: LeaseStore | None = None,
    executor: DeferredExecutor | None = None,
    file_backend: FileBackend | None = None,
    events: EventSink | None = None,
) -> Services:
    if redis is None and (leases is None or executor is None):
        redis = Redis.from_url(config.redis_url)
    if leases is None:
        leases = RedisLeaseStore(redis)
    if executor is None:
        executor = RQDeferredExecutor(Queue(config.recalc_queue, connection=redis))
    if events is None:
        events = FanOutEventSink([LoggingEventSink(), AuditEventSink(session_factory)])

    quota_settings = QuotaSettingsService(
        session_factory,
        defaults=QuotaSettingsData(
            max_storage_mb=config.quota_default_mb,
            block_uploads=config.block_uploads_default,
            show_progress_bar=config.show_progress_bar_default,
        ),
        version=config.app_version,
    )
    usage_store = UsageStore(session_factory, events)
    catalog = CatalogObjectStore(session_factory, file_backend or build_file_backend(config))
    engine = RecalculationEngine(catalog, usage_store, events, batch_size=config.recalc_batch_size)
    scheduler = RecalculationScheduler(
        engine,
        leases,
        executor,
        delay_seconds=config.recalc_delay_seconds,
        pending_ttl_seconds=config.recalc_pending_ttl_seconds,
        auto_flag_ttl_seconds=config.auto_recalculated_ttl_seconds,
    )
    stats = UsageStatsService(usage_store, quota_settings, catalog)
    guard = QuotaGuard(usage_store, stats, quota_settings, events)
    lifecycle = MediaLifecycleHandler(catalog, usage_store, scheduler)
    return Services(
        settings=config,
        session_factory=session_factory,
        redis=redis,
        events=events,
        quota_settings=quota_settings,
        usage_store=usage_store,
        catalog=catalog,
        engine=engine,
        scheduler=scheduler,
        stats=stats,
        guard=guard,
        lifecycle=lifecycle,
    )
