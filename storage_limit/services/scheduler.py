import datetime as dt
import logging
from typing import Protocol

from redis import Redis, RedisError
from rq import Queue

from storage_limit.core.errors import PersistenceFailure
from storage_limit.services.recalculation import RecalculationEngine

logger = logging.getLogger(__name__)

PENDING_KEY = "slm:recalculation:pending"
AUTO_RECALCULATED_KEY = "slm:recalculation:auto"
DELAYED_JOB_ID = "slm-delayed-recalculation"
DELAYED_JOB_FUNC = "storage_limit.workers.jobs.run_delayed_recalculation"


class LeaseStore(Protocol):
    def acquire(self, key: str, ttl_seconds: int) -> bool:
        ...

    def release(self, key: str) -> None:
        ...

    def set_flag(self, key: str, ttl_seconds: int) -> None:
        ...

    def pop_flag(self, key: str) -> bool:
        ...


class DeferredExecutor(Protocol):
    def schedule_once(self, delay_seconds: int, job_id: str) -> None:
        ...


class RedisLeaseStore:
    """TTL-bound keys in Redis; ``acquire`` is an atomic SET NX."""

    def __init__(self, redis: Redis):
        self.redis = redis

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        stamp = dt.datetime.utcnow().isoformat()
        try:
            return bool(self.redis.set(key, stamp, nx=True, ex=ttl_seconds))
        except RedisError as exc:
            raise PersistenceFailure(f"Could not acquire lease {key}") from exc

    def release(self, key: str) -> None:
        try:
            self.redis.delete(key)
        except RedisError as exc:
            raise PersistenceFailure(f"Could not release lease {key}") from exc

    def set_flag(self, key: str, ttl_seconds: int) -> None:
        try:
            self.redis.set(key, "1", ex=ttl_seconds)
        except RedisError as exc:
            raise PersistenceFailure(f"Could not set flag {key}") from exc

    def pop_flag(self, key: str) -> bool:
        try:
            pipe = self.redis.pipeline()
            pipe.get(key)
            pipe.delete(key)
            value, _ = pipe.execute()
        except RedisError as exc:
            raise PersistenceFailure(f"Could not read flag {key}") from exc
        return value is not None


class RQDeferredExecutor:
    """Delayed jobs on an RQ queue; the worker must run with the RQ scheduler."""

    def __init__(self, queue: Queue, func: str = DELAYED_JOB_FUNC):
        self.queue = queue
        self.func = func

    def schedule_once(self, delay_seconds: int, job_id: str) -> None:
        try:
            self.queue.enqueue_in(dt.timedelta(seconds=delay_seconds), self.func, job_id=job_id)  # type: ignore[arg-type]
        except RedisError as exc:
            raise PersistenceFailure(f"Could not schedule job {job_id}") from exc


class RecalculationScheduler:
    """Coalesces recalculation triggers into one delayed rescan.

    Uploads finish writing metadata after the triggering event, so the rescan
    runs ``delay_seconds`` later instead of inline.
    """

    def __init__(
        self,
        engine: RecalculationEngine,
        leases: LeaseStore,
        executor: DeferredExecutor,
        delay_seconds: int = 30,
        pending_ttl_seconds: int = 60,
        auto_flag_ttl_seconds: int = 300,
    ):
        self.engine = engine
        self.leases = leases
        self.executor = executor
        self.delay_seconds = delay_seconds
        self.pending_ttl_seconds = pending_ttl_seconds
        self.auto_flag_ttl_seconds = auto_flag_ttl_seconds

    def schedule(self) -> bool:
        if not self.leases.acquire(PENDING_KEY, self.pending_ttl_seconds):
            logger.debug("Recalculation already pending, coalescing trigger")
            return False
        try:
            self.executor.schedule_once(self.delay_seconds, DELAYED_JOB_ID)
        except Exception:
            self.leases.release(PENDING_KEY)
            raise
        logger.info("Scheduled usage recalculation in %ds", self.delay_seconds)
        return True

    def run_delayed(self) -> int:
        # Released before scanning so that uploads landing mid-scan can
        # schedule a follow-up rescan.
        self.leases.release(PENDING_KEY)
        total = self.engine.recalculate()
        self.leases.set_flag(AUTO_RECALCULATED_KEY, self.auto_flag_ttl_seconds)
        return total

    def force_recalculate(self) -> int:
        self.leases.release(PENDING_KEY)
        return self.engine.recalculate()

    def consume_auto_recalculated(self) -> bool:
        return self.leases.pop_flag(AUTO_RECALCULATED_KEY)
