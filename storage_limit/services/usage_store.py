import datetime as dt
import logging
from dataclasses import dataclass

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storage_limit.core.errors import PersistenceFailure
from storage_limit.db import models
from storage_limit.services.events import EventSink, UsageCleared, UsageUpdated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredUsage:
    total_bytes: int
    last_updated: dt.datetime


class UsageStore:
    """Persisted running total of media bytes.

    Every mutation is a single UPDATE evaluated by the database, so concurrent
    requests cannot lose each other's deltas. The row is created lazily on the
    first write; a concurrent first write is retried as an update.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        events: EventSink,
        key: str = models.USAGE_RECORD_KEY,
        max_attempts: int = 3,
    ):
        self.session_factory = session_factory
        self.events = events
        self.key = key
        self.max_attempts = max_attempts

    def get_record(self) -> StoredUsage | None:
        try:
            with self.session_factory() as db:
                row = db.get(models.UsageRecord, self.key)
                if row is None:
                    return None
                return StoredUsage(total_bytes=int(row.total_bytes), last_updated=row.last_updated)
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not read usage record") from exc

    def get_current_usage(self) -> int:
        record = self.get_record()
        return record.total_bytes if record else 0

    def apply_delta(self, delta_bytes: int) -> int:
        now = dt.datetime.utcnow()
        new_total = models.UsageRecord.total_bytes + delta_bytes
        statement = (
            update(models.UsageRecord)
            .where(models.UsageRecord.key == self.key)
            .values(total_bytes=case((new_total < 0, 0), else_=new_total), last_updated=now)
        )
        total = self._write(statement, initial_total=max(0, delta_bytes), now=now)
        logger.debug("Applied usage delta %d, total now %d", delta_bytes, total)
        self.events.emit(UsageUpdated(total_bytes=total, last_updated=now))
        return total

    def overwrite(self, total_bytes: int) -> int:
        if total_bytes < 0:
            raise ValueError("total_bytes must be non-negative")
        now = dt.datetime.utcnow()
        statement = (
            update(models.UsageRecord)
            .where(models.UsageRecord.key == self.key)
            .values(total_bytes=total_bytes, last_updated=now)
        )
        total = self._write(statement, initial_total=total_bytes, now=now)
        self.events.emit(UsageUpdated(total_bytes=total, last_updated=now))
        return total

    def clear(self) -> None:
        try:
            with self.session_factory.begin() as db:
                db.execute(delete(models.UsageRecord).where(models.UsageRecord.key == self.key))
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not clear usage record") from exc
        self.events.emit(UsageCleared())

    def _write(self, statement, initial_total: int, now: dt.datetime) -> int:
        statement = statement.execution_options(synchronize_session=False)
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.session_factory.begin() as db:
                    result = db.execute(statement)
                    if result.rowcount == 0:
                        db.add(models.UsageRecord(key=self.key, total_bytes=initial_total, last_updated=now))
                        db.flush()
                        total = initial_total
                    else:
                        total = db.scalar(
                            select(models.UsageRecord.total_bytes).where(models.UsageRecord.key == self.key)
                        )
                return int(total)
            except IntegrityError as exc:
                # Lost the race to create the row; it exists now, so update it.
                if attempt == self.max_attempts:
                    raise PersistenceFailure("Could not create usage record") from exc
                logger.info("Usage record created concurrently, retrying (attempt %d)", attempt)
            except SQLAlchemyError as exc:
                raise PersistenceFailure("Could not write usage record") from exc
        raise PersistenceFailure("Could not write usage record")
