"""Typed notifications emitted by the accounting services.

Sinks are observability only: nothing in the accounting core reads back
what a sink did with an event.
"""
import datetime as dt
import logging
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Iterable, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageEvent:
    name: ClassVar[str] = "usage_event"

    def to_details(self) -> dict[str, Any]:
        details = asdict(self)
        for key, value in details.items():
            if isinstance(value, dt.datetime):
                details[key] = value.isoformat()
        return details


@dataclass(frozen=True)
class UsageUpdated(UsageEvent):
    name: ClassVar[str] = "usage_updated"

    total_bytes: int
    last_updated: dt.datetime


@dataclass(frozen=True)
class UsageRecalculated(UsageEvent):
    name: ClassVar[str] = "usage_recalculated"

    total_bytes: int
    processed_count: int
    missing_count: int


@dataclass(frozen=True)
class UsageCleared(UsageEvent):
    name: ClassVar[str] = "usage_cleared"


@dataclass(frozen=True)
class UploadBlocked(UsageEvent):
    name: ClassVar[str] = "upload_blocked"

    file_size: int
    current_bytes: int
    max_bytes: int


class EventSink(Protocol):
    def emit(self, event: UsageEvent) -> None:
        ...


class LoggingEventSink:
    def emit(self, event: UsageEvent) -> None:
        level = logging.WARNING if isinstance(event, UploadBlocked) else logging.INFO
        logger.log(level, "%s %s", event.name, event.to_details())


class FanOutEventSink:
    """Delivers each event to every sink; a failing sink does not stop the others."""

    def __init__(self, sinks: Iterable[EventSink] = ()):
        self.sinks = list(sinks)

    def emit(self, event: UsageEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception("Event sink %s failed for %s", type(sink).__name__, event.name)
