from typing import Any
from sqlalchemy.orm import Session, sessionmaker
from storage_limit.db import models
from storage_limit.services.events import UploadBlocked, UsageEvent, UsageRecalculated


def log_event(
    db: Session,
    action: str,
    object_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    event = models.AuditEvent(
        action=action,
        object_id=object_id,
        details=details,
    )
    db.add(event)
    db.commit()


class AuditEventSink:
    """Keeps an audit trail of recalculations and blocked uploads.

    Plain ``usage_updated`` events fire on every upload and are left to the
    log sink.
    """

    AUDITED = (UsageRecalculated, UploadBlocked)

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def emit(self, event: UsageEvent) -> None:
        if not isinstance(event, self.AUDITED):
            return
        with self.session_factory() as db:
            log_event(db, action=event.name.upper(), details=event.to_details())
