import logging

from storage_limit.core.config import settings
from storage_limit.db.session import SessionLocal
from storage_limit.services.container import build_services

logger = logging.getLogger(__name__)


def run_delayed_recalculation() -> int:
    """Entry point for the delayed job enqueued by RecalculationScheduler.schedule."""
    services = build_services(settings, SessionLocal)
    try:
        total = services.scheduler.run_delayed()
    except Exception:
        # The pending lease was released, so the next upload schedules a retry.
        logger.exception("Delayed usage recalculation failed")
        raise
    logger.info("Delayed usage recalculation finished: %d bytes", total)
    return total
