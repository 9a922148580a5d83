import logging
from rq import Worker
from redis import Redis
from storage_limit.core.config import settings
from storage_limit.core.logging import configure_logging

logger = logging.getLogger(__name__)


def main():
    configure_logging()
    conn = Redis.from_url(settings.redis_url)
    worker = Worker([settings.recalc_queue], connection=conn)
    logger.info("Starting RQ worker for queue %s", settings.recalc_queue)
    # the scheduler moves delayed recalculation jobs onto the queue when due
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
