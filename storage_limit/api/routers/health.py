import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from storage_limit.api import deps
from storage_limit.services.container import Services
from storage_limit.services.storage import S3FileBackend

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
def ready(services: Services = Depends(deps.get_services)):
    details: dict[str, str] = {}
    try:
        with services.session_factory() as db:
            db.execute(text("SELECT 1"))
        details["database"] = "ok"
    except SQLAlchemyError as exc:
        logger.warning("Readiness: database unavailable: %s", exc)
        details["database"] = "unavailable"
    if services.redis is not None:
        try:
            services.redis.ping()
            details["redis"] = "ok"
        except RedisError as exc:
            logger.warning("Readiness: redis unavailable: %s", exc)
            details["redis"] = "unavailable"
    backend = services.catalog.backend
    if isinstance(backend, S3FileBackend):
        details["storage"] = "ok" if backend.client.bucket_exists() else "unavailable"
    healthy = all(value == "ok" for value in details.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "degraded", "details": details},
    )
