from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from storage_limit.api.routers import health, media, quota_settings, uploads, usage
from storage_limit.core.config import settings
from storage_limit.core.errors import (
    DuplicateObject,
    InvalidQuotaConfig,
    InvalidSettingsImport,
    ObjectNotFound,
    PersistenceFailure,
)
from storage_limit.core.logging import configure_logging
from storage_limit.db.session import SessionLocal
from storage_limit.services.container import Services, build_services

configure_logging()

ERROR_STATUS = {
    ObjectNotFound: status.HTTP_404_NOT_FOUND,
    DuplicateObject: status.HTTP_409_CONFLICT,
    InvalidSettingsImport: status.HTTP_400_BAD_REQUEST,
    InvalidQuotaConfig: status.HTTP_500_INTERNAL_SERVER_ERROR,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _register_error_handlers(app: FastAPI) -> None:
    for exc_type, status_code in ERROR_STATUS.items():

        async def handler(request: Request, exc: Exception, status_code: int = status_code):
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        app.add_exception_handler(exc_type, handler)


def create_app(services: Services | None = None) -> FastAPI:
    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)
    app.state.settings = settings
    app.state.services = services or build_services(settings, SessionLocal)

    _register_error_handlers(app)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(usage.router, prefix="/usage", tags=["usage"])
    app.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
    app.include_router(media.router, prefix="/media", tags=["media"])
    app.include_router(quota_settings.router, prefix="/settings", tags=["settings"])

    return app


app = create_app()
