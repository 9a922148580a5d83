from typing import Any
from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel
from storage_limit.api import deps
from storage_limit.services.container import Services
from storage_limit.services.quota_settings import QuotaSettingsData

router = APIRouter()


class SettingsUpdateRequest(BaseModel):
    max_storage_mb: int | None = None
    block_uploads: bool | None = None
    show_progress_bar: bool | None = None


class SettingsResponse(BaseModel):
    settings: QuotaSettingsData
    max_storage_bytes: int
    warnings: list[str] = []


def _response(services: Services, data: QuotaSettingsData, warnings: list[str] | None = None) -> SettingsResponse:
    return SettingsResponse(
        settings=data,
        max_storage_bytes=services.quota_settings.get_quota_config().max_storage_bytes,
        warnings=warnings or [],
    )


@router.get("", response_model=SettingsResponse)
def get_settings(services: Services = Depends(deps.get_services)):
    return _response(services, services.quota_settings.get_settings())


@router.put("", response_model=SettingsResponse)
def update_settings(payload: SettingsUpdateRequest, services: Services = Depends(deps.get_services)):
    try:
        data, warnings = services.quota_settings.update_settings(payload.model_dump(exclude_none=True))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return _response(services, data, warnings)


@router.post("/reset", response_model=SettingsResponse)
def reset_settings(services: Services = Depends(deps.get_services)):
    return _response(services, services.quota_settings.reset_to_defaults())


@router.get("/export")
def export_settings(services: Services = Depends(deps.get_services)):
    return services.quota_settings.export_settings()


@router.post("/import", response_model=SettingsResponse)
def import_settings(payload: Any = Body(...), services: Services = Depends(deps.get_services)):
    data, warnings = services.quota_settings.import_settings(payload)
    return _response(services, data, warnings)
