from dataclasses import asdict
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from storage_limit.api import deps
from storage_limit.api.schemas import UsageStatsOut
from storage_limit.services.container import Services
from storage_limit.services.stats import StorageStatus

router = APIRouter()


class UploadCheckRequest(BaseModel):
    file_size: int = Field(ge=0)


class UploadCheckResponse(BaseModel):
    allowed: bool
    message: str
    stats: UsageStatsOut


class RestrictionsResponse(BaseModel):
    blocking_enabled: bool
    max_storage_bytes: int
    current_usage_bytes: int
    remaining_bytes: int
    percentage_used: float
    status: StorageStatus
    can_upload: bool
    max_uploadable_bytes: int


@router.post("/check", response_model=UploadCheckResponse)
def check_upload(payload: UploadCheckRequest, services: Services = Depends(deps.get_services)):
    decision = services.guard.evaluate_upload(payload.file_size)
    return UploadCheckResponse(
        allowed=decision.allowed,
        message=decision.message,
        stats=UsageStatsOut(**asdict(decision.stats)),
    )


@router.get("/restrictions", response_model=RestrictionsResponse)
def get_restrictions(services: Services = Depends(deps.get_services)):
    restrictions = services.guard.restrictions()
    return RestrictionsResponse(
        **asdict(restrictions),
        max_uploadable_bytes=services.guard.max_uploadable_size(services.system_upload_limit),
    )
