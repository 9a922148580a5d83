from dataclasses import asdict
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from storage_limit.api import deps
from storage_limit.api.schemas import UsageStatsOut
from storage_limit.services.container import Services
from storage_limit.services.formatting import format_bytes

router = APIRouter()


class UsageResponse(UsageStatsOut):
    auto_recalculated: bool


class FileStatsResponse(BaseModel):
    total_files: int
    by_type: dict[str, int]


class RecalculateResponse(BaseModel):
    total_size: int
    formatted_size: str
    stats: UsageStatsOut
    message: str


@router.get("", response_model=UsageResponse)
def get_usage(services: Services = Depends(deps.get_services)):
    snapshot = services.stats.get_snapshot()
    # the flag is shown once, then cleared
    auto_recalculated = services.scheduler.consume_auto_recalculated()
    return UsageResponse(**asdict(snapshot), auto_recalculated=auto_recalculated)


@router.get("/files", response_model=FileStatsResponse)
def get_file_stats(services: Services = Depends(deps.get_services)):
    return services.stats.get_file_statistics()


@router.post("/recalculate", response_model=RecalculateResponse)
def recalculate_usage(services: Services = Depends(deps.get_services)):
    total = services.scheduler.force_recalculate()
    return RecalculateResponse(
        total_size=total,
        formatted_size=format_bytes(total),
        stats=UsageStatsOut(**asdict(services.stats.get_snapshot())),
        message="Usage recalculated successfully.",
    )


@router.delete("")
def clear_usage(services: Services = Depends(deps.get_services)):
    services.usage_store.clear()
    return {"ok": True, "message": "Usage cache cleared successfully."}
