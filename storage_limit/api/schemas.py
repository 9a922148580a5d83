import datetime as dt
from pydantic import BaseModel
from storage_limit.services.stats import StorageStatus


class FormattedUsageOut(BaseModel):
    total: str
    max: str
    remaining: str
    percentage: str


class UsageStatsOut(BaseModel):
    total_bytes: int
    max_bytes: int
    remaining_bytes: int
    percentage_used: float
    status: StorageStatus
    last_updated: dt.datetime | None
    formatted: FormattedUsageOut
