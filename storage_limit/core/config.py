from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "storage-limit-manager"
    app_version: str = "1.0.0"
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    database_url: str
    redis_url: str

    storage_backend: Literal["s3", "local"] = "s3"
    minio_endpoint: str | None = None
    minio_access_key: str | None = None
    minio_secret_key: str | None = None
    minio_bucket: str = "media"
    uploads_dir: str = "uploads"

    quota_default_mb: int = 1000
    block_uploads_default: bool = True
    show_progress_bar_default: bool = True
    max_upload_size: str = "64M"

    recalc_queue: str = "recalculation-jobs"
    recalc_batch_size: int = 100
    recalc_delay_seconds: int = 30
    recalc_pending_ttl_seconds: int = 60
    auto_recalculated_ttl_seconds: int = 300

    @field_validator(
        "recalc_batch_size",
        "recalc_delay_seconds",
        "recalc_pending_ttl_seconds",
        "auto_recalculated_ttl_seconds",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
