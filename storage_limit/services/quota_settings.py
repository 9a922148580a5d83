import datetime as dt
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storage_limit.core.errors import InvalidSettingsImport, PersistenceFailure
from storage_limit.db import models
from storage_limit.services.stats import QuotaConfig

logger = logging.getLogger(__name__)

MIN_STORAGE_MB = 1
LARGE_STORAGE_MB = 1_000_000
BYTES_PER_MB = 1024 * 1024


class QuotaSettingsData(BaseModel):
    max_storage_mb: int
    block_uploads: bool = True
    show_progress_bar: bool = True


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def sanitize_settings(values: dict[str, Any], defaults: QuotaSettingsData) -> tuple[QuotaSettingsData, list[str]]:
    """Validate raw settings, clamping the quota instead of rejecting it."""
    warnings: list[str] = []
    merged = {**defaults.model_dump(), **{k: v for k, v in values.items() if v is not None}}
    try:
        data = QuotaSettingsData.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings: {exc.errors()}") from exc

    if data.max_storage_mb < MIN_STORAGE_MB:
        data = data.model_copy(update={"max_storage_mb": MIN_STORAGE_MB})
        warnings.append("Maximum storage must be at least 1 MB.")
    if data.max_storage_mb > LARGE_STORAGE_MB:
        warnings.append("Warning: Very large storage limit detected. Please ensure this is intentional.")
    return data, warnings


class QuotaSettingsService:
    """Persisted quota settings; supplies the QuotaConfig used by the guard."""

    def __init__(self, session_factory: sessionmaker, defaults: QuotaSettingsData, version: str):
        self.session_factory = session_factory
        self.defaults = defaults
        self.version = version

    def get_settings(self) -> QuotaSettingsData:
        try:
            with self.session_factory() as db:
                row = db.get(models.QuotaSettings, models.QUOTA_SETTINGS_KEY)
                if row is None:
                    return self.defaults
                return QuotaSettingsData(
                    max_storage_mb=row.max_storage_mb,
                    block_uploads=row.block_uploads,
                    show_progress_bar=row.show_progress_bar,
                )
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not read quota settings") from exc

    def get_quota_config(self) -> QuotaConfig:
        current = self.get_settings()
        return QuotaConfig(
            max_storage_bytes=current.max_storage_mb * BYTES_PER_MB,
            blocking_enabled=current.block_uploads,
        )

    def update_settings(self, changes: dict[str, Any]) -> tuple[QuotaSettingsData, list[str]]:
        data, warnings = sanitize_settings(changes, self.get_settings())
        self._save(data)
        logger.info("Quota settings updated: %s", data.model_dump())
        return data, warnings

    def reset_to_defaults(self) -> QuotaSettingsData:
        self._save(self.defaults)
        logger.info("Quota settings reset to defaults")
        return self.defaults

    def export_settings(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "exported_at": dt.datetime.utcnow().isoformat(),
            "settings": self.get_settings().model_dump(),
        }

    def import_settings(self, payload: Any) -> tuple[QuotaSettingsData, list[str]]:
        if not isinstance(payload, dict) or not isinstance(payload.get("settings"), dict):
            raise InvalidSettingsImport("Invalid import data format.")
        warnings: list[str] = []
        version = payload.get("version")
        if isinstance(version, str) and _version_tuple(version) > _version_tuple(self.version):
            warnings.append("Warning: Import data is from a newer version of Storage Limit Manager.")
        try:
            data, sanitize_warnings = sanitize_settings(payload["settings"], self.defaults)
        except ValueError as exc:
            raise InvalidSettingsImport(str(exc)) from exc
        self._save(data)
        logger.info("Quota settings imported from version %s", version)
        return data, warnings + sanitize_warnings

    def _save(self, data: QuotaSettingsData) -> None:
        try:
            with self.session_factory.begin() as db:
                row = db.get(models.QuotaSettings, models.QUOTA_SETTINGS_KEY)
                if row is None:
                    row = models.QuotaSettings(key=models.QUOTA_SETTINGS_KEY)
                    db.add(row)
                row.max_storage_mb = data.max_storage_mb
                row.block_uploads = data.block_uploads
                row.show_progress_bar = data.show_progress_bar
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not save quota settings") from exc
