import uuid
import datetime as dt
from sqlalchemy import (
    JSON,
    Column,
    String,
    DateTime,
    Integer,
    Boolean,
    BigInteger,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

USAGE_RECORD_KEY = "media"
QUOTA_SETTINGS_KEY = "default"


class UsageRecord(Base):
    __tablename__ = "usage_records"

    key = Column(String, primary_key=True, default=USAGE_RECORD_KEY)
    total_bytes = Column(BigInteger, nullable=False, default=0)
    last_updated = Column(DateTime, default=dt.datetime.utcnow, nullable=False)


class QuotaSettings(Base):
    __tablename__ = "quota_settings"

    key = Column(String, primary_key=True, default=QUOTA_SETTINGS_KEY)
    max_storage_mb = Column(Integer, nullable=False)
    block_uploads = Column(Boolean, nullable=False, default=True)
    show_progress_bar = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)


class MediaObject(Base):
    __tablename__ = "media_objects"
    __table_args__ = (
        UniqueConstraint("object_key", name="uq_media_objects_object_key"),
        Index("ix_media_objects_mime_type", "mime_type"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    object_key = Column(String, nullable=False)
    mime_type = Column(String, nullable=False, default="application/octet-stream")
    details = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    action = Column(String, nullable=False)
    object_id = Column(String, nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
