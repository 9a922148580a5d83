import datetime as dt
from collections import Counter
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storage_limit.core.errors import DuplicateObject, ObjectNotFound, PersistenceFailure
from storage_limit.db import models


@dataclass(frozen=True)
class StoredObject:
    id: str
    object_key: str
    mime_type: str


class ObjectStore(Protocol):
    def list_objects(self, page_size: int, offset: int) -> Sequence[StoredObject]:
        ...

    def resolve_file(self, obj: StoredObject) -> str | None:
        ...

    def file_size(self, path: str) -> int | None:
        ...


class FileBackend(Protocol):
    def resolve(self, object_key: str) -> str | None:
        ...

    def size(self, path: str) -> int | None:
        ...


def _to_stored(row: models.MediaObject) -> StoredObject:
    return StoredObject(id=row.id, object_key=row.object_key, mime_type=row.mime_type)


class CatalogObjectStore:
    """Media catalog in the database with file sizes read from a file backend."""

    def __init__(self, session_factory: sessionmaker, backend: FileBackend):
        self.session_factory = session_factory
        self.backend = backend

    def list_objects(self, page_size: int, offset: int) -> list[StoredObject]:
        query = (
            select(models.MediaObject)
            .order_by(models.MediaObject.created_at, models.MediaObject.id)
            .limit(page_size)
            .offset(offset)
        )
        try:
            with self.session_factory() as db:
                return [_to_stored(row) for row in db.scalars(query)]
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not list media objects") from exc

    def resolve_file(self, obj: StoredObject) -> str | None:
        return self.backend.resolve(obj.object_key)

    def file_size(self, path: str) -> int | None:
        return self.backend.size(path)

    def size_of(self, obj: StoredObject) -> int | None:
        path = self.resolve_file(obj)
        if path is None:
            return None
        return self.file_size(path)

    def get_object(self, object_id: str) -> StoredObject:
        try:
            with self.session_factory() as db:
                row = db.get(models.MediaObject, object_id)
                if row is None:
                    raise ObjectNotFound(object_id)
                return _to_stored(row)
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not read media object") from exc

    def add_object(
        self,
        object_key: str,
        mime_type: str = "application/octet-stream",
        metadata: dict[str, Any] | None = None,
    ) -> StoredObject:
        try:
            with self.session_factory.begin() as db:
                row = models.MediaObject(object_key=object_key, mime_type=mime_type, details=metadata)
                db.add(row)
                db.flush()
                return _to_stored(row)
        except IntegrityError as exc:
            raise DuplicateObject(object_key) from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not register media object") from exc

    def update_metadata(self, object_id: str, metadata: dict[str, Any]) -> StoredObject:
        try:
            with self.session_factory.begin() as db:
                row = db.get(models.MediaObject, object_id)
                if row is None:
                    raise ObjectNotFound(object_id)
                row.details = metadata
                row.updated_at = dt.datetime.utcnow()
                return _to_stored(row)
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not update media metadata") from exc

    def remove_object(self, object_id: str) -> None:
        """Delete the catalog row; only one of several concurrent callers succeeds."""
        statement = delete(models.MediaObject).where(models.MediaObject.id == object_id)
        try:
            with self.session_factory.begin() as db:
                removed = db.execute(statement).rowcount
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not remove media object") from exc
        if removed == 0:
            raise ObjectNotFound(object_id)

    def count_by_type(self) -> dict[str, int]:
        """Object counts grouped by top-level MIME type (``image``, ``video`` ...)."""
        query = select(models.MediaObject.mime_type, func.count()).group_by(models.MediaObject.mime_type)
        try:
            with self.session_factory() as db:
                rows = db.execute(query).all()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not count media objects") from exc
        counts: Counter[str] = Counter()
        for mime_type, count in rows:
            counts[(mime_type or "").split("/", 1)[0] or "unknown"] += count
        return dict(counts.most_common())
