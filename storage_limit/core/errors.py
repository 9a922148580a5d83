"""Exceptions raised by the storage accounting services."""


class StorageLimitError(Exception):
    """Base class for all storage limit errors."""


class PersistenceFailure(StorageLimitError):
    """Raised when the usage store, settings store or lease store is unavailable."""


class InvalidQuotaConfig(StorageLimitError):
    """Raised when blocking is enabled but no positive quota is configured."""

    def __init__(self, max_storage_bytes: int) -> None:
        self.max_storage_bytes = max_storage_bytes
        super().__init__(
            f"Quota must be positive when upload blocking is enabled (got {max_storage_bytes} bytes)"
        )


class InvalidSettingsImport(StorageLimitError):
    """Raised when imported settings data has the wrong shape."""


class ObjectNotFound(StorageLimitError):
    """Raised when a media object id is not in the catalog."""

    def __init__(self, object_id: str) -> None:
        self.object_id = object_id
        super().__init__(f"Media object {object_id} not found")


class DuplicateObject(StorageLimitError):
    """Raised when an object key is already registered in the catalog."""

    def __init__(self, object_key: str) -> None:
        self.object_key = object_key
        super().__init__(f"Media object with key {object_key} already exists")
