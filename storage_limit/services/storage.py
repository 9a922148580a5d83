import errno
import os
import stat
from pathlib import Path
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from storage_limit.core.config import Settings

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
# stat() failures that mean "no file at this key"
MISSING_FILE_ERRNOS = {errno.ENOENT, errno.ENOTDIR, errno.EISDIR, errno.ENAMETOOLONG, errno.ELOOP}


class StorageClient:
    def __init__(self, config: Settings):
        self.client = boto3.client(
            "s3",
            endpoint_url=config.minio_endpoint,
            aws_access_key_id=config.minio_access_key,
            aws_secret_access_key=config.minio_secret_key,
        )
        self.bucket = config.minio_bucket

    def head_object(self, key: str):
        return self.client.head_object(Bucket=self.bucket, Key=key)

    def object_size(self, key: str) -> int | None:
        try:
            head = self.head_object(key)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in NOT_FOUND_CODES:
                return None
            raise
        return int(head.get("ContentLength", 0))

    def bucket_exists(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError):
            return False
        return True


class S3FileBackend:
    """Media files kept as objects in the configured bucket."""

    def __init__(self, client: StorageClient):
        self.client = client

    def resolve(self, object_key: str) -> str | None:
        return object_key or None

    def size(self, path: str) -> int | None:
        return self.client.object_size(path)


class LocalFileBackend:
    """Media files kept under a local uploads directory.

    Only regular files strictly below the root count. A key that names a
    directory, passes through a file, or is too long for the filesystem is
    reported as missing.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def resolve(self, object_key: str) -> str | None:
        if not object_key:
            return None
        try:
            candidate = (self.root / object_key).resolve()
        except (OSError, RuntimeError):
            return None
        if self.root not in candidate.parents:
            return None
        if self._regular_file_stat(candidate) is None:
            return None
        return str(candidate)

    def size(self, path: str) -> int | None:
        info = self._regular_file_stat(path)
        return info.st_size if info is not None else None

    @staticmethod
    def _regular_file_stat(path: str | Path) -> os.stat_result | None:
        try:
            info = os.stat(path)
        except OSError as exc:
            if exc.errno in MISSING_FILE_ERRNOS:
                return None
            raise
        if not stat.S_ISREG(info.st_mode):
            return None
        return info
