from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import PurePosixPath
from uuid import UUID, uuid4

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from photoshelf.core.config import settings
from photoshelf.core.context import Principal
from photoshelf.core.errors import Forbidden, StorageError, ValidationError

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}

AVATAR_STEM = "avatar"


def _get_endpoint_url() -> str:
    if not settings.STORAGE_ENDPOINT_URL:
        raise ValueError("STORAGE_ENDPOINT_URL is required.")
    return settings.STORAGE_ENDPOINT_URL


def _get_bucket_name() -> str:
    if not settings.STORAGE_BUCKET_NAME:
        raise ValueError("STORAGE_BUCKET_NAME is required.")
    return settings.STORAGE_BUCKET_NAME


def _get_client():
    if not settings.STORAGE_ACCESS_KEY_ID or not settings.STORAGE_SECRET_ACCESS_KEY:
        raise ValueError("STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY are required.")

    return boto3.client(
        "s3",
        endpoint_url=_get_endpoint_url(),
        aws_access_key_id=settings.STORAGE_ACCESS_KEY_ID,
        aws_secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY,
        region_name=settings.STORAGE_REGION,
        config=Config(signature_version="s3v4"),
    )


def validate_key(key: str) -> str:
    """Return ``key`` if it has the ``{ownerId}/{filename}`` shape, else raise ValidationError."""
    key = (key or "").strip()
    if not key or key.startswith("/"):
        raise ValidationError("Storage key must be a relative path", details={"storage_key": key})
    segments = key.split("/")
    if len(segments) < 2 or any(segment in {"", ".", ".."} for segment in segments):
        raise ValidationError("Storage key must look like '{owner_id}/{filename}'", details={"storage_key": key})
    return key


def key_owner(key: str) -> str:
    return validate_key(key).split("/", 1)[0]


def ensure_key_owned(user_id: UUID, key: str) -> str:
    key = validate_key(key)
    if key_owner(key) != str(user_id):
        raise Forbidden("Storage key is outside the owner's folder", details={"storage_key": key})
    return key


def build_photo_key(user_id: UUID, filename: str) -> str:
    suffix = PurePosixPath(filename or "").suffix.lower()
    return f"{user_id}/{uuid4().hex}{suffix}"


def build_avatar_key(user_id: UUID, filename: str) -> str:
    suffix = PurePosixPath(filename or "").suffix.lower()
    return f"{user_id}/{AVATAR_STEM}{suffix}"


def is_avatar_key(key: str) -> bool:
    segments = validate_key(key).split("/")
    return len(segments) == 2 and PurePosixPath(segments[1]).stem == AVATAR_STEM


@contextmanager
def _storage_errors(action: str, key: str):
    try:
        yield
    except ValueError as exc:
        raise StorageError(
            f"Storage is not configured: {exc}",
            code="storage_not_configured",
            original_exception=exc,
        ) from exc
    except ClientError as exc:
        error_code = exc.response.get("Error", {}).get("Code", "UnknownError")
        logger.warning("storage event=%s_failed key=%s code=%s", action, key, error_code)
        if error_code == "AccessDenied":
            raise StorageError(
                "Storage access denied. Check the bucket credentials and permissions.",
                code="storage_access_denied",
                details={"storage_key": key},
                original_exception=exc,
            ) from exc
        raise StorageError(
            f"Storage {action} failed: {error_code}",
            details={"storage_key": key},
            original_exception=exc,
        ) from exc
    except BotoCoreError as exc:
        logger.warning("storage event=%s_failed key=%s error=%s", action, key, exc.__class__.__name__)
        raise StorageError(
            f"Storage {action} failed: {exc.__class__.__name__}",
            details={"storage_key": key},
            original_exception=exc,
        ) from exc


class BlobStore:
    """S3-compatible bucket where every object key starts with its owner's id.

    Writes and deletes are only allowed under the caller's own prefix.
    Reads are public: anyone holding an object's URL can fetch its bytes.
    """

    def __init__(self, client=None, bucket_name: str | None = None, public_base_url: str | None = None):
        self._client = client
        self._bucket_name = bucket_name
        self._public_base_url = public_base_url

    def _s3(self):
        if self._client is None:
            self._client = _get_client()
        return self._client

    def _bucket(self) -> str:
        return self._bucket_name or _get_bucket_name()

    def put(self, caller: Principal, key: str, data: bytes, content_type: str) -> str:
        key = ensure_key_owned(caller.user_id, key)
        with _storage_errors("upload", key):
            self._s3().put_object(Bucket=self._bucket(), Key=key, Body=data, ContentType=content_type)
        logger.info("storage event=uploaded key=%s size=%s", key, len(data))
        return self.public_url(key)

    def delete(self, caller: Principal, key: str) -> None:
        key = ensure_key_owned(caller.user_id, key)
        with _storage_errors("delete", key):
            self._s3().delete_object(Bucket=self._bucket(), Key=key)

    def exists(self, key: str) -> bool:
        key = validate_key(key)
        with _storage_errors("lookup", key):
            try:
                self._s3().head_object(Bucket=self._bucket(), Key=key)
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") in _MISSING_OBJECT_CODES:
                    return False
                raise
        return True

    def _base_url(self) -> str:
        base_url = self._public_base_url or settings.STORAGE_PUBLIC_BASE_URL
        if base_url:
            return base_url.rstrip("/")
        return f"{_get_endpoint_url().rstrip('/')}/{self._bucket()}"

    def public_url(self, key: str) -> str:
        with _storage_errors("url", key):
            return f"{self._base_url()}/{key}"

    def key_for_url(self, url: str | None) -> str | None:
        """Return the key behind a URL produced by ``public_url``, or None for any other URL."""
        if not url:
            return None
        with _storage_errors("url", url):
            prefix = f"{self._base_url()}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):] or None


def get_blob_store() -> BlobStore:
    return BlobStore()
