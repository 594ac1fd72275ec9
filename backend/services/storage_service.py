"""
Preview Storage Service — persists preview images and hands back public URLs.

Objects are laid out per workflow:
  {workflow_id}/
    ├── {preview_id}-light.webp
    └── {preview_id}-dark.webp

Two backends, chosen by the STORAGE_MODE setting:
  - local: files under LOCAL_STORAGE_PATH, served by the API (development)
  - s3:    S3-compatible bucket, public-read objects (production)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings, get_settings
from core.exceptions import UploadError, ValidationError
from preview.models import THEMES, ImageFormat, Theme, preview_key

logger = logging.getLogger(__name__)

# S3 error codes that mean "object is already gone"
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class StorageBackend(ABC):
    """Where encoded preview images end up."""

    name: str = "base"

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False when there was nothing to remove."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL an object stored under ``key`` is reachable at."""


# ─── Local filesystem ──────────────────────────────────────────────

class LocalStorageBackend(StorageBackend):
    """Stores previews on the local filesystem (development mode)."""

    name = "local"

    def __init__(self, base_path: str, public_base_url: str):
        self.base_path = Path(base_path).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def resolve(self, key: str) -> Path:
        """
        Resolve a storage key to an absolute path inside base_path.
        Prevents directory traversal attacks.
        """
        target = (self.base_path / key).resolve()
        if target != self.base_path and self.base_path not in target.parents:
            logger.warning(f"Path traversal attempt: {key}")
            raise ValidationError(f"Invalid storage key: {key}")
        return target

    def get_file_path(self, key: str) -> Optional[Path]:
        """Absolute path of a stored object, or None if it does not exist."""
        try:
            target = self.resolve(key)
        except ValidationError:
            return None
        if not target.exists() or not target.is_file():
            return None
        return target

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        target = self.resolve(key)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise UploadError(f"Could not store {key}", cause=exc, backend=self.name) from exc
        logger.info(f"[Local Storage] Saved {key} ({len(data)} bytes, {content_type})")
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        target = self.resolve(key)
        try:
            existed = await asyncio.to_thread(self._unlink, target)
        except OSError as exc:
            raise UploadError(f"Could not delete {key}", cause=exc, backend=self.name) from exc
        if existed:
            logger.info(f"[Local Storage] Deleted {key}")
        return existed

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    @staticmethod
    def _unlink(target: Path) -> bool:
        if not target.exists():
            return False
        target.unlink()
        return True


# ─── S3-compatible object storage ──────────────────────────────────

class S3StorageBackend(StorageBackend):
    """Stores previews as public-read objects in an S3 bucket (production mode).

    boto3 is blocking, so every call runs in a worker thread.
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        public_base_url: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: str = "",
        secret_access_key: str = "",
        acl: str = "public-read",
        cache_control: str = "max-age=31536000",
        client: Any = None,
    ):
        if not bucket:
            raise ValueError("S3_BUCKET config missing. Set S3_BUCKET to the preview bucket name.")
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.region = region
        self.endpoint_url = endpoint_url
        self.acl = acl
        self.cache_control = cache_control
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            kwargs: Dict[str, Any] = {}
            if self.region:
                kwargs["region_name"] = self.region
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            if self._access_key_id and self._secret_access_key:
                kwargs["aws_access_key_id"] = self._access_key_id
                kwargs["aws_secret_access_key"] = self._secret_access_key
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=self.cache_control,
                ACL=self.acl,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"[S3] Upload of {self.bucket}/{key} failed: {exc}")
            raise UploadError(f"Could not upload {key}", cause=exc, backend=self.name) from exc
        logger.info(f"[S3] Uploaded {self.bucket}/{key} ({len(data)} bytes)")
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                logger.info(f"[S3] {self.bucket}/{key} already absent")
                return False
            raise UploadError(f"Could not delete {key}", cause=exc, backend=self.name) from exc
        except BotoCoreError as exc:
            raise UploadError(f"Could not delete {key}", cause=exc, backend=self.name) from exc
        logger.info(f"[S3] Deleted {self.bucket}/{key}")
        return True


# ─── Uploader ──────────────────────────────────────────────────────

class StorageUploader:
    """Uploads preview images through whichever backend it was built with."""

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    @property
    def mode(self) -> str:
        return self.backend.name

    @staticmethod
    def preview_key(
        workflow_id: str,
        preview_id: str,
        theme: Theme,
        image_format: ImageFormat = ImageFormat.WEBP,
    ) -> str:
        return preview_key(workflow_id, preview_id, theme, image_format)

    async def upload(self, data: bytes, key: str, image_format: ImageFormat) -> str:
        """Store an encoded image and return its public URL.

        Raises:
            UploadError: If the backend rejects the write
        """
        fmt = ImageFormat.parse(image_format)
        return await self.backend.put(key, data, fmt.content_type)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def delete_preview(
        self,
        workflow_id: str,
        preview_id: str,
        image_format: ImageFormat = ImageFormat.WEBP,
    ) -> Dict[str, bool]:
        """
        Delete both theme images of a preview.
        Missing objects count as deleted; returns {theme: existed}.
        """
        fmt = ImageFormat.parse(image_format)
        keys = [self.preview_key(workflow_id, preview_id, theme, fmt) for theme in THEMES]
        removed = await asyncio.gather(*(self.backend.delete(key) for key in keys))
        outcome = {theme.value: existed for theme, existed in zip(THEMES, removed)}
        if not any(removed):
            logger.info(f"Preview {preview_id} of workflow {workflow_id} had no stored images")
        return outcome


def create_storage_backend(settings: Settings) -> StorageBackend:
    """Build the backend named by ``settings.STORAGE_MODE``."""
    if settings.is_local_storage:
        return LocalStorageBackend(
            base_path=settings.LOCAL_STORAGE_PATH,
            public_base_url=settings.local_public_url,
        )
    if settings.STORAGE_MODE.lower() == "s3":
        return S3StorageBackend(
            bucket=settings.S3_BUCKET,
            public_base_url=settings.s3_public_url,
            region=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            acl=settings.PREVIEW_ACL,
            cache_control=settings.PREVIEW_CACHE_CONTROL,
        )
    raise ValueError(f"Unknown STORAGE_MODE: {settings.STORAGE_MODE}")


# Singleton instance
_storage_uploader: Optional[StorageUploader] = None


def get_storage_uploader() -> StorageUploader:
    """Get or create the storage uploader singleton."""
    global _storage_uploader
    if _storage_uploader is None:
        _storage_uploader = StorageUploader(create_storage_backend(get_settings()))
    return _storage_uploader
