"""S3-compatible object store gateway.

boto3 is blocking, so every call is pushed onto a worker thread with
``asyncio.to_thread``; the event loop never waits on the object store.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from bookmark_preview.errors import ObjectStoreError
from bookmark_preview.models.config import Settings
from bookmark_preview.models.preview import CacheKey

logger = structlog.get_logger(__name__)

CACHE_CONTROL = "max-age=2592000"
_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
_DOWNLOAD_CHUNK = 64 * 1024


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class ObjectStoreGateway:
    """upload / exists / download_to against a single bucket."""

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        if not settings.object_store_bucket:
            msg = "object store bucket is not configured"
            raise ObjectStoreError(msg)
        self.settings = settings
        self.bucket = settings.object_store_bucket
        self._client = client

    @property
    def client(self) -> Any:
        """boto3 S3 client, created on first use."""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.settings.object_store_endpoint_url,
                aws_access_key_id=self.settings.object_store_access_key,
                aws_secret_access_key=self.settings.object_store_secret_key,
                region_name=self.settings.object_store_region,
                config=Config(
                    connect_timeout=self.settings.fetch_timeout,
                    read_timeout=self.settings.image_timeout,
                    retries={"max_attempts": 2},
                ),
            )
        return self._client

    def public_url(self, key: CacheKey) -> str:
        """Publicly servable URL for an object key."""
        domain = self.settings.object_store_public_domain
        if domain:
            domain = domain.rstrip("/")
            if "://" not in domain:
                domain = f"https://{domain}"
            return f"{domain}/{key.object_key}"

        endpoint = self.settings.object_store_endpoint_url
        if endpoint:
            return f"{endpoint.rstrip('/')}/{self.bucket}/{key.object_key}"

        region = self.settings.object_store_region
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key.object_key}"

    async def exists(self, key: CacheKey) -> bool:
        """HEAD the object. Missing objects are False; anything else raises."""
        try:
            await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=key.object_key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            logger.warning("object_store_head_failed", key=key.object_key, error=str(exc))
            raise ObjectStoreError(str(exc)) from exc
        except BotoCoreError as exc:
            logger.warning("object_store_head_failed", key=key.object_key, error=str(exc))
            raise ObjectStoreError(str(exc)) from exc
        return True

    async def upload(self, key: CacheKey, data: bytes, content_type: str = "image/jpeg") -> str:
        """Put the object and return its public URL."""
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key.object_key,
                Body=data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("object_store_upload_failed", key=key.object_key, error=str(exc))
            raise ObjectStoreError(str(exc)) from exc

        url = self.public_url(key)
        logger.info("object_store_uploaded", key=key.object_key, size=len(data), url=url)
        return url

    async def download_to(self, key: CacheKey, path: Path) -> Path:
        """Stream the object into path, replacing it atomically."""
        try:
            await asyncio.to_thread(self._download_sync, key, path)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("object_store_download_failed", key=key.object_key, error=str(exc))
            raise ObjectStoreError(str(exc)) from exc
        return path

    def _download_sync(self, key: CacheKey, path: Path) -> None:
        response = self.client.get_object(Bucket=self.bucket, Key=key.object_key)
        body = response["Body"]
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".download-", suffix=key.extension)
        try:
            with os.fdopen(fd, "wb") as handle:
                for chunk in iter(lambda: body.read(_DOWNLOAD_CHUNK), b""):
                    handle.write(chunk)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        finally:
            body.close()
