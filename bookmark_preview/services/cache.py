"""Content-addressable preview cache.

Two tiers behind one interface: a local disk directory (fast, lost on
redeploy, absent in serverless deployments) and the object store (durable,
publicly served). ``TieredCache`` composes them and owns the policy of which
tier is authoritative.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import time
from pathlib import Path

import structlog

from bookmark_preview.errors import ObjectStoreError, StorageError
from bookmark_preview.models.preview import CachedImage, CacheKey, CacheTierName
from bookmark_preview.services.object_store import ObjectStoreGateway
from bookmark_preview.services.protocols import CacheTierProtocol

logger = structlog.get_logger(__name__)


class LocalDiskTier:
    """Files at ``<root>/<namespace>/<digest>.jpg``, served under public_base_path."""

    name = CacheTierName.LOCAL.value

    def __init__(self, root: Path, public_base_path: str = "") -> None:
        self.root = Path(root)
        self.public_base_path = public_base_path.rstrip("/")

    def path_for(self, key: CacheKey) -> Path:
        return self.root / key.namespace / key.filename

    def public_path(self, key: CacheKey) -> str:
        return f"{self.public_base_path}/{key.object_key}"

    async def lookup(self, key: CacheKey) -> CachedImage | None:
        path = self.path_for(key)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError:
            return None
        return CachedImage(
            key=key,
            tier=CacheTierName.LOCAL,
            local_path=path,
            public_path=self.public_path(key),
            age_seconds=max(0.0, time.time() - stat.st_mtime),
        )

    async def store(self, key: CacheKey, data: bytes) -> str:
        """Write atomically and return the public path."""
        await asyncio.to_thread(self._write_atomic, self.path_for(key), data)
        return self.public_path(key)

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".write-", suffix=path.suffix)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class ObjectStoreTier:
    """Existence checks and uploads against the object store."""

    name = CacheTierName.REMOTE.value

    def __init__(self, gateway: ObjectStoreGateway) -> None:
        self.gateway = gateway

    async def lookup(self, key: CacheKey) -> CachedImage | None:
        if not await self.gateway.exists(key):
            return None
        return CachedImage(
            key=key,
            tier=CacheTierName.REMOTE,
            remote_url=self.gateway.public_url(key),
        )

    async def store(self, key: CacheKey, data: bytes) -> str:
        return await self.gateway.upload(key, data)

    async def fetch_to(self, key: CacheKey, path: Path) -> Path:
        return await self.gateway.download_to(key, path)


class TieredCache:
    """Local tier first, then remote; remote uploads are authoritative."""

    def __init__(
        self,
        local: LocalDiskTier | None,
        remote: ObjectStoreTier | None,
        ttl_seconds: float,
        remote_required: bool = False,
    ) -> None:
        self.local = local
        self.remote = remote
        self.ttl_seconds = ttl_seconds
        self.remote_required = remote_required

    @property
    def tiers(self) -> list[CacheTierProtocol]:
        return [tier for tier in (self.local, self.remote) if tier is not None]

    @property
    def tier_names(self) -> list[str]:
        return [tier.name for tier in self.tiers]

    async def lookup(self, key: CacheKey) -> CachedImage | None:
        """Return a fresh entry from either tier, or None.

        A stale local file counts as a miss for that tier only. Object store
        errors are logged and treated as a miss.
        """
        if self.local is not None:
            hit = await self._lookup_local(key)
            if hit is not None:
                return hit

        if self.remote is None:
            return None

        try:
            hit = await self.remote.lookup(key)
        except ObjectStoreError as exc:
            logger.warning("cache_remote_lookup_failed", key=str(key), error=str(exc))
            return None
        if hit is None:
            return None

        logger.debug("cache_hit", key=str(key), tier=hit.tier)
        if self.local is not None:
            local_path = await self._pull_down(key)
            if local_path is not None:
                hit = hit.model_copy(update={"local_path": local_path})
        return hit

    async def _lookup_local(self, key: CacheKey) -> CachedImage | None:
        assert self.local is not None
        try:
            hit = await self.local.lookup(key)
        except OSError as exc:
            logger.warning("cache_local_lookup_failed", key=str(key), error=str(exc))
            return None
        if hit is None:
            return None
        if not hit.is_fresh(self.ttl_seconds):
            logger.debug("cache_local_stale", key=str(key), age_seconds=round(hit.age_seconds))
            return None
        logger.debug("cache_hit", key=str(key), tier=hit.tier)
        return hit

    async def _pull_down(self, key: CacheKey) -> Path | None:
        """Copy a remote object to local disk; failures only cost a future download."""
        assert self.local is not None
        assert self.remote is not None
        try:
            return await self.remote.fetch_to(key, self.local.path_for(key))
        except (ObjectStoreError, OSError) as exc:
            logger.info("cache_pull_down_failed", key=str(key), error=str(exc))
            return None

    async def store(self, key: CacheKey, data: bytes) -> str:
        """Write through both tiers and return the URL to serve.

        Raises StorageError when no tier accepted the write, or when the
        remote tier is required and the upload did not happen.
        """
        local_url: str | None = None
        if self.local is not None:
            try:
                local_url = await self.local.store(key, data)
            except OSError as exc:
                logger.warning("cache_local_write_failed", key=str(key), error=str(exc))

        if self.remote is None:
            if self.remote_required:
                msg = "object store is required in this deployment but not configured"
                raise StorageError(msg)
            if local_url is None:
                msg = f"no cache tier accepted {key}"
                raise StorageError(msg)
            return local_url

        try:
            return await self.remote.store(key, data)
        except ObjectStoreError as exc:
            if self.remote_required or local_url is None:
                raise StorageError(f"upload of {key} failed: {exc}") from exc
            logger.warning("cache_remote_write_degraded", key=str(key), error=str(exc))
            return local_url
