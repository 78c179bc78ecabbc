"""Startup-time resolution of what this deployment can do.

Which cache tiers exist, which screenshot backends can run and which domain
overrides apply are environment facts; they are decided once here instead of
being re-checked on every request.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import TypeAdapter, ValidationError

from bookmark_preview.core.overrides import DomainOverrideTable
from bookmark_preview.errors import ConfigurationError
from bookmark_preview.models.config import Settings
from bookmark_preview.models.override import DomainOverride
from bookmark_preview.services.cache import LocalDiskTier, ObjectStoreTier, TieredCache
from bookmark_preview.services.http_client import HttpFetcher
from bookmark_preview.services.object_store import ObjectStoreGateway
from bookmark_preview.services.protocols import ScreenshotBackendProtocol
from bookmark_preview.services.screenshot import (
    PlaywrightScreenshotBackend,
    RemoteScreenshotBackend,
)

logger = structlog.get_logger(__name__)

SERVERLESS_ENV_MARKERS = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "K_SERVICE")

ResolvedMode = Literal["persistent", "ephemeral"]

_OVERRIDE_LIST = TypeAdapter(list[DomainOverride])


def _cache_dir_writable(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


def detect_deployment_mode(
    settings: Settings,
    environ: Mapping[str, str] | None = None,
) -> ResolvedMode:
    """Resolve ``auto`` to persistent or ephemeral.

    Serverless platforms are recognised by their marker variables; anywhere
    else the local cache directory decides.
    """
    if settings.deployment_mode != "auto":
        return settings.deployment_mode

    env = os.environ if environ is None else environ
    for marker in SERVERLESS_ENV_MARKERS:
        if env.get(marker):
            logger.debug("serverless_marker_found", marker=marker)
            return "ephemeral"

    if not _cache_dir_writable(settings.cache_dir):
        logger.warning("cache_dir_not_writable", cache_dir=str(settings.cache_dir))
        return "ephemeral"
    return "persistent"


def load_overrides(path: Path | None) -> DomainOverrideTable:
    """Load the domain override table from a JSON file.

    Accepts a list of records, or an object mapping hostname to record.

    Raises:
        ConfigurationError: The file is missing, not JSON, or a record is invalid.
    """
    if path is None:
        return DomainOverrideTable()

    try:
        raw: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        msg = f"cannot read overrides file {path}: {exc}"
        raise ConfigurationError(msg) from exc

    if isinstance(raw, dict):
        raw = [{"hostname": hostname, **(record or {})} for hostname, record in raw.items()]

    try:
        overrides = _OVERRIDE_LIST.validate_python(raw)
    except ValidationError as exc:
        msg = f"invalid overrides file {path}: {exc}"
        raise ConfigurationError(msg) from exc

    logger.info("domain_overrides_loaded", path=str(path), count=len(overrides))
    return DomainOverrideTable(overrides)


def build_screenshot_backends(
    settings: Settings,
    fetcher: HttpFetcher,
    serverless: bool,
) -> list[ScreenshotBackendProtocol]:
    """Backends in precedence order, limited by ``screenshot_backend``, available ones only."""
    choice = settings.screenshot_backend
    if choice == "none":
        return []

    candidates: list[ScreenshotBackendProtocol] = []
    if choice in ("auto", "remote"):
        candidates.append(
            RemoteScreenshotBackend(fetcher, settings.screenshot_api_url, settings.screenshot_timeout)
        )
    if choice in ("auto", "playwright"):
        candidates.append(PlaywrightScreenshotBackend(settings.screenshot_timeout, serverless=serverless))

    backends = [backend for backend in candidates if backend.available()]
    if choice != "auto" and not backends:
        logger.warning("screenshot_backend_unavailable", backend=choice)
    return backends


@dataclass
class CapabilityRegistry:
    mode: ResolvedMode
    cache: TieredCache
    screenshot_backends: list[ScreenshotBackendProtocol] = field(default_factory=list)
    overrides: DomainOverrideTable = field(default_factory=DomainOverrideTable)
    gateway: ObjectStoreGateway | None = None

    @property
    def serverless(self) -> bool:
        return self.mode == "ephemeral"


def build_capabilities(
    settings: Settings,
    fetcher: HttpFetcher,
    s3_client: Any | None = None,
    environ: Mapping[str, str] | None = None,
) -> CapabilityRegistry:
    """Resolve tiers, backends and overrides for this process."""
    mode = detect_deployment_mode(settings, environ)
    serverless = mode == "ephemeral"

    gateway: ObjectStoreGateway | None = None
    if settings.object_store_configured:
        gateway = ObjectStoreGateway(settings, client=s3_client)

    local = None if serverless else LocalDiskTier(settings.cache_dir, settings.public_base_path)
    remote = ObjectStoreTier(gateway) if gateway is not None else None
    cache = TieredCache(
        local=local,
        remote=remote,
        ttl_seconds=settings.cache_ttl_seconds,
        remote_required=serverless,
    )

    registry = CapabilityRegistry(
        mode=mode,
        cache=cache,
        screenshot_backends=build_screenshot_backends(settings, fetcher, serverless),
        overrides=load_overrides(settings.overrides_file),
        gateway=gateway,
    )
    logger.info(
        "capabilities_resolved",
        mode=mode,
        cache_tiers=cache.tier_names,
        screenshot_backends=[backend.name for backend in registry.screenshot_backends],
        overrides=len(registry.overrides),
    )
    return registry
