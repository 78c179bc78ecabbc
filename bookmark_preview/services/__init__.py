"""Preview services -- everything that touches the network, disk or object store."""

from bookmark_preview.services.cache import LocalDiskTier, ObjectStoreTier, TieredCache
from bookmark_preview.services.capabilities import (
    CapabilityRegistry,
    build_capabilities,
    detect_deployment_mode,
    load_overrides,
)
from bookmark_preview.services.http_client import FetchedPage, HttpFetcher
from bookmark_preview.services.metadata_extractor import HtmlMetadataExtractor
from bookmark_preview.services.object_store import ObjectStoreGateway
from bookmark_preview.services.resolver import PreviewResolver, build_resolver
from bookmark_preview.services.screenshot import (
    PlaywrightScreenshotBackend,
    RemoteScreenshotBackend,
    ScreenshotFallback,
)

__all__ = [
    "CapabilityRegistry",
    "FetchedPage",
    "HtmlMetadataExtractor",
    "HttpFetcher",
    "LocalDiskTier",
    "ObjectStoreGateway",
    "ObjectStoreTier",
    "PlaywrightScreenshotBackend",
    "PreviewResolver",
    "RemoteScreenshotBackend",
    "ScreenshotFallback",
    "TieredCache",
    "build_capabilities",
    "build_resolver",
    "detect_deployment_mode",
    "load_overrides",
]
