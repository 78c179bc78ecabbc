"""Screenshot capture backends and the fallback that tries them in order."""

from __future__ import annotations

import asyncio
import importlib.util
from collections.abc import Sequence

import structlog

from bookmark_preview.core.url_normalization import compute_cache_key
from bookmark_preview.errors import PreviewError, ScreenshotError, StorageError
from bookmark_preview.models.config import Settings
from bookmark_preview.models.preview import ScreenshotResult
from bookmark_preview.services.cache import TieredCache
from bookmark_preview.services.http_client import HttpFetcher
from bookmark_preview.services.protocols import ScreenshotBackendProtocol
from bookmark_preview.utils.image_utils import normalize_to_jpeg

logger = structlog.get_logger(__name__)

SCREENSHOT_JPEG_QUALITY = 80
SETTLE_MS = 1000

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


class RemoteScreenshotBackend:
    """Hosted rendering service that answers a JSON POST with JPEG bytes."""

    name = "remote"

    def __init__(self, fetcher: HttpFetcher, api_url: str | None, timeout: float) -> None:
        self.fetcher = fetcher
        self.api_url = api_url
        self.timeout = timeout

    def available(self) -> bool:
        return bool(self.api_url)

    async def capture(self, url: str, width: int, height: int) -> bytes:
        if not self.api_url:
            msg = "screenshot_api_url is not configured"
            raise ScreenshotError(msg)
        payload = {
            "url": url,
            "width": width,
            "height": height,
            "fullPage": False,
            "format": "jpeg",
            "quality": SCREENSHOT_JPEG_QUALITY,
        }
        return await self.fetcher.post_for_image(self.api_url, payload, self.timeout)


class PlaywrightScreenshotBackend:
    """Local headless Chromium via playwright's async API."""

    name = "playwright"

    def __init__(self, timeout: float, serverless: bool = False) -> None:
        self.timeout = timeout
        self.serverless = serverless

    def available(self) -> bool:
        if self.serverless:
            return False
        return importlib.util.find_spec("playwright") is not None

    async def capture(self, url: str, width: int, height: int) -> bytes:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import async_playwright

        timeout_ms = self.timeout * 1000
        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(headless=True, args=_CHROMIUM_ARGS)
                try:
                    page = await browser.new_page(viewport={"width": width, "height": height})
                    await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                    await page.wait_for_timeout(SETTLE_MS)
                    return await page.screenshot(
                        type="jpeg",
                        quality=SCREENSHOT_JPEG_QUALITY,
                        full_page=False,
                    )
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise ScreenshotError(str(exc)) from exc


class ScreenshotFallback:
    """Tries each available backend until one produces a stored image."""

    def __init__(
        self,
        backends: Sequence[ScreenshotBackendProtocol],
        cache: TieredCache,
        settings: Settings,
    ) -> None:
        self.backends = [backend for backend in backends if backend.available()]
        self.cache = cache
        self.settings = settings

    @property
    def backend_names(self) -> list[str]:
        return [backend.name for backend in self.backends]

    def available(self) -> bool:
        return bool(self.backends)

    async def capture(
        self,
        url: str,
        width: int | None = None,
        height: int | None = None,
    ) -> ScreenshotResult:
        """Render the page, store it under the page's cache key and return its URL."""
        width = width or self.settings.screenshot_width
        height = height or self.settings.screenshot_height

        for backend in self.backends:
            try:
                raw = await backend.capture(url, width, height)
                data = await asyncio.to_thread(
                    normalize_to_jpeg,
                    raw,
                    self.settings.max_image_dimension,
                    self.settings.jpeg_quality,
                )
            except (PreviewError, OSError, ValueError) as exc:
                logger.info("screenshot_backend_failed", backend=backend.name, url=url, error=str(exc))
                continue

            key = compute_cache_key(url, self.settings.object_store_namespace)
            try:
                stored_url = await self.cache.store(key, data)
            except StorageError as exc:
                logger.warning("screenshot_store_failed", url=url, error=str(exc))
                return ScreenshotResult(success=False)

            logger.info("screenshot_captured", backend=backend.name, url=url, preview=stored_url)
            return ScreenshotResult(success=True, preview_image=stored_url)

        return ScreenshotResult(success=False)
