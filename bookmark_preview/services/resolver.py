"""PreviewResolver -- the entry point the bookmark layer calls.

``resolve`` is total: whatever the input and whatever fails underneath, the
caller gets a PreviewResult, at worst a color swatch. Only cancellation of
the calling task escapes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from bookmark_preview.core.color_swatch import generate_color_preview
from bookmark_preview.core.url_normalization import (
    cache_key_url,
    compute_cache_key,
    compute_content_key,
    extract_hostname,
    normalize_url,
)
from bookmark_preview.errors import StorageError
from bookmark_preview.models.config import Settings
from bookmark_preview.models.preview import PreviewRequest, PreviewResult, PreviewSource, UploadResult
from bookmark_preview.services.capabilities import CapabilityRegistry, build_capabilities
from bookmark_preview.services.http_client import HttpFetcher
from bookmark_preview.services.metadata_extractor import HtmlMetadataExtractor
from bookmark_preview.services.protocols import PreviewStrategyProtocol
from bookmark_preview.services.screenshot import ScreenshotFallback
from bookmark_preview.services.strategies import (
    CachedPreviewStrategy,
    ExtractedImageStrategy,
    ResolutionContext,
    ScreenshotStrategy,
    TitleMemo,
)
from bookmark_preview.utils.image_utils import normalize_to_jpeg

logger = structlog.get_logger(__name__)


@dataclass
class _InFlight:
    task: asyncio.Task[PreviewResult]
    waiters: int = 0


class PreviewResolver:
    """Runs the cache -> extraction -> screenshot -> swatch chain."""

    def __init__(
        self,
        settings: Settings,
        fetcher: HttpFetcher,
        capabilities: CapabilityRegistry,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.capabilities = capabilities
        self.cache = capabilities.cache
        self.titles = TitleMemo()
        self.extractor = HtmlMetadataExtractor(fetcher, capabilities.overrides)
        self.screenshots = ScreenshotFallback(
            capabilities.screenshot_backends,
            capabilities.cache,
            settings,
        )
        self.strategies: list[PreviewStrategyProtocol] = [
            CachedPreviewStrategy(self.cache, self.extractor, self.titles),
            ExtractedImageStrategy(self.extractor, fetcher, self.cache, settings, self.titles),
            ScreenshotStrategy(self.screenshots),
        ]
        self._in_flight: dict[tuple[str, bool], _InFlight] = {}

    async def __aenter__(self) -> PreviewResolver:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        tasks = [flight.task for flight in self._in_flight.values()]
        self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.fetcher.aclose()

    async def resolve(self, url: str, known_title: str | None = None) -> PreviewResult:
        """Best preview for a URL, using the cache when it can."""
        return await self._resolve(PreviewRequest(url=url, known_title=known_title), bypass_cache=False)

    async def refresh(self, url: str, known_title: str | None = None) -> PreviewResult:
        """Like resolve, but skips the cache lookup and overwrites the entry."""
        return await self._resolve(PreviewRequest(url=url, known_title=known_title), bypass_cache=True)

    async def _resolve(self, request: PreviewRequest, bypass_cache: bool) -> PreviewResult:
        raw_url = request.url
        known = request.known_title or ""
        normalized = normalize_url(raw_url)
        swatch_url = cache_key_url(normalized) or raw_url

        if not normalized or not extract_hostname(normalized):
            logger.info("preview_url_unusable", url=raw_url)
            return self._personalize(self._swatch(swatch_url, ""), known, swatch_url)

        ctx = ResolutionContext(
            url=normalized,
            key=compute_cache_key(normalized, self.settings.object_store_namespace),
            known_title=known or None,
            bypass_cache=bypass_cache,
        )
        result = await self._shared(ctx, swatch_url)
        return self._personalize(result, known, swatch_url)

    async def _shared(self, ctx: ResolutionContext, swatch_url: str) -> PreviewResult:
        """Join the running resolution for this key, or start one.

        Callers are keyed by cache key, so a caller that joins gets the
        result fetched with the first caller's URL, query string included.
        The shared task is cancelled only when its last waiter goes away, and
        it leaves the map at that moment so later callers start afresh.
        """
        flight_key = (ctx.key.digest, ctx.bypass_cache)
        flight = self._in_flight.get(flight_key)
        if flight is None:
            task = asyncio.create_task(self._run_chain(ctx, swatch_url))
            flight = _InFlight(task=task)
            self._in_flight[flight_key] = flight
            task.add_done_callback(lambda _: self._forget(flight_key, flight))
        else:
            logger.debug("preview_resolution_joined", url=ctx.url, key=str(ctx.key))

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                self._forget(flight_key, flight)
                flight.task.cancel()

    def _forget(self, flight_key: tuple[str, bool], flight: _InFlight) -> None:
        if self._in_flight.get(flight_key) is flight:
            del self._in_flight[flight_key]

    async def _run_chain(self, ctx: ResolutionContext, swatch_url: str) -> PreviewResult:
        try:
            async with asyncio.timeout(self.settings.resolve_timeout):
                for strategy in self.strategies:
                    try:
                        result = await strategy.attempt(ctx)
                    except Exception:
                        logger.exception("preview_strategy_crashed", strategy=strategy.name, url=ctx.url)
                        continue
                    if result is not None:
                        logger.info("preview_resolved", url=ctx.url, source=result.source)
                        return result
        except TimeoutError:
            logger.warning("preview_resolution_timed_out", url=ctx.url, timeout=self.settings.resolve_timeout)

        logger.info("preview_color_fallback", url=ctx.url)
        return self._swatch(swatch_url, ctx.title)

    @staticmethod
    def _swatch(swatch_url: str, title: str) -> PreviewResult:
        return PreviewResult(
            preview_image="",
            page_title=title,
            color_preview=generate_color_preview(swatch_url, title or None),
            source=PreviewSource.COLOR,
        )

    @staticmethod
    def _personalize(result: PreviewResult, known_title: str, swatch_url: str) -> PreviewResult:
        """Apply one caller's known title to a possibly shared result.

        The page title prefers what was extracted; the swatch label prefers
        what the caller supplied.
        """
        if not known_title:
            return result
        update: dict[str, Any] = {"page_title": result.page_title or known_title}
        if result.color_preview is not None:
            update["color_preview"] = generate_color_preview(swatch_url, known_title)
        return result.model_copy(update=update)

    async def upload_image(self, data: bytes, filename: str | None = None) -> UploadResult:
        """Store a user-supplied preview image, deduplicated by content hash."""
        if not data:
            return UploadResult(success=False, message="no image data received")
        if len(data) > self.settings.max_upload_bytes:
            limit_mb = self.settings.max_upload_bytes / (1024 * 1024)
            return UploadResult(success=False, message=f"image exceeds the {limit_mb:g} MB limit")
        if self.capabilities.serverless and self.capabilities.gateway is None:
            logger.warning("upload_rejected_no_object_store", filename=filename)
            return UploadResult(
                success=False,
                message="object storage is not configured; uploads are unavailable in this deployment",
            )

        key = compute_content_key(data, self.settings.upload_namespace)
        existing = await self.cache.lookup(key)
        if existing is not None and existing.url:
            logger.info("upload_deduplicated", key=str(key), url=existing.url)
            return UploadResult(success=True, url=existing.url, message="already uploaded")

        try:
            jpeg = await asyncio.to_thread(
                normalize_to_jpeg,
                data,
                self.settings.max_image_dimension,
                self.settings.jpeg_quality,
                False,
            )
        except (OSError, ValueError) as exc:
            logger.info("upload_not_an_image", filename=filename, error=str(exc))
            return UploadResult(success=False, message=f"not a usable image: {exc}")

        try:
            url = await self.cache.store(key, jpeg)
        except StorageError as exc:
            logger.warning("upload_store_failed", key=str(key), error=str(exc))
            return UploadResult(success=False, message=f"could not store image: {exc}")

        logger.info("upload_stored", key=str(key), filename=filename, size=len(jpeg), url=url)
        return UploadResult(success=True, url=url)


def build_resolver(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    s3_client: Any | None = None,
    environ: Mapping[str, str] | None = None,
) -> PreviewResolver:
    """Assemble a resolver from settings, resolving capabilities once.

    Raises:
        ConfigurationError: The overrides file is unreadable or invalid.
    """
    settings = settings or Settings()
    fetcher = HttpFetcher(settings, transport=transport)
    capabilities = build_capabilities(settings, fetcher, s3_client=s3_client, environ=environ)
    return PreviewResolver(settings, fetcher, capabilities)
