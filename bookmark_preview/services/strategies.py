"""The resolution chain: each strategy either answers or passes.

Strategies share a ``ResolutionContext`` so later links can reuse what
earlier ones learned (the extracted title feeds the screenshot and the
color swatch without a second page fetch).
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass

import httpx
import structlog

from bookmark_preview.errors import PreviewError
from bookmark_preview.models.config import Settings
from bookmark_preview.models.preview import CacheKey, PageMetadata, PreviewResult, PreviewSource
from bookmark_preview.services.cache import TieredCache
from bookmark_preview.services.http_client import HttpFetcher
from bookmark_preview.services.metadata_extractor import HtmlMetadataExtractor
from bookmark_preview.services.screenshot import ScreenshotFallback
from bookmark_preview.utils.image_utils import normalize_to_jpeg

logger = structlog.get_logger(__name__)


@dataclass
class ResolutionContext:
    url: str
    key: CacheKey
    known_title: str | None = None
    bypass_cache: bool = False
    title: str = ""
    metadata: PageMetadata | None = None


class TitleMemo:
    """Bounded in-process map of cache digest -> last extracted title.

    Lets a cache hit report the page title without fetching the page again.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        self.max_entries = max_entries
        self._titles: OrderedDict[str, str] = OrderedDict()

    def __len__(self) -> int:
        return len(self._titles)

    def get(self, digest: str) -> str | None:
        """None when the digest was never seen."""
        title = self._titles.get(digest)
        if title is not None:
            self._titles.move_to_end(digest)
        return title

    def remember(self, digest: str, title: str) -> None:
        """Record a title; "" means the page has none and is remembered too."""
        self._titles[digest] = title
        self._titles.move_to_end(digest)
        while len(self._titles) > self.max_entries:
            self._titles.popitem(last=False)


class CachedPreviewStrategy:
    name = "cache"

    def __init__(
        self,
        cache: TieredCache,
        extractor: HtmlMetadataExtractor,
        titles: TitleMemo,
    ) -> None:
        self.cache = cache
        self.extractor = extractor
        self.titles = titles

    async def attempt(self, ctx: ResolutionContext) -> PreviewResult | None:
        if ctx.bypass_cache:
            return None
        hit = await self.cache.lookup(ctx.key)
        if hit is None or not hit.url:
            return None

        title = self.titles.get(ctx.key.digest)
        if title is None and not ctx.known_title:
            title = await self.extractor.fetch_title(ctx.url)
            self.titles.remember(ctx.key.digest, title)
        ctx.title = title or ""

        logger.info("preview_cache_hit", url=ctx.url, tier=hit.tier, preview=hit.url)
        return PreviewResult(preview_image=hit.url, page_title=ctx.title, source=PreviewSource.CACHE)


class ExtractedImageStrategy:
    """Scrape the page, download the best image, normalise and store it."""

    name = "extracted"

    def __init__(
        self,
        extractor: HtmlMetadataExtractor,
        fetcher: HttpFetcher,
        cache: TieredCache,
        settings: Settings,
        titles: TitleMemo,
    ) -> None:
        self.extractor = extractor
        self.fetcher = fetcher
        self.cache = cache
        self.settings = settings
        self.titles = titles

    async def attempt(self, ctx: ResolutionContext) -> PreviewResult | None:
        try:
            metadata = await self.extractor.extract(ctx.url)
        except (PreviewError, httpx.HTTPError) as exc:
            logger.info("page_extraction_failed", url=ctx.url, error=str(exc))
            return None

        ctx.metadata = metadata
        ctx.title = metadata.title
        self.titles.remember(ctx.key.digest, metadata.title)

        image_url = metadata.best_image_url
        if not image_url:
            logger.info("no_preview_image_found", url=ctx.url)
            return None

        try:
            raw = await self.fetcher.download_image(image_url)
            data = await asyncio.to_thread(
                normalize_to_jpeg,
                raw,
                self.settings.max_image_dimension,
                self.settings.jpeg_quality,
            )
            stored_url = await self.cache.store(ctx.key, data)
        except (PreviewError, httpx.HTTPError, OSError, ValueError) as exc:
            logger.info("preview_image_unusable", url=ctx.url, image_url=image_url, error=str(exc))
            return None

        logger.info(
            "preview_image_stored",
            url=ctx.url,
            image_url=image_url,
            image_source=metadata.image_source,
            preview=stored_url,
        )
        return PreviewResult(
            preview_image=stored_url,
            page_title=metadata.title,
            source=PreviewSource.EXTRACTED,
        )


class ScreenshotStrategy:
    name = "screenshot"

    def __init__(self, screenshots: ScreenshotFallback) -> None:
        self.screenshots = screenshots

    async def attempt(self, ctx: ResolutionContext) -> PreviewResult | None:
        if not self.screenshots.available():
            return None
        result = await self.screenshots.capture(ctx.url)
        if not result.success:
            return None
        return PreviewResult(
            preview_image=result.preview_image,
            page_title=ctx.title,
            source=PreviewSource.SCREENSHOT,
        )
