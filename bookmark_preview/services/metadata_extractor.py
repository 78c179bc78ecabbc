"""Fetches pages and turns them into PageMetadata.

Parsing is pure (``core.html_metadata``) but BeautifulSoup on a multi-megabyte
page is slow enough to stall the loop, so it runs in a worker thread.
"""

from __future__ import annotations

import asyncio

import structlog

from bookmark_preview.core.html_metadata import extract_title_regex, parse_page
from bookmark_preview.core.overrides import DomainOverrideTable
from bookmark_preview.errors import FetchError
from bookmark_preview.models.preview import ImageSource, PageMetadata
from bookmark_preview.services.http_client import HttpFetcher

logger = structlog.get_logger(__name__)


class HtmlMetadataExtractor:
    """Title and best-image extraction for a single URL."""

    def __init__(
        self,
        fetcher: HttpFetcher,
        overrides: DomainOverrideTable | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.overrides = overrides or DomainOverrideTable()

    async def extract(self, url: str) -> PageMetadata:
        """Fetch and parse a page, then apply any domain override.

        Raises:
            FetchError: The page could not be fetched or returned 4xx/5xx.
        """
        page = await self.fetcher.fetch_html(url)
        metadata = await asyncio.to_thread(
            parse_page,
            page.text,
            url,
            page.final_url,
            page.status_code,
        )

        metadata.title = self.overrides.apply_title(url, metadata.title)
        override_image = self.overrides.image_for(url)
        if override_image:
            metadata.best_image_url = override_image
            metadata.image_source = ImageSource.OVERRIDE

        logger.info(
            "page_metadata_extracted",
            url=url,
            final_url=page.final_url,
            has_title=bool(metadata.title),
            image_source=metadata.image_source,
        )
        return metadata

    async def fetch_title(self, url: str) -> str:
        """Lightweight title re-fetch for cache hits; "" on any failure."""
        try:
            page = await self.fetcher.fetch_html(
                url,
                timeout=self.fetcher.settings.title_fetch_timeout,
                max_bytes=256 * 1024,
            )
        except FetchError as exc:
            logger.debug("title_fetch_failed", url=url, error=str(exc))
            return self.overrides.apply_title(url, "")

        return self.overrides.apply_title(url, extract_title_regex(page.text))
