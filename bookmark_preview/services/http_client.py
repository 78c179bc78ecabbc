"""Async HTTP access for page fetches, image downloads and screenshot APIs.

One ``httpx.AsyncClient`` is shared by every resolution on the event loop;
each request carries its own timeout and streams with a byte cap so a slow or
huge origin cannot stall or exhaust the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from bookmark_preview.errors import FetchError, ImageDownloadError, ScreenshotError
from bookmark_preview.models.config import Settings
from bookmark_preview.utils.retry import retry_with_logging

logger = structlog.get_logger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
IMAGE_ACCEPT = "image/avif,image/webp,image/png,image/jpeg,image/*;q=0.8,*/*;q=0.5"

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
_ACCEPTED_IMAGE_TYPES = ("image/", "application/octet-stream", "binary/octet-stream")


@dataclass
class FetchedPage:
    text: str
    final_url: str
    status_code: int
    content_type: str


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


async def _read_capped(response: httpx.Response, max_bytes: int) -> tuple[bytes, bool]:
    """Read at most max_bytes of a streamed body. Returns (data, truncated)."""
    chunks: list[bytes] = []
    total = 0
    async for chunk in response.aiter_bytes():
        total += len(chunk)
        if total > max_bytes:
            remaining = max_bytes - (total - len(chunk))
            if remaining > 0:
                chunks.append(chunk[:remaining])
            return b"".join(chunks), True
        chunks.append(chunk)
    return b"".join(chunks), False


class HttpFetcher:
    """Owns the shared AsyncClient and exposes the three kinds of request the pipeline makes."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            verify=settings.verify_tls,
            timeout=settings.fetch_timeout,
            headers={
                "User-Agent": settings.user_agent,
                "Accept-Language": "en-US,en;q=0.9,zh-CN;q=0.8",
            },
            transport=transport,
        )
        retrying = retry_with_logging(settings.fetch_retry_attempts)
        self._get_page = retrying(self._get_page_once)
        self._get_image = retrying(self._get_image_once)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch_html(
        self,
        url: str,
        timeout: float | None = None,
        max_bytes: int | None = None,
    ) -> FetchedPage:
        """GET a page and decode it.

        Raises FetchError for transport failures and for final statuses
        outside 2xx/3xx. Non-HTML content types are logged and still returned.
        """
        try:
            page = await self._get_page(
                url,
                timeout or self.settings.fetch_timeout,
                max_bytes or self.settings.max_html_bytes,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("page_fetch_failed", url=url, error=_normalize_error(exc))
            raise FetchError(_normalize_error(exc)) from exc

        if not 200 <= page.status_code < 400:
            logger.info("page_fetch_bad_status", url=url, status_code=page.status_code)
            raise FetchError(f"unexpected status {page.status_code} for {url}")

        if not any(ct in page.content_type for ct in _HTML_CONTENT_TYPES):
            logger.warning("page_not_html", url=url, content_type=page.content_type)
        return page

    async def _get_page_once(self, url: str, timeout: float, max_bytes: int) -> FetchedPage:
        async with self._client.stream(
            "GET", url, timeout=timeout, headers={"Accept": HTML_ACCEPT}
        ) as response:
            data, truncated = await _read_capped(response, max_bytes)
            if truncated:
                logger.debug("page_truncated", url=url, max_bytes=max_bytes)
            encoding = response.encoding or "utf-8"
            return FetchedPage(
                text=data.decode(encoding, errors="ignore"),
                final_url=str(response.url),
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type", "").lower(),
            )

    async def download_image(self, url: str) -> bytes:
        """GET an image's bytes.

        Raises ImageDownloadError on transport failure, non-2xx status,
        a non-image content type, or a body larger than max_image_bytes.
        """
        try:
            return await self._get_image(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("image_download_failed", url=url, error=_normalize_error(exc))
            raise ImageDownloadError(_normalize_error(exc)) from exc

    async def _get_image_once(self, url: str) -> bytes:
        max_bytes = self.settings.max_image_bytes
        async with self._client.stream(
            "GET",
            url,
            timeout=self.settings.image_timeout,
            headers={"Accept": IMAGE_ACCEPT},
        ) as response:
            if not 200 <= response.status_code < 300:
                raise ImageDownloadError(f"unexpected status {response.status_code} for {url}")

            content_type = response.headers.get("Content-Type", "").lower()
            if content_type and not content_type.startswith(_ACCEPTED_IMAGE_TYPES):
                raise ImageDownloadError(f"not an image: {content_type}")

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise ImageDownloadError(f"image too large: {declared} bytes")

            data, truncated = await _read_capped(response, max_bytes)
            if truncated:
                raise ImageDownloadError(f"image exceeds {max_bytes} bytes")
            if not data:
                raise ImageDownloadError("empty image body")
            return data

    async def post_for_image(self, url: str, payload: dict[str, Any], timeout: float) -> bytes:
        """POST JSON to a rendering service and return the raw image it sends back."""
        try:
            response = await self._client.post(url, json=payload, timeout=timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ScreenshotError(_normalize_error(exc)) from exc

        if response.status_code != 200:
            raise ScreenshotError(f"screenshot service returned {response.status_code}")
        if not response.content:
            raise ScreenshotError("screenshot service returned an empty body")
        return response.content
