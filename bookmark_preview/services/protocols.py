"""Service protocols defining the seams the resolver is assembled from."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from bookmark_preview.models.preview import CachedImage, CacheKey, PreviewResult
    from bookmark_preview.services.strategies import ResolutionContext


class CacheTierProtocol(Protocol):
    """One storage tier of the preview cache."""

    name: str

    async def lookup(self, key: CacheKey) -> CachedImage | None: ...

    async def store(self, key: CacheKey, data: bytes) -> str: ...


class ScreenshotBackendProtocol(Protocol):
    """A way of rendering a page to image bytes."""

    name: str

    def available(self) -> bool: ...

    async def capture(self, url: str, width: int, height: int) -> bytes: ...


class PreviewStrategyProtocol(Protocol):
    """One link in the resolution chain.

    Returns a result when it can answer, None to pass to the next link.
    Expected failures are handled internally; only cancellation escapes.
    """

    name: str

    async def attempt(self, ctx: ResolutionContext) -> PreviewResult | None: ...
