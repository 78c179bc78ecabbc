"""Shared test fixtures for the bookmark preview pipeline."""

from __future__ import annotations

import io
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import pytest
from PIL import Image, ImageDraw

from bookmark_preview.models.config import Settings

if TYPE_CHECKING:
    from pathlib import Path


def make_image_bytes(
    size: tuple[int, int] = (640, 360),
    image_format: str = "JPEG",
    mode: str = "RGB",
) -> bytes:
    """Encode a small image with enough structure that it is not 'blank'."""
    image = Image.new(mode, size, (30, 90, 160) if mode == "RGB" else (30, 90, 160, 255))
    draw = ImageDraw.Draw(image)
    width, height = size
    draw.rectangle((0, 0, width // 2, height // 2), fill=(240, 200, 40))
    draw.ellipse((width // 3, height // 3, width - 10, height - 10), fill=(200, 30, 60))
    draw.line((0, height - 1, width - 1, 0), fill=(255, 255, 255), width=3)
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


@dataclass
class FakeWeb:
    """Route table for httpx.MockTransport that also counts requests per URL."""

    routes: dict[str, httpx.Response] = field(default_factory=dict)
    hits: Counter[str] = field(default_factory=Counter)
    refuse_unknown: bool = True

    def html(self, url: str, body: str, status_code: int = 200) -> None:
        self.routes[url] = httpx.Response(
            status_code,
            headers={"Content-Type": "text/html; charset=utf-8"},
            content=body.encode("utf-8"),
        )

    def image(self, url: str, data: bytes, content_type: str = "image/jpeg") -> None:
        self.routes[url] = httpx.Response(200, headers={"Content-Type": content_type}, content=data)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.hits[url] += 1
        route = self.routes.get(url)
        if route is None:
            if self.refuse_unknown:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(404, content=b"not found")
        return httpx.Response(
            route.status_code,
            headers=route.headers,
            content=route.content,
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_web() -> FakeWeb:
    """Provide an empty simulated web; unknown hosts refuse connections."""
    return FakeWeb()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Persistent-mode settings with a temporary cache dir and no screenshots."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        deployment_mode="persistent",
        cache_dir=tmp_path / "cache",
        public_base_path="",
        screenshot_backend="none",
        fetch_retry_attempts=1,
        object_store_bucket=None,
        overrides_file=None,
    )


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A 640x360 JPEG with visible structure."""
    return make_image_bytes()


@pytest.fixture
def png_bytes() -> bytes:
    """A 400x300 PNG with an alpha channel."""
    return make_image_bytes((400, 300), image_format="PNG", mode="RGBA")


@pytest.fixture
def sample_og_html() -> str:
    """Page with Open Graph metadata and a large content image that must be ignored."""
    return """<!DOCTYPE html>
<html>
<head>
    <title>Fallback Title</title>
    <meta property="og:title" content="  Open   Graph Title ">
    <meta property="og:image" content="/images/og-cover.jpg">
    <meta name="twitter:image" content="https://cdn.example.com/twitter-card.jpg">
</head>
<body>
    <img src="/images/big-content.jpg" width="1200" height="800" alt="A large content photo">
</body>
</html>"""


@pytest.fixture
def sample_scored_html() -> str:
    """Page without meta images: a header logo, a hero image and some chrome."""
    return """<!DOCTYPE html>
<html>
<head><title>Gallery Page</title></head>
<body>
    <header>
        <img src="/assets/site-logo.png" class="header-logo" width="400" height="300" alt="Acme logo">
    </header>
    <img src="/img/spacer.gif" width="1" height="1">
    <img src="data:image/gif;base64,R0lGODlhAQABAAAAACw=">
    <img src="/img/badge.svg" width="500" height="400">
    <img data-src="/photos/hero-large.jpg" src="/photos/placeholder.jpg"
         class="hero featured" width="960" height="540" alt="Sunset over the bay">
    <img src="/photos/second.jpg" width="320" height="240" alt="Another photo">
</body>
</html>"""


@pytest.fixture
def sample_h1_html() -> str:
    """Page with no title metadata at all, only an <h1>."""
    return "<html><body><h1>  Example  </h1><p>No metadata here.</p></body></html>"


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory for structured test images of any size and format."""
    return make_image_bytes
