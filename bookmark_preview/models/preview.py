"""Preview pipeline value models.

Everything the resolver hands back to the bookmark layer is defined here.
Payload-facing models serialise with camelCase aliases (``previewImage``,
``pageTitle``, ``colorPreview``) because that is what the bookmark client
stores; Python code uses the snake_case attribute names.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CacheTierName(StrEnum):
    """Which cache tier answered a lookup."""

    LOCAL = "local"
    REMOTE = "remote"


class PreviewSource(StrEnum):
    """Which strategy produced a preview result."""

    CACHE = "cache"
    EXTRACTED = "extracted"
    SCREENSHOT = "screenshot"
    COLOR = "color"


class ImageSource(StrEnum):
    """Where the best image on a page was found."""

    OG_IMAGE = "og_image"
    TWITTER_IMAGE = "twitter_image"
    SCORED = "scored"
    OVERRIDE = "override"
    NONE = "none"


class PreviewRequest(BaseModel):
    """A single resolve call's input.

    Accepts anything for ``url``; unusable values fall through to the swatch.
    """

    url: str
    known_title: str | None = None

    @field_validator("url", mode="before")
    @classmethod
    def coerce_url(cls, value: Any) -> str:
        """Non-string input becomes its string form, None becomes empty."""
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("known_title", mode="before")
    @classmethod
    def clean_known_title(cls, value: Any) -> str | None:
        """Blank or non-string titles count as unknown."""
        if not isinstance(value, str):
            return None
        return value.strip() or None


class CacheKey(BaseModel):
    """Content-addressed identifier shared by the local and remote tiers."""

    model_config = ConfigDict(frozen=True)

    digest: str
    namespace: str = "previews"
    extension: str = ".jpg"

    @field_validator("digest")
    @classmethod
    def validate_digest(cls, value: str) -> str:
        """Digest must be a 32 character lowercase hex string."""
        if len(value) != 32 or any(c not in "0123456789abcdef" for c in value):
            msg = "digest must be 32 lowercase hex characters"
            raise ValueError(msg)
        return value

    @property
    def filename(self) -> str:
        return f"{self.digest}{self.extension}"

    @property
    def object_key(self) -> str:
        return f"{self.namespace}/{self.filename}"

    def __str__(self) -> str:
        return self.object_key


class CachedImage(BaseModel):
    """A cache entry found in one of the tiers."""

    key: CacheKey
    tier: CacheTierName
    local_path: Path | None = None
    remote_url: str | None = None
    public_path: str | None = None
    age_seconds: float = 0.0

    @property
    def url(self) -> str:
        """URL a caller should render: the durable remote URL when known."""
        return self.remote_url or self.public_path or ""

    def is_fresh(self, ttl_seconds: float) -> bool:
        """Remote entries never expire; local entries expire after the TTL."""
        if self.tier == CacheTierName.REMOTE:
            return True
        return self.age_seconds < ttl_seconds


class CandidateImage(BaseModel):
    """An <img> found while scanning one page."""

    absolute_url: str
    width: int = 0
    height: int = 0
    alt_text: str = ""
    css_class_or_id: str = ""
    dom_position_index: int = 0
    score: float = 0.0
    is_logo: bool = False

    @property
    def area(self) -> int:
        return self.width * self.height


class ColorPreview(BaseModel):
    """Image-free fallback swatch."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    background_color: str
    text_color: str
    accent_color: str
    domain: str


class ColorPreviewMarkup(BaseModel):
    """Ready-to-embed CSS/HTML rendering of a color swatch."""

    css: str
    html: str
    colors: ColorPreview


class PageMetadata(BaseModel):
    """What the extractor learned from one page."""

    url: str
    final_url: str | None = None
    status_code: int | None = None
    title: str = ""
    best_image_url: str | None = None
    image_source: ImageSource = ImageSource.NONE
    candidates: list[CandidateImage] = Field(default_factory=list)


class PreviewResult(BaseModel):
    """Contract returned to the bookmark layer.

    ``color_preview`` is only populated when ``preview_image`` is empty.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    preview_image: str = ""
    page_title: str = ""
    color_preview: ColorPreview | None = None
    source: PreviewSource = PreviewSource.COLOR

    def to_payload(self) -> dict[str, Any]:
        """Serialise with camelCase keys, omitting an absent swatch."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ScreenshotResult(BaseModel):
    """Outcome of a screenshot capture."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    preview_image: str = ""


class UploadResult(BaseModel):
    """Outcome of storing a user-supplied preview image."""

    success: bool
    url: str = ""
    message: str = ""
