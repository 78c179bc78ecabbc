"""Pydantic data models for the bookmark preview pipeline."""

from bookmark_preview.models.config import Settings
from bookmark_preview.models.override import DomainOverride
from bookmark_preview.models.preview import (
    CachedImage,
    CacheKey,
    CacheTierName,
    CandidateImage,
    ColorPreview,
    ColorPreviewMarkup,
    ImageSource,
    PageMetadata,
    PreviewRequest,
    PreviewResult,
    PreviewSource,
    ScreenshotResult,
    UploadResult,
)

__all__ = [
    "CacheKey",
    "CacheTierName",
    "CachedImage",
    "CandidateImage",
    "ColorPreview",
    "ColorPreviewMarkup",
    "DomainOverride",
    "ImageSource",
    "PageMetadata",
    "PreviewRequest",
    "PreviewResult",
    "PreviewSource",
    "ScreenshotResult",
    "Settings",
    "UploadResult",
]
