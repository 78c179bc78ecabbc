"""Link preview generation for the bookmark manager.

Given a URL, produce a thumbnail image and page title by trying the cache,
page scraping, a screenshot and finally a deterministic color swatch.
"""

from bookmark_preview.models.preview import PreviewResult, UploadResult
from bookmark_preview.services.resolver import PreviewResolver, build_resolver

__all__ = ["PreviewResolver", "PreviewResult", "UploadResult", "build_resolver"]

__version__ = "0.1.0"
