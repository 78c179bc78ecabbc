"""URL normalization and content-addressed cache keys."""

from __future__ import annotations

import hashlib
import re
from urllib.parse import urljoin, urlsplit, urlunsplit

from bookmark_preview.models.preview import CacheKey

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def normalize_url(url: str) -> str:
    """Return a fetchable URL, defaulting the scheme to https.

    The query string is kept; only the cache key drops it.
    """
    url = (url or "").strip()
    if not url:
        return ""
    if url.startswith("//"):
        return "https:" + url
    if not _SCHEME_RE.match(url):
        return "https://" + url
    return url


def cache_key_url(url: str) -> str:
    """Canonical form used for hashing.

    Rules:
    - Default scheme to https
    - Lowercase scheme and host
    - Empty path becomes "/"
    - Remove query and fragment

    Applying this twice gives the same string as applying it once.
    """
    normalized = normalize_url(url)
    if not normalized:
        return ""
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return normalized.split("?", 1)[0].split("#", 1)[0]
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


def _md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def compute_cache_key(url: str, namespace: str = "previews") -> CacheKey:
    """Derive the CacheKey for a page URL."""
    return CacheKey(digest=_md5_hex(cache_key_url(url).encode("utf-8")), namespace=namespace)


def compute_content_key(data: bytes, namespace: str = "uploads") -> CacheKey:
    """Derive the CacheKey for raw image bytes (uploads dedupe by content)."""
    return CacheKey(digest=_md5_hex(data), namespace=namespace)


def extract_hostname(url: str) -> str:
    """Hostname of a URL, lowercase, or "" when it has none."""
    try:
        return (urlsplit(normalize_url(url)).hostname or "").lower()
    except ValueError:
        return ""


def strip_scheme(url: str) -> str:
    """Host part of a URL string without parsing it, e.g. for broken input."""
    stripped = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://", "", (url or "").strip())
    return stripped.split("/", 1)[0]


def resolve_image_url(src: str | None, base_url: str) -> str | None:
    """Resolve an image reference found in a page against the page URL.

    Handles absolute, protocol-relative (``//cdn/...``) and relative paths.
    Returns None for empty values, data URIs, non-http schemes and anything
    urljoin cannot make sense of.
    """
    if not src:
        return None
    src = src.strip()
    if not src or src.lower().startswith("data:"):
        return None

    lowered = src.lower()
    if lowered.startswith(("http://", "https://")):
        return src

    try:
        base = urlsplit(base_url)
        if src.startswith("//"):
            scheme = base.scheme or "https"
            return f"{scheme}:{src}"
        if _SCHEME_RE.match(src) or lowered.startswith(("javascript:", "blob:", "about:")):
            return None
        resolved = urljoin(base_url, src)
    except ValueError:
        return None

    if not resolved.lower().startswith(("http://", "https://")):
        return None
    return resolved
