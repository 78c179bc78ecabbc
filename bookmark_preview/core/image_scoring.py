"""Heuristic ranking of candidate images on a page.

Pure functions, no I/O. Each <img> gets an additive score built from weak
signals (declared size, DOM position, alt text, class/id keywords) and a
heavy penalty when it looks like branding chrome rather than content.

The weights below are a starting heuristic, not a fitted model.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from bookmark_preview.models.preview import CandidateImage

LARGE_IMAGE_BONUS = 20
MEDIUM_IMAGE_BONUS = 15
RASTER_EXTENSION_BONUS = 5
LOGO_PENALTY = -25
CONTENT_POSITION_BONUS = 5
LATE_POSITION_PENALTY_PER_INDEX = 0.1
ALT_TEXT_BONUS = 5
POSITIVE_KEYWORD_BONUS = 8
NEGATIVE_KEYWORD_PENALTY = -15

CONTENT_REGION_START = 3
CONTENT_REGION_END = 20
MIN_ALT_LENGTH = 5

POSITIVE_KEYWORDS: tuple[str, ...] = (
    "featured",
    "hero",
    "main",
    "thumbnail",
    "cover",
    "banner",
    "project",
    "gallery",
    "slide",
    "image",
    "photo",
    "picture",
    "carousel",
    "slider",
)

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "icon",
    "avatar",
    "small",
    "thumb",
    "button",
    "emoji",
    "badge",
    "logo",
    "favicon",
)

LOGO_KEYWORDS: tuple[str, ...] = (
    "logo",
    "brand",
    "icon",
    "symbol",
    "emblem",
    "favicon",
    "header-logo",
    "site-logo",
    "company-logo",
)

LOGO_FILE_PATTERNS: tuple[str, ...] = (
    "-logo",
    "_logo",
    "logo-",
    "logo_",
    "brand-",
    "brand_",
    "icon-",
    "icon_",
)

RASTER_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png")

_FILENAME_SIZE_RE = re.compile(r"[_-](\d+)x(\d+)")
_QUERY_SIZE_RE = re.compile(r"[?&](?:w|width)=(\d+).*?[?&](?:h|height)=(\d+)", re.IGNORECASE)
_STYLE_WIDTH_RE = re.compile(r"(?<![-\w])width\s*:\s*(\d+)px", re.IGNORECASE)
_STYLE_HEIGHT_RE = re.compile(r"(?<![-\w])height\s*:\s*(\d+)px", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")

# Logos are usually square-ish or very wide, and small.
_LOGO_MAX_SIDE = 300
_SQUARE_RATIO_MIN = 0.8
_SQUARE_RATIO_MAX = 1.2
_WIDE_RATIO_MIN = 3.0


def parse_dimension(value: str | int | None) -> int:
    """Parse an HTML width/height attribute ("640", "640px") to an int, 0 if unknown."""
    if value is None:
        return 0
    if isinstance(value, int):
        return max(value, 0)
    match = _LEADING_INT_RE.match(str(value))
    if not match:
        return 0
    return int(match.group(1))


def parse_style_dimensions(style: str | None) -> tuple[int, int]:
    """Width and height declared in pixels in an inline style attribute."""
    if not style:
        return 0, 0
    width_match = _STYLE_WIDTH_RE.search(style)
    height_match = _STYLE_HEIGHT_RE.search(style)
    width = int(width_match.group(1)) if width_match else 0
    height = int(height_match.group(1)) if height_match else 0
    return width, height


def pick_srcset_url(srcset: str | None) -> str | None:
    """Return the widest entry of a srcset that uses width descriptors.

    Entries without a ``w`` descriptor are ignored; None if none qualify.
    """
    if not srcset:
        return None
    best_url = None
    best_width = 0
    for item in srcset.split(","):
        parts = item.strip().split()
        if len(parts) < 2 or not parts[1].lower().endswith("w"):
            continue
        try:
            width = int(parts[1][:-1])
        except ValueError:
            continue
        if width > best_width:
            best_width = width
            best_url = parts[0]
    return best_url


def _filename(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url
    return path.rsplit("/", 1)[-1].lower()


def _is_logo_shaped(width: int, height: int) -> bool:
    if width >= _LOGO_MAX_SIDE or height >= _LOGO_MAX_SIDE:
        return False
    if height == 0:
        # A zero height is an unbounded aspect ratio: very wide.
        return width > 0
    ratio = width / height
    return _SQUARE_RATIO_MIN < ratio < _SQUARE_RATIO_MAX or ratio > _WIDE_RATIO_MIN


def is_likely_logo(url: str, text: str = "") -> bool:
    """Check if an image URL (plus alt/class/id text) looks like branding chrome.

    Signals, any of which is sufficient:
      - a logo/brand/icon keyword anywhere in the URL or text
      - a logo naming pattern in the filename ("-logo", "icon_", ...)
      - a small near-square or very wide size encoded in the filename
        ("_120x120") or in w=/h= query parameters
    """
    if not url:
        return False

    url_lower = url.lower()
    if any(keyword in url_lower for keyword in LOGO_KEYWORDS):
        return True

    filename = _filename(url)
    if any(pattern in filename for pattern in LOGO_FILE_PATTERNS):
        return True

    if text:
        text_lower = text.lower()
        if any(keyword in text_lower for keyword in LOGO_KEYWORDS):
            return True

    size_match = _FILENAME_SIZE_RE.search(url)
    if size_match and _is_logo_shaped(int(size_match.group(1)), int(size_match.group(2))):
        return True

    query_match = _QUERY_SIZE_RE.search(url)
    if query_match and _is_logo_shaped(int(query_match.group(1)), int(query_match.group(2))):
        return True

    return False


def _keyword_hits(keywords: tuple[str, ...], *fields: str) -> int:
    haystacks = [field.lower() for field in fields if field]
    return sum(1 for keyword in keywords if any(keyword in h for h in haystacks))


def score_candidate(
    url: str,
    width: int,
    height: int,
    alt: str,
    css_class: str,
    element_id: str,
    index: int,
) -> tuple[float, bool]:
    """Score one <img>. Returns (score, is_logo)."""
    score = 0.0

    if width > 300 and height > 200:
        score += LARGE_IMAGE_BONUS
    elif width > 200 and height > 150:
        score += MEDIUM_IMAGE_BONUS
    elif any(ext in url.lower() for ext in RASTER_EXTENSIONS):
        score += RASTER_EXTENSION_BONUS

    is_logo = (
        is_likely_logo(url, alt)
        or is_likely_logo(url, css_class)
        or is_likely_logo(url, element_id)
    )
    if is_logo:
        score += LOGO_PENALTY

    if CONTENT_REGION_START < index < CONTENT_REGION_END:
        score += CONTENT_POSITION_BONUS
    elif index >= CONTENT_REGION_END:
        score -= index * LATE_POSITION_PENALTY_PER_INDEX

    if alt and len(alt) > MIN_ALT_LENGTH:
        score += ALT_TEXT_BONUS

    score += POSITIVE_KEYWORD_BONUS * _keyword_hits(POSITIVE_KEYWORDS, css_class, element_id, alt)
    score += NEGATIVE_KEYWORD_PENALTY * _keyword_hits(NEGATIVE_KEYWORDS, css_class, element_id, alt)

    return score, is_logo


def select_best_candidate(candidates: list[CandidateImage]) -> CandidateImage | None:
    """Pick the best content image from scored candidates.

    1. Highest positive score wins (earliest on ties).
    2. If that winner's URL looks like a logo, prefer the best-ranked
       candidate with a non-logo URL that is larger than 200x150, when one
       exists.
    3. If nothing scored positively, take the largest candidate with a
       non-logo URL and a side over 150px.
    4. Otherwise the first candidate on the page.

    Only the URL is checked here. Alt, class and id text already cost the
    candidate its logo penalty in the score.
    """
    if not candidates:
        return None

    best: CandidateImage | None = None
    for candidate in candidates:
        if candidate.score > (best.score if best else 0):
            best = candidate

    if best is not None:
        if is_likely_logo(best.absolute_url):
            ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
            for candidate in ranked:
                if (
                    not is_likely_logo(candidate.absolute_url)
                    and candidate.width > 200
                    and candidate.height > 150
                ):
                    return candidate
        return best

    by_area = sorted(candidates, key=lambda c: c.area, reverse=True)
    for candidate in by_area:
        if not is_likely_logo(candidate.absolute_url) and (candidate.width > 150 or candidate.height > 150):
            return candidate

    return candidates[0]
