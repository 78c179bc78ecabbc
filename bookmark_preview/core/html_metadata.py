"""Title and image extraction from page HTML.

Pure functions over HTML strings and parsed documents, no I/O. The page is
parsed once; title extraction and image discovery both read from the same
soup.
"""

from __future__ import annotations

import html as html_lib
import re
import warnings
from typing import Any

import structlog
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from bookmark_preview.core.image_scoring import (
    is_likely_logo,
    parse_dimension,
    parse_style_dimensions,
    pick_srcset_url,
    score_candidate,
    select_best_candidate,
)
from bookmark_preview.core.url_normalization import extract_hostname, resolve_image_url
from bookmark_preview.models.preview import CandidateImage, ImageSource, PageMetadata

logger = structlog.get_logger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

_OG_IMAGE_NAMES = ("og:image", "og:image:url", "og:image:secure_url")
_TWITTER_IMAGE_NAMES = ("twitter:image", "twitter:image:src")

# Lazy-loading attributes, most specific first.
_LAZY_SRC_ATTRS = ("data-src", "data-lazy-src", "data-original")


def build_soup(html: str) -> BeautifulSoup:
    """Parse HTML leniently; malformed markup never raises."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html or "", "html.parser")


def clean_text(value: str | None) -> str:
    """Collapse whitespace and strip."""
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip()


def extract_title_regex(html: str) -> str:
    """Cheap <title> extraction for the cache-hit title refresh."""
    match = _TITLE_RE.search(html or "")
    if not match:
        return ""
    return clean_text(html_lib.unescape(match.group(1)))


def _attr_str(tag: Any, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(value)
    if isinstance(value, str):
        return value
    return ""


def meta_content(soup: BeautifulSoup, *names: str) -> str:
    """First non-empty content of a <meta> matched by property or name."""
    for name in names:
        for attr in ("property", "name"):
            tag = soup.find("meta", attrs={attr: name})
            if tag is not None:
                content = clean_text(_attr_str(tag, "content"))
                if content:
                    return content
    return ""


def extract_title(soup: BeautifulSoup, page_url: str) -> str:
    """Best-effort page title.

    Priority: og:title, twitter:title, <title>; then, if the result is empty
    or just the hostname, the first <h1>, then application-name.
    """
    title = meta_content(soup, "og:title") or meta_content(soup, "twitter:title")
    if not title and soup.title is not None:
        title = clean_text(soup.title.get_text())

    hostname = extract_hostname(page_url)
    if not title or title.lower() == hostname:
        h1 = soup.find("h1")
        h1_text = clean_text(h1.get_text()) if h1 is not None else ""
        if h1_text:
            title = h1_text
        else:
            title = meta_content(soup, "application-name") or title

    return title


def document_base_url(soup: BeautifulSoup, page_url: str) -> str:
    """The URL relative references resolve against, honouring <base href>."""
    base = soup.find("base", href=True)
    if base is not None:
        resolved = resolve_image_url(_attr_str(base, "href"), page_url)
        if resolved:
            return resolved
    return page_url


def find_meta_image(soup: BeautifulSoup, base_url: str) -> tuple[str, ImageSource] | None:
    """Open Graph image, then Twitter card image, unless it looks like a logo."""
    for names, source in (
        (_OG_IMAGE_NAMES, ImageSource.OG_IMAGE),
        (_TWITTER_IMAGE_NAMES, ImageSource.TWITTER_IMAGE),
    ):
        content = meta_content(soup, *names)
        if not content:
            continue
        resolved = resolve_image_url(content, base_url)
        if resolved and not is_likely_logo(resolved):
            return resolved, source
        logger.debug("meta_image_rejected", source=source.value, url=content)
    return None


def _img_source(tag: Any) -> str | None:
    src = None
    for attr in _LAZY_SRC_ATTRS:
        src = _attr_str(tag, attr).strip() or None
        if src:
            break
    if not src:
        src = _attr_str(tag, "src").strip() or None

    srcset = _attr_str(tag, "srcset") or _attr_str(tag, "data-srcset")
    widest = pick_srcset_url(srcset)
    return widest or src


def collect_candidates(soup: BeautifulSoup, base_url: str) -> list[CandidateImage]:
    """Score every usable <img> on the page, in document order.

    The position index counts every <img>, including skipped ones, so that
    position signals reflect the page layout rather than the filter.
    """
    candidates: list[CandidateImage] = []
    for index, tag in enumerate(soup.find_all("img")):
        raw_src = _img_source(tag)
        if not raw_src:
            continue

        url = resolve_image_url(raw_src, base_url)
        if not url:
            logger.debug("image_url_unresolvable", index=index, src=raw_src[:200])
            continue
        if url.lower().split("?", 1)[0].endswith(".svg"):
            continue

        style_width, style_height = parse_style_dimensions(_attr_str(tag, "style"))
        width = max(parse_dimension(_attr_str(tag, "width")), style_width)
        height = max(parse_dimension(_attr_str(tag, "height")), style_height)
        alt = clean_text(_attr_str(tag, "alt"))
        css_class = _attr_str(tag, "class")
        element_id = _attr_str(tag, "id")

        score, is_logo = score_candidate(url, width, height, alt, css_class, element_id, index)
        candidates.append(
            CandidateImage(
                absolute_url=url,
                width=width,
                height=height,
                alt_text=alt,
                css_class_or_id=" ".join(part for part in (css_class, element_id) if part),
                dom_position_index=index,
                score=score,
                is_logo=is_logo,
            )
        )
    return candidates


def parse_page(
    html: str,
    page_url: str,
    final_url: str | None = None,
    status_code: int | None = None,
) -> PageMetadata:
    """Extract title and best image from a fetched page.

    A usable og:image / twitter:image short-circuits the <img> scan.
    """
    soup = build_soup(html)
    effective_url = final_url or page_url
    base_url = document_base_url(soup, effective_url)
    title = extract_title(soup, effective_url)

    metadata = PageMetadata(
        url=page_url,
        final_url=final_url,
        status_code=status_code,
        title=title,
    )

    meta_image = find_meta_image(soup, base_url)
    if meta_image is not None:
        metadata.best_image_url, metadata.image_source = meta_image
        return metadata

    candidates = collect_candidates(soup, base_url)
    metadata.candidates = candidates
    best = select_best_candidate(candidates)
    if best is not None:
        metadata.best_image_url = best.absolute_url
        metadata.image_source = ImageSource.SCORED

    logger.debug(
        "page_images_scored",
        url=page_url,
        candidates=len(candidates),
        best=metadata.best_image_url,
        best_score=best.score if best else None,
    )
    return metadata
