"""Preview core -- pure functions for cache keys, scoring, extraction and swatches."""

from __future__ import annotations

from bookmark_preview.core.color_swatch import (
    contrast_text_color,
    display_label,
    generate_color_preview,
    perceived_brightness,
    render_color_preview_html,
)
from bookmark_preview.core.html_metadata import (
    build_soup,
    collect_candidates,
    extract_title,
    extract_title_regex,
    find_meta_image,
    parse_page,
)
from bookmark_preview.core.image_scoring import (
    is_likely_logo,
    pick_srcset_url,
    score_candidate,
    select_best_candidate,
)
from bookmark_preview.core.overrides import DomainOverrideTable
from bookmark_preview.core.url_normalization import (
    cache_key_url,
    compute_cache_key,
    compute_content_key,
    extract_hostname,
    normalize_url,
    resolve_image_url,
)

__all__ = [
    # color_swatch
    "contrast_text_color",
    "display_label",
    "generate_color_preview",
    "perceived_brightness",
    "render_color_preview_html",
    # html_metadata
    "build_soup",
    "collect_candidates",
    "extract_title",
    "extract_title_regex",
    "find_meta_image",
    "parse_page",
    # image_scoring
    "is_likely_logo",
    "pick_srcset_url",
    "score_candidate",
    "select_best_candidate",
    # overrides
    "DomainOverrideTable",
    # url_normalization
    "cache_key_url",
    "compute_cache_key",
    "compute_content_key",
    "extract_hostname",
    "normalize_url",
    "resolve_image_url",
]
