"""Deterministic color swatch for URLs without an image.

Pure functions, no I/O. Same URL in, same colors out, and nothing in here can
raise for string input: this is the resolver's guaranteed base case.
"""

from __future__ import annotations

import hashlib
import html

from bookmark_preview.core.url_normalization import extract_hostname, strip_scheme
from bookmark_preview.models.preview import ColorPreview, ColorPreviewMarkup

_BRIGHTNESS_THRESHOLD = 128
_DARK_TEXT = "#000000"
_LIGHT_TEXT = "#ffffff"


def _to_hex(r: int, g: int, b: int) -> str:
    return f"#{r:02x}{g:02x}{b:02x}"


def perceived_brightness(r: int, g: int, b: int) -> float:
    """ITU-R 601 luma of an RGB triplet, 0-255."""
    return (r * 299 + g * 587 + b * 114) / 1000


def contrast_text_color(r: int, g: int, b: int) -> str:
    """Black text on bright backgrounds, white text on dark ones."""
    if perceived_brightness(r, g, b) >= _BRIGHTNESS_THRESHOLD:
        return _DARK_TEXT
    return _LIGHT_TEXT


def display_label(url: str, title: str | None = None) -> str:
    """Title if given, else hostname, else the URL without scheme or path."""
    if title and title.strip():
        return title.strip()
    hostname = extract_hostname(url)
    if hostname:
        return hostname
    return strip_scheme(url) or url


def generate_color_preview(url: str, title: str | None = None) -> ColorPreview:
    """Derive background/text/accent colors and a label from a URL.

    Background is the first three bytes of the URL's MD5 digest. The accent
    is the background rotated one byte to the left (R,G,B -> G,B,R); for grey
    backgrounds, where rotation is a no-op, the next three digest bytes are
    used instead.
    """
    if not isinstance(url, str):
        url = str(url)
    digest = hashlib.md5(url.encode("utf-8", errors="replace")).digest()
    r, g, b = digest[0], digest[1], digest[2]

    accent = (g, b, r)
    if accent == (r, g, b):
        accent = (digest[3], digest[4], digest[5])

    return ColorPreview(
        background_color=_to_hex(r, g, b),
        text_color=contrast_text_color(r, g, b),
        accent_color=_to_hex(*accent),
        domain=display_label(url, title),
    )


def render_color_preview_html(url: str, title: str | None = None) -> ColorPreviewMarkup:
    """CSS and HTML snippet that renders the swatch as a preview card."""
    colors = generate_color_preview(url, title)
    css = f"""
.preview-container {{
  width: 100%;
  height: 100%;
  background-color: {colors.background_color};
  color: {colors.text_color};
  display: flex;
  flex-direction: column;
  justify-content: center;
  align-items: center;
  padding: 20px;
  box-sizing: border-box;
  position: relative;
  overflow: hidden;
}}

.preview-container::before {{
  content: '';
  position: absolute;
  top: -50%;
  left: -50%;
  width: 200%;
  height: 200%;
  background: radial-gradient(circle, {colors.accent_color}22 0%, {colors.background_color}ff 70%);
  z-index: 1;
}}

.preview-domain {{
  font-size: 24px;
  font-weight: bold;
  text-align: center;
  z-index: 2;
  text-shadow: 0 1px 3px rgba(0, 0, 0, 0.3);
}}

.preview-url {{
  font-size: 14px;
  margin-top: 10px;
  opacity: 0.8;
  text-align: center;
  z-index: 2;
}}
"""
    markup = (
        '<div class="preview-container">'
        f'<div class="preview-domain">{html.escape(colors.domain)}</div>'
        f'<div class="preview-url">{html.escape(str(url))}</div>'
        "</div>"
    )
    return ColorPreviewMarkup(css=css, html=markup, colors=colors)
