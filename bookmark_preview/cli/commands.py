"""CLI command implementations for the bookmark preview pipeline."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from bookmark_preview.core.color_swatch import generate_color_preview, render_color_preview_html
from bookmark_preview.core.url_normalization import cache_key_url, compute_cache_key, normalize_url
from bookmark_preview.errors import ConfigurationError
from bookmark_preview.models.config import Settings
from bookmark_preview.models.preview import PreviewResult, UploadResult
from bookmark_preview.services.resolver import build_resolver
from bookmark_preview.utils.logger import configure_logging


def _get_config() -> Settings:
    """Load configuration from PREVIEW_* variables and .env."""
    try:
        return Settings()
    except ValidationError as exc:
        raise click.ClickException(f"invalid configuration: {exc}") from exc


def _echo_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


async def _resolve(settings: Settings, url: str, title: str | None, refresh: bool) -> PreviewResult:
    async with build_resolver(settings) as resolver:
        if refresh:
            return await resolver.refresh(url, known_title=title)
        return await resolver.resolve(url, known_title=title)


async def _upload(settings: Settings, data: bytes, filename: str) -> UploadResult:
    async with build_resolver(settings) as resolver:
        return await resolver.upload_image(data, filename=filename)


@click.command()
@click.argument("url")
@click.option("--title", default=None, type=str, help="Title already known for the bookmark")
@click.option("--refresh", is_flag=True, help="Skip the cache and regenerate the preview")
def resolve(url: str, title: str | None, refresh: bool) -> None:
    """Resolve a preview for URL and print it as JSON."""
    config = _get_config()
    configure_logging(config.log_level)

    try:
        result = asyncio.run(_resolve(config, url, title, refresh))
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(result.to_payload())


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def upload(file: Path) -> None:
    """Store FILE as a custom preview image."""
    config = _get_config()
    configure_logging(config.log_level)

    try:
        result = asyncio.run(_upload(config, file.read_bytes(), file.name))
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    _echo_json(result.model_dump(mode="json"))
    if not result.success:
        sys.exit(1)


@click.command()
@click.argument("url")
@click.option("--title", default=None, type=str, help="Label to show instead of the hostname")
@click.option("--html", "as_html", is_flag=True, help="Print embeddable CSS and HTML")
def color(url: str, title: str | None, as_html: bool) -> None:
    """Print the color swatch for URL without any network access."""
    swatch_url = cache_key_url(url) or url
    if as_html:
        markup = render_color_preview_html(swatch_url, title)
        click.echo(f"<style>{markup.css}</style>")
        click.echo(markup.html)
        return
    _echo_json(generate_color_preview(swatch_url, title).model_dump(by_alias=True))


@click.command("cache-key")
@click.argument("url")
@click.option("--namespace", default="previews", type=str, help="Object store namespace")
def cache_key(url: str, namespace: str) -> None:
    """Print the cache key a URL maps to."""
    key = compute_cache_key(normalize_url(url), namespace)
    click.echo(f"{key.digest}  {key.object_key}")
