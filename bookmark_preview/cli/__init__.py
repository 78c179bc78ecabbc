"""CLI entry point for the bookmark preview pipeline."""

from __future__ import annotations

import click

from bookmark_preview.cli.commands import cache_key, color, resolve, upload


@click.group()
def cli() -> None:
    """Bookmark link preview generation."""


cli.add_command(resolve)
cli.add_command(upload)
cli.add_command(color)
cli.add_command(cache_key)
