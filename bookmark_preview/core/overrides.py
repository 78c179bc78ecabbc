"""Hostname-keyed override table for sites the generic extractor gets wrong."""

from __future__ import annotations

from collections.abc import Iterable

from bookmark_preview.core.url_normalization import extract_hostname
from bookmark_preview.models.override import DomainOverride


class DomainOverrideTable:
    """Lookup of DomainOverride records by hostname.

    An exact hostname match wins over a parent-domain match; among parent
    domains the most specific one wins. ``www.`` is ignored on both sides.
    """

    def __init__(self, overrides: Iterable[DomainOverride] = ()) -> None:
        self._by_host: dict[str, DomainOverride] = {}
        for override in overrides:
            self._by_host[override.hostname] = override

    def __len__(self) -> int:
        return len(self._by_host)

    def lookup(self, url: str) -> DomainOverride | None:
        """Return the override for a URL's hostname, if any."""
        hostname = extract_hostname(url)
        if hostname.startswith("www."):
            hostname = hostname[4:]
        if not hostname:
            return None

        exact = self._by_host.get(hostname)
        if exact is not None:
            return exact

        labels = hostname.split(".")
        for start in range(1, len(labels) - 1):
            parent = ".".join(labels[start:])
            override = self._by_host.get(parent)
            if override is not None and override.match_subdomains:
                return override
        return None

    def apply_title(self, url: str, title: str) -> str:
        """Replace the extracted title when an override defines one."""
        override = self.lookup(url)
        if override is not None and override.title:
            return override.title
        return title

    def image_for(self, url: str) -> str | None:
        """Fixed image URL for a hostname, if configured."""
        override = self.lookup(url)
        if override is not None:
            return override.image_url
        return None
