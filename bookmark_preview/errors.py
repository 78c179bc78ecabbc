"""Exception hierarchy for the preview pipeline.

Strategies raise these; the resolver catches them at the chain boundary and
moves on to the next strategy. None of them ever reach a resolve() caller.
"""

from __future__ import annotations


class PreviewError(Exception):
    """Base class for all preview pipeline failures."""


class FetchError(PreviewError):
    """Raised when the target page cannot be fetched or is not usable."""


class ImageDownloadError(PreviewError):
    """Raised when a candidate image cannot be downloaded or decoded."""


class StorageError(PreviewError):
    """Raised when no cache tier accepted a write."""


class ObjectStoreError(StorageError):
    """Raised when the remote object store rejects an operation."""


class ScreenshotError(PreviewError):
    """Raised when a screenshot backend fails to render a page."""


class ConfigurationError(PreviewError):
    """Raised when a required capability is not configured."""
