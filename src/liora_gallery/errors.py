"""Exception types raised by the ingestion pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for ingestion and backfill failures."""


class ImageValidationError(IngestError, ValueError):
    """Raised when bytes do not decode to a raster image with positive dimensions."""


class PersistenceError(IngestError):
    """Raised when the terminal database write for an asset fails."""


class FetchError(IngestError):
    """Raised by fetchers when stored image bytes cannot be retrieved."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class AssetNotFoundError(IngestError, LookupError):
    """Raised when a replace targets an asset id that does not exist."""


class ClassificationError(IngestError):
    """Raised when the genre classifier cannot be configured or reached."""


__all__ = [
    "AssetNotFoundError",
    "ClassificationError",
    "FetchError",
    "ImageValidationError",
    "IngestError",
    "PersistenceError",
]
