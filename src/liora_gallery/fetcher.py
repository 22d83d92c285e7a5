"""Retrieval of stored image bytes for backfill and reclassification runs."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

import requests

from liora_gallery.config import FetcherConfig
from liora_gallery.errors import FetchError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "fetcher"})

_CHUNK_SIZE = 64 * 1024


class ImageFetcher(Protocol):
    def fetch(self, url: str) -> bytes:
        """Return the bytes stored at ``url`` or raise ``FetchError``."""


class HttpImageFetcher:
    """Fetch image bytes over HTTP(S), from ``file://`` URLs, or from local paths.

    Bodies larger than ``max_bytes`` are rejected while streaming, so an
    oversized object never sits fully in memory.
    """

    def __init__(self, config: FetcherConfig | None = None, session: requests.Session | None = None) -> None:
        self._config = config or FetcherConfig()
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", self._config.user_agent)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> HttpImageFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch(self, url: str) -> bytes:
        target = (url or "").strip()
        if not target:
            raise FetchError(url, "empty url")

        parsed = urlparse(target)
        if parsed.scheme in ("http", "https"):
            return self._fetch_http(target)
        if parsed.scheme == "file":
            return self._read_file(target, Path(unquote(parsed.path)))
        if parsed.scheme == "" or (len(parsed.scheme) == 1 and target[1:3] in (":\\", ":/")):
            return self._read_file(target, Path(target))
        raise FetchError(url, f"unsupported scheme {parsed.scheme!r}")

    def _read_file(self, url: str, path: Path) -> bytes:
        try:
            size = path.stat().st_size
            if size > self._config.max_bytes:
                raise FetchError(url, f"file is {size} bytes, limit is {self._config.max_bytes}")
            return path.read_bytes()
        except OSError as exc:
            raise FetchError(url, str(exc)) from exc

    def _fetch_http(self, url: str) -> bytes:
        try:
            with self._session.get(url, timeout=self._config.timeout_seconds, stream=True) as response:
                if not response.ok:
                    raise FetchError(url, f"HTTP {response.status_code}")

                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self._config.max_bytes:
                    raise FetchError(url, f"body is {declared} bytes, limit is {self._config.max_bytes}")

                buffer = bytearray()
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    buffer.extend(chunk)
                    if len(buffer) > self._config.max_bytes:
                        raise FetchError(url, f"body exceeds limit of {self._config.max_bytes} bytes")
        except requests.RequestException as exc:
            LOGGER.warning("image_fetch_transport_error", extra={"url": url, "error": str(exc)})
            raise FetchError(url, str(exc)) from exc

        return bytes(buffer)


__all__ = ["HttpImageFetcher", "ImageFetcher"]
