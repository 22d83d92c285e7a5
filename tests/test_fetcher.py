from __future__ import annotations

from pathlib import Path

import pytest
import requests

from liora_gallery.config import FetcherConfig
from liora_gallery.errors import FetchError
from liora_gallery.fetcher import HttpImageFetcher


class _FakeResponse:
    def __init__(self, status_code: int, body: bytes, headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self._body = body

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size: int):
        for offset in range(0, len(self._body), chunk_size):
            yield self._body[offset : offset + chunk_size]

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None


class _FakeSession:
    def __init__(self, response: _FakeResponse | Exception) -> None:
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, float, bool]] = []
        self._response = response

    def get(self, url: str, timeout: float, stream: bool) -> _FakeResponse:
        self.requests.append((url, timeout, stream))
        if isinstance(self._response, Exception):
            raise self._response
        return self._response

    def close(self) -> None:
        return None


def test_reads_local_paths_and_file_urls(tmp_path: Path) -> None:
    path = tmp_path / "photo name.jpg"
    path.write_bytes(b"jpeg-bytes")

    with HttpImageFetcher() as fetcher:
        assert fetcher.fetch(str(path)) == b"jpeg-bytes"
        assert fetcher.fetch(path.as_uri()) == b"jpeg-bytes"


def test_local_failures_raise_fetch_error(tmp_path: Path) -> None:
    large = tmp_path / "large.jpg"
    large.write_bytes(b"x" * 32)
    fetcher = HttpImageFetcher(FetcherConfig(max_bytes=16))

    with pytest.raises(FetchError):
        fetcher.fetch(str(tmp_path / "missing.jpg"))
    with pytest.raises(FetchError):
        fetcher.fetch(str(large))
    with pytest.raises(FetchError):
        fetcher.fetch("ftp://example.com/photo.jpg")
    with pytest.raises(FetchError):
        fetcher.fetch("  ")


def test_http_fetch_streams_body() -> None:
    session = _FakeSession(_FakeResponse(200, b"a" * 100_000))
    fetcher = HttpImageFetcher(FetcherConfig(timeout_seconds=3.0), session=session)  # type: ignore[arg-type]

    assert fetcher.fetch("https://cdn.example.com/p.jpg") == b"a" * 100_000
    assert session.requests == [("https://cdn.example.com/p.jpg", 3.0, True)]
    assert session.headers["User-Agent"] == "liora-gallery-backfill/1.0"


@pytest.mark.parametrize(
    ("response", "reason"),
    [
        (_FakeResponse(404, b""), "HTTP 404"),
        (_FakeResponse(200, b"", {"Content-Length": "999"}), "limit"),
        (_FakeResponse(200, b"b" * 64), "exceeds"),
        (requests.ConnectionError("connection refused"), "connection refused"),
    ],
)
def test_http_failures_raise_fetch_error(response: object, reason: str) -> None:
    fetcher = HttpImageFetcher(FetcherConfig(max_bytes=32), session=_FakeSession(response))  # type: ignore[arg-type]

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("http://cdn.example.com/p.jpg")

    assert reason in excinfo.value.reason
