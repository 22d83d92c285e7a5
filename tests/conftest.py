from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from PIL import Image

os.environ.setdefault("LIORA_GALLERY_LOG_DIR", tempfile.mkdtemp(prefix="liora-gallery-logs-"))

from liora_gallery.config import Settings  # noqa: E402
from liora_gallery.db import open_primary_session  # noqa: E402
from tests.utils.images import encode_image  # noqa: E402


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    def _make(size: tuple[int, int] = (40, 20), color: tuple[int, ...] = (255, 0, 0), mode: str = "RGB") -> bytes:
        return encode_image(Image.new(mode, size, color=color))

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "gallery.db"


@pytest.fixture
def session(db_path: Path) -> Iterator:
    with open_primary_session(db_path) as db_session:
        yield db_session
