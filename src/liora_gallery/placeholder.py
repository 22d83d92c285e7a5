"""ThumbHash placeholder encoding for instant-loading previews.

The image is downsampled to fit 100x100 and handed to ``thumbhash-python``,
which packs a few low-frequency DCT coefficients into a compact hash. The
stored form is base64 text.
"""

from __future__ import annotations

import base64
from typing import Final

from thumbhash.encode import rgba_to_thumbhash

from liora_gallery.imaging import open_image
from liora_gallery.thumbnailing import build_thumbnail_image
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "placeholder"})

MAX_PLACEHOLDER_SIDE: Final[int] = 100


def build_placeholder(data: bytes, max_side: int = MAX_PLACEHOLDER_SIDE) -> str | None:
    """Build the base64 ThumbHash placeholder for raw image bytes.

    Returns ``None`` when decoding or encoding fails; the asset stays valid
    without a placeholder.
    """

    try:
        image = open_image(data)
        small = build_thumbnail_image(image, min(max_side, MAX_PLACEHOLDER_SIDE)).convert("RGBA")
        width, height = small.size
        hash_bytes = bytes(rgba_to_thumbhash(width, height, small.tobytes()))
    except Exception as exc:
        LOGGER.warning("placeholder_generation_failed", extra={"size_bytes": len(data), "error": str(exc)})
        return None

    return base64.b64encode(hash_bytes).decode("ascii")


__all__ = ["MAX_PLACEHOLDER_SIDE", "build_placeholder"]
