"""Decoding and validation of raw image bytes."""

from __future__ import annotations

import io
import warnings
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from liora_gallery.errors import ImageValidationError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "imaging"})


@dataclass(frozen=True)
class DecodedImage:
    """Outcome of validating an uploaded buffer."""

    width: int
    height: int
    size_bytes: int


def open_image(data: bytes) -> Image.Image:
    """Open ``data`` as a fully loaded PIL image with EXIF orientation applied.

    Each caller gets its own image object, so derivations running on separate
    threads never share decoder state.
    """

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", Image.DecompressionBombWarning)
        image = Image.open(io.BytesIO(data))
        image.load()
    transposed = ImageOps.exif_transpose(image)
    return transposed if transposed is not None else image


def open_raw_image(data: bytes) -> Image.Image:
    """Open ``data`` without applying orientation, keeping EXIF accessible."""

    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def decode_image(data: bytes) -> DecodedImage:
    """Validate that ``data`` decodes to a raster image with positive dimensions.

    Width and height are reported after EXIF orientation, matching what a
    viewer displays.

    Raises:
        ImageValidationError: If the buffer is empty, cannot be decoded, or has
            non-positive dimensions.
    """

    if not data:
        raise ImageValidationError("image buffer is empty")

    try:
        raw = open_raw_image(data)
        image = ImageOps.exif_transpose(raw) or raw
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        LOGGER.warning("image_decode_failed", extra={"size_bytes": len(data), "error": str(exc)})
        raise ImageValidationError("invalid image file") from exc

    width, height = image.size
    if width <= 0 or height <= 0:
        raise ImageValidationError(f"invalid image dimensions {width}x{height}")

    return DecodedImage(
        width=int(width),
        height=int(height),
        size_bytes=len(data),
    )


__all__ = ["DecodedImage", "decode_image", "open_image", "open_raw_image"]
