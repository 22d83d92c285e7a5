"""Shared downsampling helpers for the placeholder, histogram, hash and classifier stages."""

from __future__ import annotations

import io

from PIL import Image, ImageOps
from PIL.Image import Resampling

from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "thumbnailing"})


def _get_resample_filter() -> Resampling:
    """Return the preferred resample filter compatible with the current Pillow."""

    return Resampling.LANCZOS


def build_thumbnail_image(image: Image.Image, max_side: int) -> Image.Image:
    """Return a copy of ``image`` that fits inside ``max_side`` pixels.

    Aspect ratio is preserved and the image is never enlarged.
    """

    safe_side = max(1, int(max_side))
    resized = image.copy()
    resized.thumbnail((safe_side, safe_side), resample=_get_resample_filter())
    return resized


def build_cover_image(image: Image.Image, width: int, height: int) -> Image.Image:
    """Center-crop ``image`` to the target aspect ratio and resize it to exactly ``width`` x ``height``."""

    return ImageOps.fit(image, (max(1, int(width)), max(1, int(height))), method=_get_resample_filter())


def encode_webp(image: Image.Image, max_side: int, quality: int = 82) -> bytes:
    """Downscale ``image`` to ``max_side`` and encode it as WEBP bytes."""

    resized = build_thumbnail_image(image, max_side)
    if resized.mode not in ("RGB", "RGBA"):
        resized = resized.convert("RGBA" if "A" in resized.getbands() else "RGB")

    buffer = io.BytesIO()
    try:
        resized.save(buffer, format="WEBP", quality=quality)
    except OSError as exc:
        LOGGER.error("webp_encode_error", extra={"max_side": max_side, "quality": quality, "error": str(exc)})
        raise
    return buffer.getvalue()


__all__ = ["build_cover_image", "build_thumbnail_image", "encode_webp"]
