"""Content and perceptual hashing helpers for images."""

from __future__ import annotations

import hashlib
from typing import Final

import numpy as np
from PIL import Image

from liora_gallery.thumbnailing import build_cover_image
from utils.logging import get_logger

LOGGER = get_logger(__name__)

_AHASH_SIZE: Final[int] = 8


def compute_content_hash(data: bytes) -> str:
    """Compute the exact fingerprint of a byte buffer.

    Args:
        data: Raw image bytes as uploaded or fetched.

    Returns:
        SHA-256 digest as a 64-character lowercase hexadecimal string.
    """

    return hashlib.sha256(data).hexdigest()


def _bits_to_hex(bits: np.ndarray) -> str:
    """Pack a flat 0/1 array into lowercase hex, four bits per digit.

    A trailing group shorter than four bits is padded with zero bits on the
    right before encoding.
    """

    digits: list[str] = []
    flat = [int(bit) for bit in bits.flatten()]
    for offset in range(0, len(flat), 4):
        group = flat[offset : offset + 4]
        nibble = 0
        for bit in group:
            nibble = (nibble << 1) | bit
        nibble <<= 4 - len(group)
        digits.append(f"{nibble:x}")
    return "".join(digits)


def compute_perceptual_hash(image: Image.Image, hash_size: int = _AHASH_SIZE) -> str:
    """Compute the average hash of an orientation-corrected image.

    - Center-crop to a square and resize to ``hash_size`` x ``hash_size``.
    - Convert to greyscale.
    - Compare every sample against the arithmetic mean of all samples.
    - Emit one bit per sample in row-major order (1 when above the mean).

    Args:
        image: PIL image with EXIF orientation already applied.
        hash_size: Edge length of the sampling grid.

    Returns:
        Lowercase hexadecimal hash; 16 digits for the default 8x8 grid.
    """

    grid = build_cover_image(image.convert("RGB"), hash_size, hash_size).convert("L")
    pixels = np.asarray(grid, dtype=np.float64)
    mean = float(pixels.mean())
    bits = (pixels > mean).astype(np.uint8)
    return _bits_to_hex(bits)


def hamming_distance(a_hex: str, b_hex: str) -> int | None:
    """Count differing bits between two equal-length hex hashes.

    Returns ``None`` when either hash is empty, the lengths differ, or the
    text is not hexadecimal.
    """

    if not a_hex or not b_hex or len(a_hex) != len(b_hex):
        return None

    try:
        a_int = int(a_hex, 16)
        b_int = int(b_hex, 16)
    except ValueError:
        LOGGER.error("phash_hex_parse_error", extra={"a": a_hex, "b": b_hex})
        return None

    return bin(a_int ^ b_int).count("1")


__all__ = [
    "compute_content_hash",
    "compute_perceptual_hash",
    "hamming_distance",
]
