"""Per-channel and luminance intensity histograms."""

from __future__ import annotations

import numpy as np

from liora_gallery.imaging import open_image
from liora_gallery.metadata import HISTOGRAM_BINS, HistogramData
from liora_gallery.thumbnailing import build_thumbnail_image
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "histogram"})

DEFAULT_HISTOGRAM_MAX_SIDE = 256

# ITU-R BT.601 luma weights; fixed so histograms stay comparable across assets.
_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def _channel_counts(values: np.ndarray) -> list[int]:
    return [int(count) for count in np.bincount(values.ravel(), minlength=HISTOGRAM_BINS)[:HISTOGRAM_BINS]]


def histogram_from_pixels(pixels: np.ndarray) -> HistogramData:
    """Accumulate a histogram from an ``(H, W, 3)`` uint8 RGB array."""

    rgb = pixels.reshape(-1, 3)
    luminance = np.floor(rgb.astype(np.float64) @ _LUMA_WEIGHTS + 0.5)
    luminance = np.clip(luminance, 0, HISTOGRAM_BINS - 1).astype(np.int64)

    return HistogramData(
        red=_channel_counts(rgb[:, 0].astype(np.int64)),
        green=_channel_counts(rgb[:, 1].astype(np.int64)),
        blue=_channel_counts(rgb[:, 2].astype(np.int64)),
        luminance=_channel_counts(luminance),
    )


def compute_histogram(data: bytes, max_side: int = DEFAULT_HISTOGRAM_MAX_SIDE) -> HistogramData | None:
    """Compute the histogram of ``data`` downsampled to fit ``max_side``.

    Every channel sums to the number of sampled pixels. Decode failures are
    logged and yield ``None``.
    """

    try:
        image = open_image(data)
        sample = build_thumbnail_image(image, max_side).convert("RGB")
        pixels = np.asarray(sample, dtype=np.uint8)
    except Exception as exc:
        LOGGER.warning("histogram_generation_failed", extra={"size_bytes": len(data), "error": str(exc)})
        return None

    return histogram_from_pixels(pixels)


__all__ = ["DEFAULT_HISTOGRAM_MAX_SIDE", "compute_histogram", "histogram_from_pixels"]
