"""Typed extended-metadata record stored as a JSON blob on each media asset."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Final

HISTOGRAM_BINS: Final[int] = 256

PROCESSING: Final[str] = "processing"
COMPLETED: Final[str] = "completed"
FAILED: Final[str] = "failed"
PROCESSING_STATUSES: Final[frozenset[str]] = frozenset({PROCESSING, COMPLETED, FAILED})

# Curated fields mirrored into flattened, queryable columns on ``media_asset``.
FLATTENED_TEXT_FIELDS: Final[tuple[str, ...]] = (
    "camera_model",
    "lens_model",
    "aperture",
    "focal_length",
    "iso",
    "shutter_speed",
    "capture_time",
    "location",
    "location_name",
    "genre",
)
FLATTENED_NUMERIC_FIELDS: Final[tuple[str, ...]] = ("latitude", "longitude")

# Curated fields that live only in the blob.
EXTENDED_TEXT_FIELDS: Final[tuple[str, ...]] = (
    "exposure_bias",
    "exposure_program",
    "exposure_mode",
    "metering_mode",
    "white_balance",
    "flash",
    "color_space",
    "resolution_x",
    "resolution_y",
    "resolution_unit",
    "software",
    "notes",
)

CURATED_TEXT_FIELDS: Final[tuple[str, ...]] = FLATTENED_TEXT_FIELDS + EXTENDED_TEXT_FIELDS
CURATED_NUMERIC_FIELDS: Final[tuple[str, ...]] = FLATTENED_NUMERIC_FIELDS
DERIVED_FIELDS: Final[tuple[str, ...]] = ("sha256", "perceptual_hash", "thumbhash", "histogram")


def is_empty_text(value: str | None) -> bool:
    """Return True when a text value is missing or blank after trimming."""

    return value is None or len(value.strip()) == 0


def is_empty_number(value: float | int | None) -> bool:
    """Return True when a numeric value is missing or NaN."""

    if value is None:
        return True
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


@dataclass
class HistogramData:
    """Per-channel and luminance intensity counts, one bin per 8-bit level."""

    red: list[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)
    green: list[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)
    blue: list[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)
    luminance: list[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)

    def to_dict(self) -> dict[str, list[int]]:
        return {
            "red": list(self.red),
            "green": list(self.green),
            "blue": list(self.blue),
            "luminance": list(self.luminance),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> HistogramData | None:
        """Parse a stored histogram, returning None when any channel is malformed."""

        if not isinstance(raw, dict):
            return None

        channels: dict[str, list[int]] = {}
        for name in ("red", "green", "blue", "luminance"):
            values = raw.get(name)
            if not isinstance(values, list) or len(values) != HISTOGRAM_BINS:
                return None
            if not all(isinstance(value, (int, float)) and not isinstance(value, bool) for value in values):
                return None
            # Older records stored normalized frequencies; keep them as-is.
            channels[name] = [value if isinstance(value, int) else float(value) for value in values]
        return cls(**channels)


@dataclass
class MediaMetadata:
    """Extended metadata for a media asset.

    Every field is optional and ``None`` means "absent". Absent fields are
    omitted from :meth:`to_dict`, so they round-trip as missing keys rather
    than ``null`` and keep the emptiness checks in fusion meaningful.
    """

    camera_model: str | None = None
    lens_model: str | None = None
    aperture: str | None = None
    focal_length: str | None = None
    iso: str | None = None
    shutter_speed: str | None = None
    capture_time: str | None = None
    location: str | None = None
    location_name: str | None = None
    genre: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    exposure_bias: str | None = None
    exposure_program: str | None = None
    exposure_mode: str | None = None
    metering_mode: str | None = None
    white_balance: str | None = None
    flash: str | None = None
    color_space: str | None = None
    resolution_x: str | None = None
    resolution_y: str | None = None
    resolution_unit: str | None = None
    software: str | None = None
    notes: str | None = None

    file_size: int | None = None
    sha256: str | None = None
    perceptual_hash: str | None = None
    thumbhash: str | None = None
    histogram: HistogramData | None = None

    processing_status: str | None = None
    upload_id: str | None = None

    extra: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> MediaMetadata:
        """Return a copy whose histogram and extra mapping are not shared."""

        histogram = HistogramData(**self.histogram.to_dict()) if self.histogram is not None else None
        return replace(self, histogram=histogram, extra=dict(self.extra))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a flat JSON-ready mapping, omitting absent fields."""

        payload: dict[str, Any] = dict(self.extra)
        for entry in fields(self):
            if entry.name == "extra":
                continue
            value = getattr(self, entry.name)
            if value is None:
                payload.pop(entry.name, None)
                continue
            if isinstance(value, HistogramData):
                value = value.to_dict()
            payload[entry.name] = value
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_dict(cls, raw: Any) -> MediaMetadata:
        """Build a record from a stored mapping, dropping values of the wrong type."""

        if not isinstance(raw, dict):
            return cls()

        known = {entry.name for entry in fields(cls)} - {"extra"}
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}

        for key, value in raw.items():
            if key not in known:
                extra[str(key)] = value
                continue
            if value is None:
                continue
            if key in CURATED_TEXT_FIELDS or key in ("sha256", "perceptual_hash", "thumbhash", "upload_id"):
                if isinstance(value, str):
                    values[key] = value
                elif key == "iso" and isinstance(value, (int, float)) and not isinstance(value, bool):
                    values[key] = str(int(value))
            elif key in CURATED_NUMERIC_FIELDS:
                if isinstance(value, (int, float)) and not isinstance(value, bool) and not is_empty_number(value):
                    values[key] = float(value)
            elif key == "file_size":
                if isinstance(value, (int, float)) and not isinstance(value, bool) and not is_empty_number(value):
                    values[key] = int(value)
            elif key == "histogram":
                histogram = HistogramData.from_dict(value)
                if histogram is not None:
                    values[key] = histogram
            elif key == "processing_status":
                if value in PROCESSING_STATUSES:
                    values[key] = value

        return cls(**values, extra=extra)

    @classmethod
    def from_json(cls, raw: str | None) -> MediaMetadata:
        """Parse a stored JSON blob; invalid JSON yields an empty record."""

        if not raw:
            return cls()
        try:
            return cls.from_dict(json.loads(raw))
        except (TypeError, ValueError):
            return cls()


__all__ = [
    "COMPLETED",
    "CURATED_NUMERIC_FIELDS",
    "CURATED_TEXT_FIELDS",
    "DERIVED_FIELDS",
    "EXTENDED_TEXT_FIELDS",
    "FAILED",
    "FLATTENED_NUMERIC_FIELDS",
    "FLATTENED_TEXT_FIELDS",
    "HISTOGRAM_BINS",
    "HistogramData",
    "MediaMetadata",
    "PROCESSING",
    "PROCESSING_STATUSES",
    "is_empty_number",
    "is_empty_text",
]
