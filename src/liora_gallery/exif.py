"""EXIF pick-list extraction and normalization into ``MediaMetadata``."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, fields
from typing import Any

from PIL import ExifTags as PilExifTags
from PIL import Image

from liora_gallery import exif_format as fmt
from liora_gallery.camera_lens import strip_lens_from_camera
from liora_gallery.imaging import open_raw_image
from liora_gallery.metadata import MediaMetadata
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "exif"})

_Base = PilExifTags.Base
_GPS = PilExifTags.GPS


@dataclass
class ExifTags:
    """Raw values of the EXIF tags the gallery cares about."""

    make: Any = None
    model: Any = None
    lens_model: Any = None
    exposure_time: Any = None
    shutter_speed_value: Any = None
    f_number: Any = None
    iso: Any = None
    focal_length: Any = None
    exposure_bias: Any = None
    exposure_program: Any = None
    exposure_mode: Any = None
    metering_mode: Any = None
    white_balance: Any = None
    flash: Any = None
    color_space: Any = None
    x_resolution: Any = None
    y_resolution: Any = None
    resolution_unit: Any = None
    software: Any = None
    date_time_original: Any = None
    offset_time_original: Any = None
    create_date: Any = None
    latitude: float | None = None
    longitude: float | None = None
    image_description: Any = None
    xp_comment: Any = None
    xp_keywords: Any = None

    def is_empty(self) -> bool:
        return all(getattr(self, entry.name) is None for entry in fields(self))


# Tags read from IFD0 first, then from the Exif sub-IFD.
_IFD0_TAGS: dict[str, int] = {
    "make": _Base.Make,
    "model": _Base.Model,
    "x_resolution": _Base.XResolution,
    "y_resolution": _Base.YResolution,
    "resolution_unit": _Base.ResolutionUnit,
    "software": _Base.Software,
    "image_description": _Base.ImageDescription,
    "xp_comment": _Base.XPComment,
    "xp_keywords": _Base.XPKeywords,
}

# Tags read from the Exif sub-IFD first, then from IFD0.
_EXIF_IFD_TAGS: dict[str, int] = {
    "lens_model": _Base.LensModel,
    "exposure_time": _Base.ExposureTime,
    "shutter_speed_value": _Base.ShutterSpeedValue,
    "f_number": _Base.FNumber,
    "iso": _Base.ISOSpeedRatings,
    "focal_length": _Base.FocalLength,
    "exposure_bias": _Base.ExposureBiasValue,
    "exposure_program": _Base.ExposureProgram,
    "exposure_mode": _Base.ExposureMode,
    "metering_mode": _Base.MeteringMode,
    "white_balance": _Base.WhiteBalance,
    "flash": _Base.Flash,
    "color_space": _Base.ColorSpace,
    "date_time_original": _Base.DateTimeOriginal,
    "offset_time_original": _Base.OffsetTimeOriginal,
    "create_date": _Base.DateTimeDigitized,
}

_XP_TAGS = {"xp_comment", "xp_keywords"}


def _decode_xp(value: Any) -> str | None:
    """Decode Windows XP* tags, stored as UTF-16LE bytes or a tuple of byte values."""

    if isinstance(value, str):
        return value.rstrip("\x00").strip() or None
    if isinstance(value, (tuple, list)):
        try:
            value = bytes(value)
        except (TypeError, ValueError):
            return None
    if not isinstance(value, bytes):
        return None
    return value.decode("utf-16-le", errors="ignore").rstrip("\x00").strip() or None


def _clean_text(value: Any) -> Any:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        value = value.replace("\x00", "").strip()
        return value or None
    return value


def _to_degrees(value: object) -> float | None:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return None
    if len(value) < 3:
        return None
    d, m, s = value[0], value[1], value[2]
    try:
        d_val = float(d)
        m_val = float(m)
        s_val = float(s)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    degrees = d_val + (m_val / 60.0) + (s_val / 3600.0)
    if math.isnan(degrees):
        return None
    return degrees


def _read_gps(gps_ifd: dict[int, Any]) -> tuple[float | None, float | None]:
    latitude = _to_degrees(gps_ifd.get(_GPS.GPSLatitude))
    longitude = _to_degrees(gps_ifd.get(_GPS.GPSLongitude))
    if latitude is None or longitude is None:
        return None, None

    lat_ref = _clean_text(gps_ifd.get(_GPS.GPSLatitudeRef))
    lon_ref = _clean_text(gps_ifd.get(_GPS.GPSLongitudeRef))
    if isinstance(lat_ref, str) and lat_ref.upper() == "S":
        latitude = -latitude
    if isinstance(lon_ref, str) and lon_ref.upper() == "W":
        longitude = -longitude
    return latitude, longitude


def read_exif(image: Image.Image) -> ExifTags | None:
    """Extract the pick-list of EXIF tags from ``image``.

    The image must still carry its EXIF block, so pass an image opened without
    orientation correction. Returns ``None`` when no listed tag is present.
    """

    exif = image.getexif()
    if not exif:
        return None

    exif_ifd = exif.get_ifd(PilExifTags.IFD.Exif) or {}
    gps_ifd = exif.get_ifd(PilExifTags.IFD.GPSInfo) or {}

    values: dict[str, Any] = {}
    for name, tag in _IFD0_TAGS.items():
        raw = exif.get(tag, exif_ifd.get(tag))
        values[name] = _decode_xp(raw) if name in _XP_TAGS else _clean_text(raw)
    for name, tag in _EXIF_IFD_TAGS.items():
        values[name] = _clean_text(exif_ifd.get(tag, exif.get(tag)))

    values["latitude"], values["longitude"] = _read_gps(dict(gps_ifd))

    tags = ExifTags(**values)
    if tags.is_empty():
        return None
    return tags


def _camera_text(make: Any, model: Any) -> str:
    make_text = fmt.join_text(make)
    model_text = fmt.join_text(model)
    if make_text and model_text.lower().startswith(make_text.lower()):
        return model_text
    return " ".join(part for part in (make_text, model_text) if part)


def normalize_exif(tags: ExifTags) -> MediaMetadata:
    """Convert raw tag values into curated display strings.

    Empty results are left as ``None`` so fusion treats them as absent. The
    camera/lens heuristic is applied to the EXIF pair here; curated values are
    never passed through it.
    """

    def _or_none(text: str) -> str | None:
        return text or None

    camera = _camera_text(tags.make, tags.model)
    lens = fmt.join_text(tags.lens_model)
    if camera:
        camera, lens = strip_lens_from_camera(camera, lens)

    location = fmt.format_location(tags.latitude, tags.longitude)
    notes = fmt.join_text(
        [value for value in (tags.image_description, tags.xp_comment, tags.xp_keywords) if isinstance(value, str)]
    )

    if tags.date_time_original is not None:
        capture_time = fmt.format_capture_time(tags.date_time_original, tags.offset_time_original)
    else:
        capture_time = fmt.format_capture_time(tags.create_date)

    return MediaMetadata(
        camera_model=_or_none(camera),
        lens_model=_or_none(lens),
        aperture=_or_none(fmt.format_aperture(tags.f_number)),
        focal_length=_or_none(fmt.format_focal_length(tags.focal_length)),
        iso=_or_none(fmt.format_iso(tags.iso)),
        shutter_speed=_or_none(fmt.format_shutter_speed(tags.exposure_time, tags.shutter_speed_value)),
        capture_time=_or_none(capture_time),
        location=_or_none(location),
        location_name=_or_none(location),
        latitude=tags.latitude,
        longitude=tags.longitude,
        exposure_bias=_or_none(fmt.format_exposure_bias(tags.exposure_bias)),
        exposure_program=_or_none(fmt.format_exposure_program(tags.exposure_program)),
        exposure_mode=_or_none(fmt.format_exposure_mode(tags.exposure_mode)),
        metering_mode=_or_none(fmt.format_metering_mode(tags.metering_mode)),
        white_balance=_or_none(fmt.format_white_balance(tags.white_balance)),
        flash=_or_none(fmt.format_flash(tags.flash)),
        color_space=_or_none(fmt.format_color_space(tags.color_space)),
        resolution_x=_or_none(fmt.format_resolution_value(tags.x_resolution)),
        resolution_y=_or_none(fmt.format_resolution_value(tags.y_resolution)),
        resolution_unit=_or_none(fmt.format_resolution_unit(tags.resolution_unit)),
        software=_or_none(fmt.join_text(tags.software)),
        notes=_or_none(notes),
    )


def extract_exif_metadata(data: bytes) -> MediaMetadata | None:
    """Read and normalize the EXIF block of raw image bytes.

    Returns ``None`` when the image carries no EXIF data or when reading it
    fails; a failure is logged and never propagates.
    """

    try:
        image = open_raw_image(data)
        tags = read_exif(image)
        if tags is None:
            return None
        return normalize_exif(tags)
    except Exception as exc:
        LOGGER.warning("exif_read_failed", extra={"size_bytes": len(data), "error": str(exc)})
        return None


__all__ = ["ExifTags", "extract_exif_metadata", "normalize_exif", "read_exif"]
