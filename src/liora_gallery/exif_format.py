"""Formatters turning raw EXIF values into display strings.

All formatters are pure and deterministic. They accept the loosely typed
values Pillow returns (ints, floats, ``IFDRational``, strings, tuples) and
return ``""`` when there is nothing meaningful to show.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

EXPOSURE_PROGRAMS: dict[int, str] = {
    0: "Not defined",
    1: "Manual",
    2: "Program",
    3: "Aperture priority",
    4: "Shutter priority",
    5: "Creative",
    6: "Action",
    7: "Portrait",
    8: "Landscape",
}
EXPOSURE_PROGRAM_ALIASES: dict[str, str] = {
    "normal program": "Program",
    "program normal": "Program",
}

EXPOSURE_MODES: dict[int, str] = {
    0: "Auto",
    1: "Manual",
    2: "Auto bracket",
}

METERING_MODES: dict[int, str] = {
    0: "Unknown",
    1: "Average",
    2: "Center-weighted",
    3: "Spot",
    4: "Multi-spot",
    5: "Pattern",
    6: "Partial",
    255: "Other",
}
METERING_MODE_ALIASES: dict[str, str] = {
    "matrix": "Pattern",
    "multispot": "Multi-spot",
    "multi-spot": "Multi-spot",
    "center-weighted average": "Center-weighted",
}

WHITE_BALANCES: dict[int, str] = {
    0: "Auto",
    1: "Manual",
}

FLASH_LABELS: tuple[str, ...] = ("Did not fire", "Auto (did not fire)", "Fired", "Auto (fired)")
FLASH_ALIASES: dict[str, str] = {
    "did not fire": "Did not fire",
    "auto, did not fire": "Auto (did not fire)",
    "auto - did not fire": "Auto (did not fire)",
    "auto, fired": "Auto (fired)",
}

COLOR_SPACES: dict[int, str] = {1: "sRGB", 65535: "Uncalibrated"}
RESOLUTION_UNITS: dict[int, str] = {2: "Pixels/Inch", 3: "Pixels/Centimeter"}

_EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def to_number(value: Any) -> float | None:
    """Coerce an EXIF value to a finite float, or ``None``.

    Strings are parsed, rationals are divided, and a sequence yields its first
    element. Booleans are not numbers here.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple)):
        return to_number(value[0]) if value else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            numeric = float(text)
        except ValueError:
            return None
    else:
        try:
            numeric = float(value)
        except (TypeError, ValueError, ZeroDivisionError):
            return None
    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def _to_code(value: Any) -> int | None:
    numeric = to_number(value)
    if numeric is None or not numeric.is_integer():
        return None
    return int(numeric)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore").rstrip("\x00")
    return str(value).strip()


def _round_half_away(value: float, places: int) -> Decimal | None:
    """Round half away from zero, or ``None`` when the result needs more than 28 digits."""

    quantum = Decimal(1).scaleb(-places)
    try:
        rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return rounded.copy_abs() if rounded == 0 else rounded


def normalize_to_option(value: str | None, options: Sequence[str], aliases: Mapping[str, str] | None = None) -> str:
    """Map free text onto a canonical option label.

    Matching is case-insensitive: exact option, exact alias, alias contained in
    the text, option contained in the text. Anything else is returned trimmed.
    """

    text = (value or "").strip()
    if not text:
        return ""
    lower = text.lower()
    alias_table = aliases or {}

    for option in options:
        if option.lower() == lower:
            return option
    if lower in alias_table:
        return alias_table[lower]
    for key, mapped in alias_table.items():
        if key in lower:
            return mapped
    for option in options:
        if option.lower() in lower:
            return option
    return text


def format_aperture(value: Any) -> str:
    numeric = to_number(value)
    if numeric is None or numeric <= 0:
        return ""
    rounded = _round_half_away(numeric, 1)
    return f"f/{rounded}" if rounded is not None else ""


def _format_seconds(seconds: float) -> str:
    if seconds < 1:
        denominator = 1 / seconds + 0.5
        if math.isinf(denominator):
            return ""
        return f"1/{int(math.floor(denominator))}s"
    rounded = _round_half_away(seconds, 2)
    return f"{rounded}s" if rounded is not None else ""


def format_shutter_speed(exposure_time: Any, shutter_speed_value: Any = None) -> str:
    """Render an exposure time, falling back to the APEX shutter-speed value."""

    seconds = to_number(exposure_time)
    if seconds is not None and seconds > 0:
        return _format_seconds(seconds)

    apex = to_number(shutter_speed_value)
    if apex is not None:
        try:
            base = 2.0 ** -apex
        except OverflowError:
            return ""
        if base > 0:
            return _format_seconds(base)
    return ""


def format_focal_length(value: Any) -> str:
    numeric = to_number(value)
    if numeric is None or numeric <= 0:
        return ""
    rounded = _round_half_away(numeric, 0)
    return f"{rounded}mm" if rounded is not None else ""


def format_iso(value: Any) -> str:
    numeric = to_number(value)
    if numeric is None or numeric <= 0:
        return ""
    return str(int(numeric))


def format_exposure_bias(value: Any) -> str:
    """Render a bias like ``+0.3 EV``; non-numeric text passes through trimmed."""

    if value is None:
        return ""
    numeric = to_number(value)
    if numeric is not None:
        rounded = _round_half_away(numeric, 1)
        if rounded is None:
            return ""
        sign = "+" if rounded > 0 else ""
        return f"{sign}{rounded} EV"
    return _to_text(value)


def _format_coded(value: Any, table: Mapping[int, str], kind: str, aliases: Mapping[str, str] | None = None) -> str:
    if value is None:
        return ""
    code = _to_code(value)
    if code is not None:
        return table.get(code, f"{kind} {code}")
    return normalize_to_option(_to_text(value), list(table.values()), aliases)


def format_exposure_program(value: Any) -> str:
    return _format_coded(value, EXPOSURE_PROGRAMS, "Program", EXPOSURE_PROGRAM_ALIASES)


def format_exposure_mode(value: Any) -> str:
    return _format_coded(value, EXPOSURE_MODES, "Mode")


def format_metering_mode(value: Any) -> str:
    return _format_coded(value, METERING_MODES, "Mode", METERING_MODE_ALIASES)


def format_white_balance(value: Any) -> str:
    return _format_coded(value, WHITE_BALANCES, "WB")


def format_flash(value: Any) -> str:
    """Decode the flash bitmask: bit 0 is fired, bits 3 and 4 together mean auto."""

    if value is None:
        return ""
    code = _to_code(value)
    if code is not None:
        fired = (code & 1) == 1
        auto = (code & 24) == 24
        if fired:
            return "Auto (fired)" if auto else "Fired"
        return "Auto (did not fire)" if auto else "Did not fire"
    return normalize_to_option(_to_text(value), FLASH_LABELS, FLASH_ALIASES)


def format_color_space(value: Any) -> str:
    if value is None:
        return ""
    code = _to_code(value)
    if code is not None and code in COLOR_SPACES:
        return COLOR_SPACES[code]
    return _to_text(value)


def format_resolution_value(value: Any) -> str:
    if value is None:
        return ""
    numeric = to_number(value)
    if numeric is None:
        return _to_text(value)
    if numeric.is_integer():
        return str(int(numeric))
    rounded = _round_half_away(numeric, 2)
    if rounded is None:
        return ""
    text = f"{rounded}"
    return text.rstrip("0").rstrip(".")


def format_resolution_unit(value: Any) -> str:
    if value is None:
        return ""
    code = _to_code(value)
    if code is not None and code in RESOLUTION_UNITS:
        return RESOLUTION_UNITS[code]
    return _to_text(value)


def parse_capture_time(value: Any) -> datetime | None:
    """Parse EXIF ``YYYY:MM:DD HH:MM:SS``, ISO-8601 text or a ``datetime``."""

    if isinstance(value, datetime):
        return value
    text = _to_text(value)
    if not text:
        return None
    try:
        return datetime.strptime(text[:19], _EXIF_DATETIME_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_capture_time(value: Any, offset: Any = None) -> str:
    """Render a capture timestamp as ISO-8601 seconds, appending a UTC offset tag if given."""

    parsed = parse_capture_time(value)
    if parsed is None:
        return ""
    rendered = parsed.isoformat(timespec="seconds")
    offset_text = _to_text(offset)
    if parsed.tzinfo is None and len(offset_text) == 6 and offset_text[0] in "+-" and offset_text[3] == ":":
        rendered += offset_text
    return rendered


def format_location(latitude: float | None, longitude: float | None) -> str:
    if latitude is None or longitude is None:
        return ""
    if math.isnan(latitude) or math.isnan(longitude):
        return ""
    return f"{latitude:.6f}, {longitude:.6f}"


def join_text(values: Any) -> str:
    """Join a string or a sequence of strings with spaces, skipping blanks."""

    if values is None:
        return ""
    if isinstance(values, (str, bytes)):
        values = [values]
    parts = [_to_text(value) for value in values]
    return " ".join(part for part in parts if part)


__all__ = [
    "COLOR_SPACES",
    "EXPOSURE_MODES",
    "EXPOSURE_PROGRAMS",
    "FLASH_LABELS",
    "METERING_MODES",
    "RESOLUTION_UNITS",
    "WHITE_BALANCES",
    "format_aperture",
    "format_capture_time",
    "format_color_space",
    "format_exposure_bias",
    "format_exposure_mode",
    "format_exposure_program",
    "format_flash",
    "format_focal_length",
    "format_iso",
    "format_location",
    "format_metering_mode",
    "format_resolution_unit",
    "format_resolution_value",
    "format_shutter_speed",
    "format_white_balance",
    "join_text",
    "normalize_to_option",
    "parse_capture_time",
    "to_number",
]
