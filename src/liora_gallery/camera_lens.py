"""Heuristic separating lens names that cameras embed in the model tag."""

from __future__ import annotations

import re
from typing import Final, NamedTuple

LENS_SEPARATORS: Final[tuple[str, ...]] = ("·", "|", "/", "-", "—", "–", "+", ",")

_SEPARATOR_CLASS = "[" + "".join(re.escape(separator) for separator in LENS_SEPARATORS) + "]"
_TRAILING_SEPARATOR = re.compile(rf"\s*{_SEPARATOR_CLASS}\s*$")
_LEADING_SEPARATOR = re.compile(rf"^{_SEPARATOR_CLASS}\s*")
_TRAILING_SEPARATORS = re.compile(rf"{_SEPARATOR_CLASS}+$")
_WHITESPACE = re.compile(r"\s+")


class CameraLens(NamedTuple):
    camera_model: str
    lens_model: str


def _normalize_spaces(value: str | None) -> str:
    return _WHITESPACE.sub(" ", value or "").strip()


def _remove_explicit_lens(camera: str, lens: str) -> CameraLens | None:
    index = camera.lower().rfind(lens.lower())
    if index == -1:
        return None

    before = _TRAILING_SEPARATOR.sub("", camera[:index])
    after = _LEADING_SEPARATOR.sub("", camera[index + len(lens) :])
    cleaned = _TRAILING_SEPARATORS.sub("", f"{before} {after}".strip()).strip()
    return CameraLens(cleaned or camera, lens)


def _split_at(camera: str, index: int, width: int) -> CameraLens | None:
    base = _normalize_spaces(camera[:index])
    extracted = _normalize_spaces(camera[index + width :])
    if base and extracted:
        return CameraLens(base, extracted)
    return None


def strip_lens_from_camera(camera_model: str | None, lens_model: str | None) -> CameraLens:
    """Return the camera text with any embedded lens name removed.

    With a known lens, its last case-insensitive occurrence in the camera text
    is cut out together with adjacent separators. Without one, the camera text
    is split at the rightmost whitespace-delimited separator (``" - "``,
    ``" | "``, ``", "`` and so on) when both sides are non-empty, and the right
    side becomes the inferred lens. Otherwise both values come back
    whitespace-normalized but otherwise unchanged.

    >>> strip_lens_from_camera("Canon EOS R5 - RF 24-70mm", "")
    CameraLens(camera_model='Canon EOS R5', lens_model='RF 24-70mm')
    """

    camera = _normalize_spaces(camera_model)
    lens = _normalize_spaces(lens_model)

    if lens:
        explicit = _remove_explicit_lens(camera, lens)
        if explicit is not None:
            return explicit
        return CameraLens(camera, lens)

    # Separators inside a token (the hyphen in "24-70mm", the slash in "f/2.8")
    # belong to the lens name, so split points must touch whitespace.
    for index in range(len(camera) - 3, 0, -1):
        if camera[index] not in LENS_SEPARATORS:
            continue
        if not (camera[index - 1].isspace() or camera[index + 1].isspace()):
            continue
        split = _split_at(camera, index, 1)
        if split is not None:
            return split

    return CameraLens(camera, lens)


__all__ = ["CameraLens", "LENS_SEPARATORS", "strip_lens_from_camera"]
