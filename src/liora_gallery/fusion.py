"""Non-destructive merge of caller, persisted and derived metadata.

Curated fields take the first non-empty value in the order caller input,
persisted value, EXIF-derived value. Derived descriptors (fingerprints,
placeholder, histogram) follow the mode of the caller: an image write
replaces them with the fresh results, a backfill only fills gaps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from liora_gallery.camera_lens import strip_lens_from_camera
from liora_gallery.derivation import DerivationResults
from liora_gallery.metadata import (
    CURATED_NUMERIC_FIELDS,
    CURATED_TEXT_FIELDS,
    DERIVED_FIELDS,
    FLATTENED_NUMERIC_FIELDS,
    FLATTENED_TEXT_FIELDS,
    MediaMetadata,
    is_empty_number,
    is_empty_text,
)

_SOURCE_EXPLICIT = "explicit"
_SOURCE_EXISTING = "existing"
_SOURCE_DERIVED = "derived"


@dataclass
class FusionResult:
    """Fused blob, the flattened column values projected from it, and what changed."""

    metadata: MediaMetadata
    columns: dict[str, Any]
    changed_fields: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_fields)


def _first_text(*candidates: tuple[str, str | None]) -> tuple[str | None, str | None]:
    for source, value in candidates:
        if not is_empty_text(value):
            return value, source
    return None, None


def _first_number(*candidates: tuple[str, float | None]) -> float | None:
    for _source, value in candidates:
        if not is_empty_number(value):
            return value
    return None


def _is_missing(value: Any) -> bool:
    if isinstance(value, str):
        return is_empty_text(value)
    return value is None


def project_columns(metadata: MediaMetadata) -> dict[str, Any]:
    """Map fused metadata onto the flattened ``media_asset`` columns.

    Text columns are ``""`` when the field is absent; coordinates are ``None``.
    """

    columns: dict[str, Any] = {}
    for name in FLATTENED_TEXT_FIELDS:
        value = getattr(metadata, name)
        columns[name] = value if value is not None else ""
    for name in FLATTENED_NUMERIC_FIELDS:
        columns[name] = getattr(metadata, name)
    return columns


def fuse_metadata(
    existing: MediaMetadata | None,
    explicit: MediaMetadata | None,
    derived: MediaMetadata | None,
    *,
    assets: DerivationResults | None = None,
    overwrite_derived: bool = False,
    processing_status: str | None = None,
    upload_id: str | None = None,
) -> FusionResult:
    """Fuse one asset's metadata sources into a single record.

    Args:
        existing: Metadata currently persisted for the asset, if any.
        explicit: Curated fields supplied by the caller, if any.
        derived: EXIF-derived curated fields, if any.
        assets: Fresh derivation results (byte size, fingerprints, placeholder,
            histogram).
        overwrite_derived: True for ingest and image replacement, where derived
            descriptors describe the new bytes and replace stale ones. False for
            backfill, where they only fill gaps.
        processing_status: Pipeline-owned status to record, if any.
        upload_id: Correlation id to record, if any.

    Returns:
        The fused metadata, its flattened column projection, and the names of
        blob fields whose value differs from ``existing``.
    """

    base = existing.copy() if existing is not None else MediaMetadata()
    caller = explicit or MediaMetadata()
    exif = derived or MediaMetadata()
    fused = base.copy()

    sources: dict[str, str | None] = {}
    for name in CURATED_TEXT_FIELDS:
        value, source = _first_text(
            (_SOURCE_EXPLICIT, getattr(caller, name)),
            (_SOURCE_EXISTING, getattr(base, name)),
            (_SOURCE_DERIVED, getattr(exif, name)),
        )
        setattr(fused, name, value)
        sources[name] = source

    for name in CURATED_NUMERIC_FIELDS:
        setattr(
            fused,
            name,
            _first_number(
                (_SOURCE_EXPLICIT, getattr(caller, name)),
                (_SOURCE_EXISTING, getattr(base, name)),
                (_SOURCE_DERIVED, getattr(exif, name)),
            ),
        )

    # A curated lens may still be embedded in an EXIF-sourced camera name.
    if sources.get("camera_model") == _SOURCE_DERIVED and fused.camera_model and fused.lens_model:
        fused.camera_model = strip_lens_from_camera(fused.camera_model, fused.lens_model).camera_model or None

    if assets is not None:
        if overwrite_derived:
            fused.file_size = assets.file_size
            for name in DERIVED_FIELDS:
                setattr(fused, name, getattr(assets, name))
        else:
            if base.file_size is None or base.file_size <= 0:
                fused.file_size = assets.file_size
            for name in DERIVED_FIELDS:
                if _is_missing(getattr(base, name)):
                    setattr(fused, name, getattr(assets, name))

    if processing_status is not None:
        fused.processing_status = processing_status
    if upload_id is not None:
        fused.upload_id = upload_id

    before = base.to_dict()
    after = fused.to_dict()
    changed = sorted(key for key in before.keys() | after.keys() if before.get(key) != after.get(key))

    return FusionResult(metadata=fused, columns=project_columns(fused), changed_fields=changed)


__all__ = ["FusionResult", "fuse_metadata", "project_columns"]
