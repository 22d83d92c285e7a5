"""Sequential, field-level idempotent reprocessing of stored assets."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from liora_gallery.config import Settings, load_settings
from liora_gallery.db import MediaAsset
from liora_gallery.derivation import (
    ALL_STAGES,
    STAGE_EXIF,
    STAGE_FINGERPRINT,
    STAGE_HISTOGRAM,
    STAGE_PLACEHOLDER,
    run_derivations,
    validate_stages,
)
from liora_gallery.errors import FetchError, ImageValidationError
from liora_gallery.fetcher import ImageFetcher
from liora_gallery.fusion import fuse_metadata
from liora_gallery.imaging import decode_image
from liora_gallery.metadata import (
    CURATED_NUMERIC_FIELDS,
    CURATED_TEXT_FIELDS,
    MediaMetadata,
    is_empty_number,
    is_empty_text,
)
from liora_gallery.pipeline import apply_fusion_result, asset_metadata
from utils.logging import get_logger

# Curated fields no EXIF tag can supply; their emptiness never triggers the EXIF stage.
_NON_EXIF_FIELDS = frozenset({"genre"})

_UPDATED = "updated"
_SKIPPED = "skipped"


@dataclass
class BackfillSummary:
    """Counts reported at the end of a batch run."""

    total: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def pending_stages(metadata: MediaMetadata, stages: Sequence[str]) -> list[str]:
    """Return the subset of ``stages`` whose target fields are still empty."""

    pending: list[str] = []
    for stage in stages:
        if stage == STAGE_EXIF:
            missing_text = any(
                is_empty_text(getattr(metadata, name)) for name in CURATED_TEXT_FIELDS if name not in _NON_EXIF_FIELDS
            )
            missing_number = any(is_empty_number(getattr(metadata, name)) for name in CURATED_NUMERIC_FIELDS)
            if missing_text or missing_number:
                pending.append(stage)
        elif stage == STAGE_FINGERPRINT:
            if is_empty_text(metadata.sha256) or is_empty_text(metadata.perceptual_hash):
                pending.append(stage)
        elif stage == STAGE_PLACEHOLDER:
            if is_empty_text(metadata.thumbhash):
                pending.append(stage)
        elif stage == STAGE_HISTOGRAM:
            if metadata.histogram is None:
                pending.append(stage)
    return pending


class BatchReprocessor:
    """Backfills derived and EXIF fields across stored assets, one record at a time.

    Records are processed strictly in id order with a single image in memory.
    A failure on one record is counted and logged; the batch always runs to
    the end. Re-running over unchanged images changes nothing, because every
    stage only fills fields that are still empty.
    """

    def __init__(self, fetcher: ImageFetcher, settings: Settings | None = None) -> None:
        self._fetcher = fetcher
        self._settings = settings or load_settings()
        self._logger = get_logger(__name__, extra={"component": "backfill"})

    def run(
        self,
        session: Session,
        stages: Iterable[str] = ALL_STAGES,
        asset_ids: Sequence[int] | None = None,
    ) -> BackfillSummary:
        """Backfill ``stages`` over every asset, or only over ``asset_ids``."""

        selected = validate_stages(stages)
        query = select(MediaAsset.id).order_by(MediaAsset.id)
        if asset_ids is not None:
            query = query.where(MediaAsset.id.in_(list(asset_ids)))
        ids = list(session.execute(query).scalars())

        summary = BackfillSummary(total=len(ids))
        progress_interval = max(1, len(ids) // 20) if ids else 0

        self._logger.info("backfill_start", extra={"total": summary.total, "stages": list(selected)})

        for processed, asset_id in enumerate(ids, start=1):
            try:
                outcome = self._process_one(session, asset_id, selected)
            except Exception as exc:
                session.rollback()
                summary.failed += 1
                self._logger.error("backfill_record_error", extra={"asset_id": asset_id, "error": str(exc)})
            else:
                if outcome == _UPDATED:
                    summary.updated += 1
                else:
                    summary.skipped += 1

            if progress_interval and (processed % progress_interval == 0 or processed == summary.total):
                percent = round(processed * 100.0 / max(summary.total, 1), 1)
                self._logger.info(
                    "backfill_progress %s/%s (%.1f%%)",
                    processed,
                    summary.total,
                    percent,
                    extra={"processed": processed, "total": summary.total, "percent": percent},
                )

        self._logger.info("backfill_complete", extra=summary.to_dict())
        return summary

    def _process_one(self, session: Session, asset_id: int, stages: Sequence[str]) -> str:
        asset = session.get(MediaAsset, asset_id)
        if asset is None:
            return _SKIPPED

        existing = asset_metadata(asset)
        needed = pending_stages(existing, stages)
        needs_size = existing.file_size is None or existing.file_size <= 0
        needs_dimensions = asset.width <= 0 or asset.height <= 0
        if not needed and not needs_size and not needs_dimensions:
            return _SKIPPED

        source_url = (asset.image_url or "").strip()
        if not source_url:
            self._logger.warning("backfill_missing_source_url", extra={"asset_id": asset_id})
            return _SKIPPED

        try:
            data = self._fetcher.fetch(source_url)
        except FetchError as exc:
            self._logger.warning(
                "backfill_fetch_failed",
                extra={"asset_id": asset_id, "url": source_url, "reason": exc.reason},
            )
            return _SKIPPED

        try:
            decoded = decode_image(data)
        except ImageValidationError as exc:
            self._logger.warning("backfill_invalid_image", extra={"asset_id": asset_id, "error": str(exc)})
            return _SKIPPED

        results = run_derivations(data, stages=needed, config=self._settings.pipeline)
        fused = fuse_metadata(existing, None, results.exif, assets=results, overwrite_derived=False)
        changed = apply_fusion_result(asset, fused)
        if needs_dimensions:
            asset.width = decoded.width
            asset.height = decoded.height
            changed.extend(["width", "height"])

        if not changed:
            return _SKIPPED

        asset.updated_at = time.time()
        session.commit()
        self._logger.info(
            "backfill_record_updated",
            extra={"asset_id": asset_id, "stages": needed, "changed": changed},
        )
        return _UPDATED


__all__ = ["BackfillSummary", "BatchReprocessor", "pending_stages"]
