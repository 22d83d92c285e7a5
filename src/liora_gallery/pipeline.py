"""Single-asset ingestion: validate, derive, fuse, persist and report status."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from liora_gallery.config import Settings, load_settings
from liora_gallery.db import MediaAsset
from liora_gallery.derivation import run_derivations
from liora_gallery.errors import AssetNotFoundError, ImageValidationError, IngestError, PersistenceError
from liora_gallery.fusion import FusionResult, fuse_metadata
from liora_gallery.imaging import decode_image
from liora_gallery.metadata import (
    COMPLETED,
    FAILED,
    FLATTENED_NUMERIC_FIELDS,
    FLATTENED_TEXT_FIELDS,
    PROCESSING,
    MediaMetadata,
    is_empty_number,
    is_empty_text,
)
from liora_gallery.upload_status import UNKNOWN_STATUS, UploadStatusStore
from utils.logging import get_logger


@dataclass
class IngestFields:
    """Caller-supplied values for an upload or replace request."""

    title: str | None = None
    description: str | None = None
    metadata: MediaMetadata = field(default_factory=MediaMetadata)


def asset_metadata(asset: MediaAsset) -> MediaMetadata:
    """Return the persisted metadata of ``asset``.

    The blob is the base; a non-empty flattened column takes precedence over
    the blob, since edits made through the query columns are authoritative.
    """

    metadata = MediaMetadata.from_json(asset.metadata_json)
    for name in FLATTENED_TEXT_FIELDS:
        column_value = getattr(asset, name)
        if not is_empty_text(column_value):
            setattr(metadata, name, column_value)
    for name in FLATTENED_NUMERIC_FIELDS:
        column_value = getattr(asset, name)
        if not is_empty_number(column_value):
            setattr(metadata, name, float(column_value))
    return metadata


def apply_fusion_result(asset: MediaAsset, result: FusionResult) -> list[str]:
    """Write fused columns and blob onto ``asset`` and return the attributes that changed."""

    changed: list[str] = []
    for name, value in result.columns.items():
        if getattr(asset, name) != value:
            setattr(asset, name, value)
            changed.append(name)

    blob = result.metadata.to_json()
    if asset.metadata_json != blob:
        asset.metadata_json = blob
        changed.append("metadata_json")
    return changed


def _first_text(*values: str | None) -> str:
    for value in values:
        if not is_empty_text(value):
            return value  # type: ignore[return-value]
    return ""


class IngestionPipeline:
    """Runs the synchronous ingestion path for new uploads and image replacements."""

    def __init__(self, settings: Settings | None = None, status_store: UploadStatusStore | None = None) -> None:
        """Initialize the pipeline.

        Args:
            settings: Optional pre-loaded Settings instance. When omitted,
                configuration is loaded from ``config/settings.yaml``.
            status_store: Store receiving per-upload processing status. A
                private store is created when omitted.
        """

        self._settings = settings or load_settings()
        self._status_store = status_store if status_store is not None else UploadStatusStore()
        self._logger = get_logger(__name__, extra={"component": "ingest"})

    @property
    def status_store(self) -> UploadStatusStore:
        return self._status_store

    def ingest(
        self,
        session: Session,
        data: bytes,
        *,
        fields: IngestFields | None = None,
        source_url: str,
        original_name: str = "",
        upload_id: str | None = None,
    ) -> MediaAsset:
        """Create a new asset from uploaded bytes.

        Raises:
            ImageValidationError: If ``data`` is not a decodable raster image.
            PersistenceError: If the database write fails.
        """

        return self._process(
            session,
            None,
            data,
            fields=fields,
            source_url=source_url,
            original_name=original_name,
            upload_id=upload_id,
        )

    def replace_image(
        self,
        session: Session,
        asset_id: int,
        data: bytes,
        *,
        fields: IngestFields | None = None,
        source_url: str,
        original_name: str | None = None,
        upload_id: str | None = None,
    ) -> MediaAsset:
        """Replace the image of an existing asset and re-derive every descriptor.

        Curated values already on the asset survive unless ``fields`` supplies
        new ones; derived values always describe the new bytes.

        Raises:
            AssetNotFoundError: If no asset has ``asset_id``.
            ImageValidationError: If ``data`` is not a decodable raster image.
            PersistenceError: If the database write fails.
        """

        asset = session.get(MediaAsset, asset_id)
        if asset is None:
            self._mark(upload_id, FAILED)
            raise AssetNotFoundError(f"media asset {asset_id} does not exist")

        return self._process(
            session,
            asset,
            data,
            fields=fields,
            source_url=source_url,
            original_name=original_name,
            upload_id=upload_id,
        )

    def lookup_status(self, session: Session, upload_id: str) -> str:
        """Return the processing status for ``upload_id``.

        The status store is consulted first. Otherwise persisted blobs are
        scanned for the correlation id and the status found there (defaulting
        to ``completed``) is cached in the store.
        """

        cached = self._status_store.get(upload_id)
        if cached is not None:
            return cached

        rows = session.execute(
            select(MediaAsset.metadata_json).where(MediaAsset.metadata_json.contains(upload_id))
        ).scalars()
        for raw in rows:
            metadata = MediaMetadata.from_json(raw)
            if metadata.upload_id != upload_id:
                continue
            status = metadata.processing_status or COMPLETED
            self._status_store.set(upload_id, status)
            return status
        return UNKNOWN_STATUS

    def _mark(self, upload_id: str | None, status: str) -> None:
        if upload_id:
            self._status_store.set(upload_id, status)

    def _process(
        self,
        session: Session,
        asset: MediaAsset | None,
        data: bytes,
        *,
        fields: IngestFields | None,
        source_url: str,
        original_name: str | None,
        upload_id: str | None,
    ) -> MediaAsset:
        asset_id = asset.id if asset is not None else None
        self._mark(upload_id, PROCESSING)
        try:
            return self._derive_and_persist(
                session,
                asset,
                data,
                request=fields or IngestFields(),
                source_url=source_url,
                original_name=original_name,
                upload_id=upload_id,
            )
        except Exception as exc:
            self._mark(upload_id, FAILED)
            if not isinstance(exc, IngestError):
                self._logger.error(
                    "ingest_unexpected_error",
                    extra={"asset_id": asset_id, "upload_id": upload_id, "error": str(exc)},
                )
            raise

    def _derive_and_persist(
        self,
        session: Session,
        asset: MediaAsset | None,
        data: bytes,
        *,
        request: IngestFields,
        source_url: str,
        original_name: str | None,
        upload_id: str | None,
    ) -> MediaAsset:
        try:
            decoded = decode_image(data)
        except ImageValidationError as exc:
            self._logger.warning(
                "ingest_validation_failed",
                extra={
                    "asset_id": asset.id if asset is not None else None,
                    "upload_id": upload_id,
                    "error": str(exc),
                },
            )
            raise

        results = run_derivations(data, config=self._settings.pipeline)
        existing = asset_metadata(asset) if asset is not None else None
        fused = fuse_metadata(
            existing,
            request.metadata,
            results.exif,
            assets=results,
            overwrite_derived=True,
            processing_status=COMPLETED,
            upload_id=upload_id,
        )

        now = time.time()
        is_new = asset is None
        if asset is None:
            asset = MediaAsset(created_at=now)

        asset.title = _first_text(request.title, None if is_new else asset.title)
        asset.description = _first_text(request.description, None if is_new else asset.description)
        asset.image_url = source_url
        if original_name is not None:
            asset.original_name = original_name
        asset.width = decoded.width
        asset.height = decoded.height
        apply_fusion_result(asset, fused)
        asset.updated_at = now

        try:
            if is_new:
                session.add(asset)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            self._logger.error(
                "ingest_persist_error",
                extra={"asset_id": None if is_new else asset.id, "upload_id": upload_id, "error": str(exc)},
            )
            raise PersistenceError("failed to persist media asset") from exc

        self._mark(upload_id, COMPLETED)
        self._logger.info(
            "asset_ingested" if is_new else "asset_image_replaced",
            extra={
                "asset_id": asset.id,
                "upload_id": upload_id,
                "width": decoded.width,
                "height": decoded.height,
                "size_bytes": decoded.size_bytes,
                "changed_fields": fused.changed_fields,
            },
        )
        return asset


__all__ = ["IngestFields", "IngestionPipeline", "apply_fusion_result", "asset_metadata"]
