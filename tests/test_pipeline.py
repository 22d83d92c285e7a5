from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from liora_gallery.backfill import BatchReprocessor
from liora_gallery.errors import AssetNotFoundError, ImageValidationError, PersistenceError
from liora_gallery.fetcher import HttpImageFetcher
from liora_gallery.hasher import compute_content_hash
from liora_gallery.db import MediaAsset
from liora_gallery.metadata import COMPLETED, FAILED, MediaMetadata
from liora_gallery.pipeline import IngestFields, IngestionPipeline, asset_metadata
from liora_gallery.upload_status import UNKNOWN_STATUS, UploadStatusStore
from tests.utils.images import camera_jpeg


def _write(tmp_path: Path, name: str, data: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def _count_assets(session) -> int:
    return session.scalar(select(func.count(MediaAsset.id)))


def test_ingest_then_edit_survives_backfill(session, settings, tmp_path: Path) -> None:
    """A curated column edit must not be overwritten by re-derived EXIF values."""

    data = camera_jpeg()
    path = _write(tmp_path, "a7iv.jpg", data)
    pipeline = IngestionPipeline(settings=settings)

    asset = pipeline.ingest(
        session,
        data,
        fields=IngestFields(title="Dusk"),
        source_url=path.as_uri(),
        original_name=path.name,
        upload_id="upload-1",
    )

    assert asset.id is not None
    assert asset.title == "Dusk"
    assert asset.camera_model == "Sony A7IV"
    assert asset.aperture == "f/1.8"
    assert asset.iso == "400"
    assert (asset.width, asset.height) == (64, 48)
    metadata = MediaMetadata.from_json(asset.metadata_json)
    assert metadata.sha256 == compute_content_hash(data)
    assert metadata.thumbhash is not None
    assert metadata.histogram is not None
    assert metadata.file_size == len(data)
    assert metadata.processing_status == COMPLETED
    assert metadata.upload_id == "upload-1"

    asset.camera_model = "My Sony"
    session.commit()

    with HttpImageFetcher() as fetcher:
        first = BatchReprocessor(fetcher, settings=settings).run(session)
        second = BatchReprocessor(fetcher, settings=settings).run(session)

    assert first.failed == 0
    assert second.updated == 0
    session.refresh(asset)
    assert asset.camera_model == "My Sony"
    assert MediaMetadata.from_json(asset.metadata_json).camera_model == "My Sony"
    assert asset.aperture == "f/1.8"


def test_caller_fields_win_over_exif(session, settings) -> None:
    pipeline = IngestionPipeline(settings=settings)
    fields = IngestFields(metadata=MediaMetadata(camera_model="Studio camera", genre="Portrait"))

    asset = pipeline.ingest(session, camera_jpeg(), fields=fields, source_url="file:///uploads/1.jpg")

    assert asset.camera_model == "Studio camera"
    assert asset.genre == "Portrait"
    assert asset.aperture == "f/1.8"
    assert asset.title == ""


def test_invalid_bytes_fail_without_writing(session, settings) -> None:
    pipeline = IngestionPipeline(settings=settings)

    with pytest.raises(ImageValidationError):
        pipeline.ingest(session, b"not an image", source_url="file:///uploads/bad.jpg", upload_id="bad-upload")

    assert pipeline.status_store.get("bad-upload") == FAILED
    assert _count_assets(session) == 0


def test_persistence_failure_is_wrapped(session, settings, png_bytes, monkeypatch: pytest.MonkeyPatch) -> None:
    pipeline = IngestionPipeline(settings=settings)

    def _boom() -> None:
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(session, "commit", _boom)
    with pytest.raises(PersistenceError):
        pipeline.ingest(session, png_bytes(), source_url="file:///uploads/1.png", upload_id="upload-err")
    monkeypatch.undo()

    assert pipeline.status_store.get("upload-err") == FAILED
    assert _count_assets(session) == 0


def test_unexpected_failure_marks_upload_failed(session, settings, png_bytes, monkeypatch: pytest.MonkeyPatch) -> None:
    pipeline = IngestionPipeline(settings=settings)

    def _explode(*args, **kwargs):
        raise RuntimeError("fusion bug")

    monkeypatch.setattr("liora_gallery.pipeline.fuse_metadata", _explode)
    with pytest.raises(RuntimeError):
        pipeline.ingest(session, png_bytes(), source_url="file:///uploads/1.png", upload_id="upload-bug")

    assert pipeline.status_store.get("upload-bug") == FAILED
    assert _count_assets(session) == 0


def test_replace_image_rederives_and_keeps_curated_values(session, settings, png_bytes) -> None:
    pipeline = IngestionPipeline(settings=settings)
    asset = pipeline.ingest(
        session,
        camera_jpeg(),
        fields=IngestFields(title="Dusk", description="first take"),
        source_url="file:///uploads/1.jpg",
        original_name="1.jpg",
    )
    asset.aperture = "f/4"
    session.commit()

    replacement = png_bytes((30, 20), (10, 200, 10))
    replaced = pipeline.replace_image(session, asset.id, replacement, source_url="file:///uploads/2.png")

    assert replaced.id == asset.id
    assert (replaced.width, replaced.height) == (30, 20)
    assert replaced.image_url == "file:///uploads/2.png"
    assert replaced.original_name == "1.jpg"
    assert replaced.title == "Dusk"
    assert replaced.description == "first take"
    assert replaced.aperture == "f/4"
    assert replaced.camera_model == "Sony A7IV"
    metadata = asset_metadata(replaced)
    assert metadata.sha256 == compute_content_hash(replacement)
    assert metadata.file_size == len(replacement)
    assert _count_assets(session) == 1


def test_replace_unknown_asset(session, settings, png_bytes) -> None:
    pipeline = IngestionPipeline(settings=settings)

    with pytest.raises(AssetNotFoundError):
        pipeline.replace_image(session, 999, png_bytes(), source_url="file:///x.png", upload_id="missing")

    assert pipeline.status_store.get("missing") == FAILED


def test_lookup_status_falls_back_to_persisted_records(session, settings, png_bytes) -> None:
    pipeline = IngestionPipeline(settings=settings)
    pipeline.ingest(session, png_bytes(), source_url="file:///uploads/1.png", upload_id="upload-7")

    assert pipeline.lookup_status(session, "upload-7") == COMPLETED

    store = UploadStatusStore()
    fresh = IngestionPipeline(settings=settings, status_store=store)
    assert fresh.lookup_status(session, "upload-7") == COMPLETED
    assert store.get("upload-7") == COMPLETED
    assert fresh.lookup_status(session, "upload-unknown") == UNKNOWN_STATUS


def test_asset_metadata_prefers_non_empty_columns(session, settings, png_bytes) -> None:
    pipeline = IngestionPipeline(settings=settings)
    asset = pipeline.ingest(
        session,
        png_bytes(),
        fields=IngestFields(metadata=MediaMetadata(genre="Street", notes="kept in blob")),
        source_url="file:///uploads/1.png",
    )

    asset.genre = "Documentary"
    asset.camera_model = ""

    metadata = asset_metadata(asset)
    assert metadata.genre == "Documentary"
    assert metadata.camera_model is None
    assert metadata.notes == "kept in blob"
