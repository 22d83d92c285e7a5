from __future__ import annotations

from pathlib import Path

import pytest

from liora_gallery.backfill import BatchReprocessor, pending_stages
from liora_gallery.db import MediaAsset
from liora_gallery.errors import FetchError
from liora_gallery.fetcher import HttpImageFetcher
from liora_gallery.metadata import CURATED_TEXT_FIELDS, HistogramData, MediaMetadata
from liora_gallery.pipeline import IngestionPipeline
from tests.utils.images import camera_jpeg


class _RecordingFetcher:
    """Local-file fetcher that records every URL and can fail on chosen ones."""

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.calls: list[str] = []
        self._failures = failures or {}
        self._inner = HttpImageFetcher()

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if url in self._failures:
            raise self._failures[url]
        return self._inner.fetch(url)


def _bare_asset(session, image_url: str) -> MediaAsset:
    asset = MediaAsset(image_url=image_url, metadata_json="{}")
    session.add(asset)
    session.commit()
    return asset


def test_pending_stages_track_empty_fields() -> None:
    complete = MediaMetadata(sha256="a", perceptual_hash="b", thumbhash="c", histogram=HistogramData())
    curated = MediaMetadata(
        **{name: "x" for name in CURATED_TEXT_FIELDS if name != "genre"},
        latitude=1.0,
        longitude=2.0,
    )

    assert pending_stages(MediaMetadata(), ["exif", "fingerprint", "placeholder", "histogram"]) == [
        "exif",
        "fingerprint",
        "placeholder",
        "histogram",
    ]
    assert pending_stages(complete, ["fingerprint", "placeholder", "histogram"]) == []
    assert pending_stages(MediaMetadata(sha256="a"), ["fingerprint"]) == ["fingerprint"]
    assert pending_stages(curated, ["exif"]) == []


def test_backfill_fills_gaps_once(session, settings, png_bytes, tmp_path: Path) -> None:
    path = tmp_path / "plain.png"
    path.write_bytes(png_bytes((40, 30), (30, 60, 90)))
    asset = IngestionPipeline(settings=settings).ingest(session, path.read_bytes(), source_url=path.as_uri())

    metadata = MediaMetadata.from_json(asset.metadata_json)
    metadata.thumbhash = None
    metadata.histogram = None
    asset.metadata_json = metadata.to_json()
    session.commit()

    fetcher = _RecordingFetcher()
    reprocessor = BatchReprocessor(fetcher, settings=settings)
    first = reprocessor.run(session, stages=["placeholder", "histogram"])
    second = reprocessor.run(session, stages=["placeholder", "histogram"])

    assert first.to_dict() == {"total": 1, "updated": 1, "skipped": 0, "failed": 0}
    assert second.to_dict() == {"total": 1, "updated": 0, "skipped": 1, "failed": 0}
    assert fetcher.calls == [path.as_uri()]
    restored = MediaMetadata.from_json(asset.metadata_json)
    assert restored.thumbhash is not None
    assert restored.histogram is not None


def test_backfill_populates_bare_records(session, settings, tmp_path: Path) -> None:
    path = tmp_path / "camera.jpg"
    path.write_bytes(camera_jpeg())
    asset = _bare_asset(session, path.as_uri())

    summary = BatchReprocessor(_RecordingFetcher(), settings=settings).run(session)

    assert summary.updated == 1
    session.refresh(asset)
    assert asset.camera_model == "Sony A7IV"
    assert asset.iso == "400"
    assert (asset.width, asset.height) == (64, 48)
    metadata = MediaMetadata.from_json(asset.metadata_json)
    assert metadata.file_size == path.stat().st_size
    assert metadata.sha256 is not None
    assert metadata.processing_status is None


def test_unreachable_and_invalid_sources_are_skipped(session, settings, tmp_path: Path) -> None:
    garbage = tmp_path / "garbage.jpg"
    garbage.write_bytes(b"not an image")
    _bare_asset(session, (tmp_path / "missing.jpg").as_uri())
    _bare_asset(session, garbage.as_uri())
    _bare_asset(session, "")

    summary = BatchReprocessor(_RecordingFetcher(), settings=settings).run(session)

    assert summary.to_dict() == {"total": 3, "updated": 0, "skipped": 3, "failed": 0}


def test_record_errors_do_not_stop_the_batch(session, settings, tmp_path: Path) -> None:
    path = tmp_path / "camera.jpg"
    path.write_bytes(camera_jpeg())
    broken = _bare_asset(session, "https://cdn.example.com/broken.jpg")
    healthy = _bare_asset(session, path.as_uri())
    fetcher = _RecordingFetcher(failures={broken.image_url: RuntimeError("decoder crashed")})

    summary = BatchReprocessor(fetcher, settings=settings).run(session)

    assert summary.to_dict() == {"total": 2, "updated": 1, "skipped": 0, "failed": 1}
    assert fetcher.calls == [broken.image_url, healthy.image_url]


def test_fetch_errors_count_as_skipped(session, settings) -> None:
    asset = _bare_asset(session, "https://cdn.example.com/gone.jpg")
    fetcher = _RecordingFetcher(failures={asset.image_url: FetchError(asset.image_url, "HTTP 404")})

    summary = BatchReprocessor(fetcher, settings=settings).run(session)

    assert summary.skipped == 1
    assert summary.failed == 0


def test_asset_id_filter_and_stage_validation(session, settings, tmp_path: Path) -> None:
    path = tmp_path / "camera.jpg"
    path.write_bytes(camera_jpeg())
    _bare_asset(session, path.as_uri())
    target = _bare_asset(session, path.as_uri())
    fetcher = _RecordingFetcher()
    reprocessor = BatchReprocessor(fetcher, settings=settings)

    summary = reprocessor.run(session, asset_ids=[target.id])

    assert summary.total == 1
    assert len(fetcher.calls) == 1
    with pytest.raises(ValueError):
        reprocessor.run(session, stages=["thumbnails"])
