from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from liora_gallery.dev import backfill as backfill_cli
from liora_gallery.dev import ingest as ingest_cli
from tests.utils.images import camera_jpeg

runner = CliRunner()


def _common_options(tmp_path: Path) -> list[str]:
    return ["--db", str(tmp_path / "gallery.db"), "--settings", str(tmp_path / "absent.yaml")]


def test_ingest_then_backfill_commands(tmp_path: Path) -> None:
    image = tmp_path / "sunset.jpg"
    image.write_bytes(camera_jpeg())

    ingested = runner.invoke(ingest_cli.app, ["run", str(image), *_common_options(tmp_path)])

    assert ingested.exit_code == 0, ingested.output
    summary = json.loads(ingested.stdout)
    assert summary["title"] == "sunset"
    assert summary["camera_model"] == "Sony A7IV"
    assert summary["image_url"] == image.resolve().as_uri()

    backfilled = runner.invoke(backfill_cli.app, ["run", "--stage", "placeholder", *_common_options(tmp_path)])

    assert backfilled.exit_code == 0, backfilled.output
    assert json.loads(backfilled.stdout) == {"total": 1, "updated": 0, "skipped": 1, "failed": 0}


def test_ingest_rejects_invalid_image(tmp_path: Path) -> None:
    image = tmp_path / "broken.jpg"
    image.write_bytes(b"not an image")

    result = runner.invoke(ingest_cli.app, ["run", str(image), *_common_options(tmp_path)])

    assert result.exit_code == 1


def test_replace_unknown_asset_exits_nonzero(tmp_path: Path) -> None:
    image = tmp_path / "sunset.jpg"
    image.write_bytes(camera_jpeg())

    result = runner.invoke(ingest_cli.app, ["replace", "42", str(image), *_common_options(tmp_path)])

    assert result.exit_code == 1


def test_backfill_rejects_unknown_stage(tmp_path: Path) -> None:
    result = runner.invoke(backfill_cli.app, ["run", "--stage", "faces", *_common_options(tmp_path)])

    assert result.exit_code == 2


def test_genres_requires_enabled_classifier(tmp_path: Path) -> None:
    result = runner.invoke(backfill_cli.app, ["genres", *_common_options(tmp_path)])

    assert result.exit_code == 1
