from __future__ import annotations

from pathlib import Path

import pytest

from liora_gallery.config import load_settings


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "absent.yaml")

    assert settings.databases.primary_url == "sqlite:///data/gallery.db"
    assert settings.pipeline.perceptual_hash_size == 8
    assert settings.classifier.enabled is False


def test_values_override_defaults_and_bad_types_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "\n".join(
            [
                "databases:",
                "  primary_url: postgresql+psycopg://gallery@localhost/gallery",
                "pipeline:",
                "  derivation_workers: 2",
                "  histogram_max_side: big",
                "  placeholder_max_side: -5",
                "fetcher:",
                "  timeout_seconds: 5",
                "  max_bytes: true",
                "classifier:",
                "  enabled: true",
                "  base_url: http://localhost:8000/v1",
                "  request_timeout: 12.5",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.databases.primary_url == "postgresql+psycopg://gallery@localhost/gallery"
    assert settings.pipeline.derivation_workers == 2
    assert settings.pipeline.histogram_max_side == 256
    assert settings.pipeline.placeholder_max_side == 100
    assert settings.fetcher.timeout_seconds == 5.0
    assert settings.fetcher.max_bytes == 40 * 1024 * 1024
    assert settings.classifier.enabled is True
    assert settings.classifier.base_url == "http://localhost:8000/v1"
    assert settings.classifier.request_timeout == 12.5


def test_environment_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "alt.yaml"
    path.write_text("pipeline:\n  derivation_workers: 3\n", encoding="utf-8")
    monkeypatch.setenv("LIORA_GALLERY_SETTINGS", str(path))

    assert load_settings().pipeline.derivation_workers == 3


def test_non_mapping_document_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    assert load_settings(path).fetcher.user_agent == "liora-gallery-backfill/1.0"


def test_api_key_comes_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = load_settings("/nonexistent/settings.yaml")
    monkeypatch.setenv("LIORA_TEST_KEY", "  sk-test ")
    settings.classifier.api_key_env = "LIORA_TEST_KEY"

    assert settings.classifier.resolved_api_key() == "sk-test"
