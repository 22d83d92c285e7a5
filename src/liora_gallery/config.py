"""Configuration loader and typed settings for the Liora Gallery ingestion pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class DatabaseConfig:
    """Database connection target for the gallery records."""

    primary_url: str = "sqlite:///data/gallery.db"


@dataclass
class PipelineConfig:
    """Knobs for the derivation stages shared by ingestion and backfill."""

    perceptual_hash_size: int = 8
    placeholder_max_side: int = 100
    histogram_max_side: int = 256
    derivation_workers: int = 4


@dataclass
class FetcherConfig:
    """Settings for fetching stored image bytes during backfill runs."""

    timeout_seconds: float = 30.0
    max_bytes: int = 40 * 1024 * 1024
    user_agent: str = "liora-gallery-backfill/1.0"


@dataclass
class ClassifierConfig:
    """Optional OpenAI-compatible genre classification."""

    enabled: bool = False
    model: str = "gpt-5-nano"
    base_url: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    prompt_path: str = ""
    max_side: int = 1024
    max_download_bytes: int = 40 * 1024 * 1024
    request_timeout: float = 60.0

    def resolved_api_key(self) -> str:
        """Return the API key from the configured environment variable, or ``""``."""

        return os.getenv(self.api_key_env, "").strip()


@dataclass
class Settings:
    """Top-level application settings."""

    databases: DatabaseConfig = field(default_factory=DatabaseConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)


def _project_root() -> Path:
    """Best-effort detection of the repository root for config discovery."""

    module_path = Path(__file__).resolve()
    try:
        return module_path.parents[2]
    except IndexError:  # pragma: no cover
        return module_path.parent


def _default_settings_paths() -> list[Path]:
    """Return candidate settings paths ordered by preference."""

    candidates: list[Path] = []
    for candidate in (
        (Path.cwd() / "config" / "settings.yaml").resolve(),
        (_project_root() / "config" / "settings.yaml").resolve(),
    ):
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


def _resolve_settings_path(settings_path: Path | str | None) -> Path:
    """Determine which settings file to load, honoring overrides."""

    if settings_path:
        return Path(settings_path).expanduser().resolve()

    env_override = os.getenv("LIORA_GALLERY_SETTINGS")
    if env_override:
        return Path(env_override).expanduser().resolve()

    candidates = _default_settings_paths()
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def load_settings(settings_path: Path | str | None = None) -> Settings:
    """Load application settings from a YAML file, falling back to defaults.

    A missing file, a non-mapping document, or values of the wrong type all
    leave the corresponding defaults in place.
    """

    path = _resolve_settings_path(settings_path)
    settings = Settings()

    if not path.exists() or not path.is_file():
        return settings

    with path.open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}

    if not isinstance(raw, dict):
        return settings

    databases_raw = _as_dict(raw.get("databases"))
    if isinstance(databases_raw.get("primary_url"), str):
        settings.databases.primary_url = databases_raw["primary_url"]

    pipeline_raw = _as_dict(raw.get("pipeline"))
    pipeline_cfg = settings.pipeline
    for key in (
        "perceptual_hash_size",
        "placeholder_max_side",
        "histogram_max_side",
        "derivation_workers",
    ):
        value = pipeline_raw.get(key)
        if _is_int(value) and value > 0:
            setattr(pipeline_cfg, key, value)

    fetcher_raw = _as_dict(raw.get("fetcher"))
    fetcher_cfg = settings.fetcher
    if _is_number(fetcher_raw.get("timeout_seconds")):
        fetcher_cfg.timeout_seconds = float(fetcher_raw["timeout_seconds"])
    if _is_int(fetcher_raw.get("max_bytes")):
        fetcher_cfg.max_bytes = fetcher_raw["max_bytes"]
    if isinstance(fetcher_raw.get("user_agent"), str):
        fetcher_cfg.user_agent = fetcher_raw["user_agent"]

    classifier_raw = _as_dict(raw.get("classifier"))
    classifier_cfg = settings.classifier
    if isinstance(classifier_raw.get("enabled"), bool):
        classifier_cfg.enabled = classifier_raw["enabled"]
    for key in ("model", "base_url", "api_key_env", "prompt_path"):
        if isinstance(classifier_raw.get(key), str):
            setattr(classifier_cfg, key, classifier_raw[key])
    if _is_int(classifier_raw.get("max_side")):
        classifier_cfg.max_side = classifier_raw["max_side"]
    if _is_int(classifier_raw.get("max_download_bytes")):
        classifier_cfg.max_download_bytes = classifier_raw["max_download_bytes"]
    if _is_number(classifier_raw.get("request_timeout")):
        classifier_cfg.request_timeout = float(classifier_raw["request_timeout"])

    return settings


__all__ = [
    "ClassifierConfig",
    "DatabaseConfig",
    "FetcherConfig",
    "PipelineConfig",
    "Settings",
    "load_settings",
]
