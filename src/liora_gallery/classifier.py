"""Optional photography-genre classification through an OpenAI-compatible endpoint."""

from __future__ import annotations

import base64
import json
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from openai import OpenAI, OpenAIError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from liora_gallery.backfill import BackfillSummary
from liora_gallery.config import ClassifierConfig
from liora_gallery.db import MediaAsset
from liora_gallery.errors import ClassificationError, FetchError
from liora_gallery.fetcher import ImageFetcher
from liora_gallery.fusion import fuse_metadata
from liora_gallery.imaging import open_image
from liora_gallery.metadata import MediaMetadata
from liora_gallery.pipeline import apply_fusion_result, asset_metadata
from liora_gallery.thumbnailing import encode_webp
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "classifier"})

_PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_SYSTEM_PROMPT = """
You classify photographs by genre for a photo gallery.
Look only at the image. Answer with a single JSON object:
{"primary_category": "<genre>", "secondary_categories": ["<genre>", ...],
 "confidence": <number between 0 and 1>, "reason": "<one short sentence>"}
Use common photography genres such as Landscape, Portrait, Street, Architecture,
Wildlife, Macro, Night, Food, Sports, Travel, Documentary, Abstract or Still life.
"""

USER_INSTRUCTION = "Classify this photo and return JSON only."


@dataclass
class GenreClassification:
    """Parsed classifier reply."""

    primary: str
    secondary: list[str] = field(default_factory=list)
    confidence: float | None = None
    reason: str = ""
    model: str = ""
    updated_at: float = field(default_factory=time.time)


def parse_classification(raw: str | None, model: str) -> GenreClassification | None:
    """Parse a JSON classification reply.

    Returns ``None`` for invalid JSON or when the reply carries no usable
    field at all. Confidence is clamped to ``[0, 1]``.
    """

    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None

    primary_raw = parsed.get("primary_category")
    primary = primary_raw.strip() if isinstance(primary_raw, str) else ""

    secondary_raw = parsed.get("secondary_categories")
    secondary: list[str] = []
    if isinstance(secondary_raw, list):
        secondary = [entry.strip() for entry in secondary_raw if isinstance(entry, str) and entry.strip()]

    confidence_raw = parsed.get("confidence")
    confidence: float | None = None
    if isinstance(confidence_raw, (int, float)) and not isinstance(confidence_raw, bool):
        if math.isfinite(confidence_raw):
            confidence = min(1.0, max(0.0, float(confidence_raw)))

    reason_raw = parsed.get("reason")
    reason = reason_raw.strip() if isinstance(reason_raw, str) else ""

    if not primary and not secondary and confidence is None and not reason:
        return None
    return GenreClassification(primary=primary, secondary=secondary, confidence=confidence, reason=reason, model=model)


def derive_genre_label(result: GenreClassification | None) -> str:
    """Return the primary genre, else the first secondary genre, else ``""``."""

    if result is None:
        return ""
    if result.primary.strip():
        return result.primary.strip()
    if result.secondary:
        return result.secondary[0].strip()
    return ""


def _load_prompt(prompt_path: str) -> str:
    if prompt_path:
        path = Path(prompt_path)
        if not path.is_absolute():
            path = _PROJECT_ROOT / path
        if path.is_file():
            return path.read_text(encoding="utf-8").strip()
        LOGGER.warning("classifier_prompt_missing", extra={"path": str(path)})
    return DEFAULT_SYSTEM_PROMPT.strip()


class GenreClassifier:
    """Thin wrapper around an OpenAI-compatible vision chat endpoint."""

    def __init__(self, config: ClassifierConfig, client: Any | None = None) -> None:
        self._config = config
        self._prompt = _load_prompt(config.prompt_path)
        if client is not None:
            self._client = client
            return

        api_key = config.resolved_api_key()
        if not api_key:
            raise ClassificationError(f"API key is not configured; set {config.api_key_env}")
        self._client = OpenAI(base_url=config.base_url or None, api_key=api_key)

    def _build_messages(self, image_data_url: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": self._prompt},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_INSTRUCTION},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            },
        ]

    def classify_bytes(self, data: bytes) -> GenreClassification | None:
        """Classify raw image bytes.

        Raises:
            ClassificationError: If the payload is too large, cannot be decoded,
                or the endpoint call fails.
        """

        if len(data) > self._config.max_download_bytes:
            raise ClassificationError(
                f"image is {len(data)} bytes, limit is {self._config.max_download_bytes}"
            )

        try:
            payload = encode_webp(open_image(data), self._config.max_side, quality=82)
        except (OSError, ValueError) as exc:
            raise ClassificationError(f"image cannot be prepared for classification: {exc}") from exc

        data_url = f"data:image/webp;base64,{base64.b64encode(payload).decode('ascii')}"
        try:
            resp = self._client.chat.completions.create(
                model=self._config.model,
                messages=self._build_messages(data_url),
                timeout=self._config.request_timeout,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            LOGGER.error("classifier_request_error", extra={"model": self._config.model, "error": str(exc)})
            raise ClassificationError(str(exc)) from exc

        content = resp.choices[0].message.content or ""
        result = parse_classification(content, self._config.model)
        if result is None:
            LOGGER.warning("classifier_unparseable_reply", extra={"model": self._config.model})
        return result


def reclassify_missing_genres(
    session: Session,
    fetcher: ImageFetcher,
    classifier: GenreClassifier,
) -> BackfillSummary:
    """Fill ``genre`` for every asset whose genre is still empty, in id order."""

    ids = list(
        session.execute(
            select(MediaAsset.id).where(func.trim(MediaAsset.genre) == "").order_by(MediaAsset.id)
        ).scalars()
    )
    summary = BackfillSummary(total=len(ids))
    LOGGER.info("reclassify_start", extra={"total": summary.total})

    for processed, asset_id in enumerate(ids, start=1):
        asset = session.get(MediaAsset, asset_id)
        if asset is None:
            summary.skipped += 1
            continue
        try:
            data = fetcher.fetch(asset.image_url)
            label = derive_genre_label(classifier.classify_bytes(data))
            if not label:
                summary.skipped += 1
                continue

            fused = fuse_metadata(asset_metadata(asset), None, MediaMetadata(genre=label))
            if apply_fusion_result(asset, fused):
                asset.updated_at = time.time()
                session.commit()
                summary.updated += 1
                LOGGER.info(
                    "reclassify_record_updated",
                    extra={"asset_id": asset_id, "genre": label, "processed": processed, "total": summary.total},
                )
            else:
                summary.skipped += 1
        except FetchError as exc:
            summary.skipped += 1
            LOGGER.warning("reclassify_fetch_failed", extra={"asset_id": asset_id, "reason": exc.reason})
        except Exception as exc:
            session.rollback()
            summary.failed += 1
            LOGGER.error("reclassify_record_error", extra={"asset_id": asset_id, "error": str(exc)})

    LOGGER.info("reclassify_complete", extra=summary.to_dict())
    return summary


__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "GenreClassification",
    "GenreClassifier",
    "derive_genre_label",
    "parse_classification",
    "reclassify_missing_genres",
]
