"""Fan-out of the independent derivation stages over a thread pool."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Final

from liora_gallery.config import PipelineConfig
from liora_gallery.exif import extract_exif_metadata
from liora_gallery.hasher import compute_content_hash, compute_perceptual_hash
from liora_gallery.histogram import compute_histogram
from liora_gallery.imaging import open_image
from liora_gallery.metadata import HistogramData, MediaMetadata
from liora_gallery.placeholder import build_placeholder
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "derivation"})

STAGE_EXIF: Final[str] = "exif"
STAGE_FINGERPRINT: Final[str] = "fingerprint"
STAGE_PLACEHOLDER: Final[str] = "placeholder"
STAGE_HISTOGRAM: Final[str] = "histogram"
ALL_STAGES: Final[tuple[str, ...]] = (STAGE_EXIF, STAGE_FINGERPRINT, STAGE_PLACEHOLDER, STAGE_HISTOGRAM)


@dataclass
class DerivationResults:
    """Optional outputs of one derivation run; ``None`` means not computed or failed."""

    file_size: int
    sha256: str | None = None
    perceptual_hash: str | None = None
    thumbhash: str | None = None
    histogram: HistogramData | None = None
    exif: MediaMetadata | None = None


def validate_stages(stages: Iterable[str]) -> tuple[str, ...]:
    """Return ``stages`` de-duplicated in canonical order, rejecting unknown names."""

    requested = set(stages)
    unknown = requested.difference(ALL_STAGES)
    if unknown:
        raise ValueError(f"unknown derivation stages: {', '.join(sorted(unknown))}")
    return tuple(stage for stage in ALL_STAGES if stage in requested)


def _perceptual_hash(data: bytes, hash_size: int) -> str | None:
    try:
        return compute_perceptual_hash(open_image(data), hash_size=hash_size)
    except Exception as exc:
        LOGGER.warning("perceptual_hash_failed", extra={"size_bytes": len(data), "error": str(exc)})
        return None


def _fingerprint(data: bytes, hash_size: int) -> tuple[str, str | None]:
    return compute_content_hash(data), _perceptual_hash(data, hash_size)


def run_derivations(
    data: bytes,
    *,
    stages: Iterable[str] = ALL_STAGES,
    config: PipelineConfig | None = None,
) -> DerivationResults:
    """Run the requested derivation stages concurrently over ``data``.

    Every stage decodes its own copy of the bytes, so tasks share no mutable
    state. Stage failures are logged and leave the corresponding result empty;
    this function never raises for a bad image.
    """

    cfg = config or PipelineConfig()
    selected = validate_stages(stages)
    results = DerivationResults(file_size=len(data))
    if not selected:
        return results

    tasks: dict[str, Callable[[], Any]] = {
        STAGE_EXIF: lambda: extract_exif_metadata(data),
        STAGE_FINGERPRINT: lambda: _fingerprint(data, cfg.perceptual_hash_size),
        STAGE_PLACEHOLDER: lambda: build_placeholder(data, cfg.placeholder_max_side),
        STAGE_HISTOGRAM: lambda: compute_histogram(data, cfg.histogram_max_side),
    }

    workers = max(1, min(cfg.derivation_workers, len(selected)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="derive") as executor:
        futures = {stage: executor.submit(tasks[stage]) for stage in selected}

    outcomes: dict[str, Any] = {}
    for stage, future in futures.items():
        try:
            outcomes[stage] = future.result()
        except Exception as exc:
            LOGGER.warning("derivation_stage_failed", extra={"stage": stage, "error": str(exc)})
            outcomes[stage] = None

    if outcomes.get(STAGE_FINGERPRINT) is not None:
        results.sha256, results.perceptual_hash = outcomes[STAGE_FINGERPRINT]
    results.thumbhash = outcomes.get(STAGE_PLACEHOLDER)
    results.histogram = outcomes.get(STAGE_HISTOGRAM)
    results.exif = outcomes.get(STAGE_EXIF)

    LOGGER.debug(
        "derivations_complete",
        extra={
            "stages": list(selected),
            "size_bytes": results.file_size,
            "has_sha256": results.sha256 is not None,
            "has_phash": results.perceptual_hash is not None,
            "has_thumbhash": results.thumbhash is not None,
            "has_histogram": results.histogram is not None,
            "has_exif": results.exif is not None,
        },
    )
    return results


__all__ = [
    "ALL_STAGES",
    "DerivationResults",
    "STAGE_EXIF",
    "STAGE_FINGERPRINT",
    "STAGE_HISTOGRAM",
    "STAGE_PLACEHOLDER",
    "run_derivations",
    "validate_stages",
]
