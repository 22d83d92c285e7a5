"""CLI entrypoint for backfilling derived metadata across stored assets."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from liora_gallery.backfill import BatchReprocessor
from liora_gallery.classifier import GenreClassifier, reclassify_missing_genres
from liora_gallery.config import load_settings
from liora_gallery.db import open_primary_session
from liora_gallery.derivation import ALL_STAGES, validate_stages
from liora_gallery.errors import ClassificationError
from liora_gallery.fetcher import HttpImageFetcher
from utils.logging import get_logger

LOGGER = get_logger(__name__)

app = typer.Typer(help="Backfill EXIF, fingerprints, placeholders, histograms and genres.")


@app.command("run")
def run(
    stage: Optional[list[str]] = typer.Option(
        None,
        "--stage",
        help=f"Stage to backfill ({', '.join(ALL_STAGES)}). May be given multiple times; defaults to all.",
    ),
    asset_id: Optional[list[int]] = typer.Option(
        None,
        "--asset-id",
        help="Restrict the run to these asset ids. May be given multiple times.",
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Database URL or path. Defaults to databases.primary_url in settings.yaml.",
    ),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Alternate settings.yaml to load."),
) -> None:
    """Fill empty derived and EXIF fields; safe to re-run."""

    try:
        stages = validate_stages(stage or ALL_STAGES)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--stage") from exc

    settings = load_settings(settings_path)
    with HttpImageFetcher(settings.fetcher) as fetcher, open_primary_session(
        db or settings.databases.primary_url
    ) as session:
        summary = BatchReprocessor(fetcher, settings=settings).run(session, stages=stages, asset_ids=asset_id or None)

    typer.echo(json.dumps(summary.to_dict()))


@app.command("genres")
def genres(
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Database URL or path. Defaults to databases.primary_url in settings.yaml.",
    ),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Alternate settings.yaml to load."),
) -> None:
    """Classify assets whose genre is still empty."""

    settings = load_settings(settings_path)
    if not settings.classifier.enabled:
        LOGGER.warning("classifier_disabled", extra={"hint": "set classifier.enabled in settings.yaml"})
        raise typer.Exit(code=1)

    try:
        classifier = GenreClassifier(settings.classifier)
    except ClassificationError as exc:
        LOGGER.error("classifier_init_error", extra={"error": str(exc)})
        raise typer.Exit(code=1) from exc

    with HttpImageFetcher(settings.fetcher) as fetcher, open_primary_session(
        db or settings.databases.primary_url
    ) as session:
        summary = reclassify_missing_genres(session, fetcher, classifier)

    typer.echo(json.dumps(summary.to_dict()))


def main() -> None:
    """Entrypoint used when invoking the module as a script."""

    app()


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
