"""CLI entrypoint for ingesting local image files into the gallery database."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Optional

import typer

from liora_gallery.config import load_settings
from liora_gallery.db import MediaAsset, open_primary_session
from liora_gallery.errors import IngestError
from liora_gallery.pipeline import IngestFields, IngestionPipeline
from utils.logging import get_logger

LOGGER = get_logger(__name__)

app = typer.Typer(help="Ingest local images into the Liora Gallery database.")


def _summarize(asset: MediaAsset) -> dict[str, object]:
    return {
        "id": asset.id,
        "title": asset.title,
        "image_url": asset.image_url,
        "width": asset.width,
        "height": asset.height,
        "camera_model": asset.camera_model,
        "lens_model": asset.lens_model,
        "aperture": asset.aperture,
        "shutter_speed": asset.shutter_speed,
        "iso": asset.iso,
        "capture_time": asset.capture_time,
        "metadata": json.loads(asset.metadata_json or "{}"),
    }


def _read(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        LOGGER.error("ingest_read_error", extra={"path": str(path), "error": str(exc)})
        raise typer.Exit(code=1) from exc


@app.command("run")
def run(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Image file to ingest."),
    title: Optional[str] = typer.Option(None, "--title", help="Display title for the new asset."),
    description: Optional[str] = typer.Option(None, "--description", help="Display description."),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Database URL or path. Defaults to databases.primary_url in settings.yaml.",
    ),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Alternate settings.yaml to load."),
) -> None:
    """Ingest one local image, recording its file:// URL as the source."""

    settings = load_settings(settings_path)
    pipeline = IngestionPipeline(settings=settings)
    upload_id = uuid.uuid4().hex
    data = _read(path)

    with open_primary_session(db or settings.databases.primary_url) as session:
        try:
            asset = pipeline.ingest(
                session,
                data,
                fields=IngestFields(title=title or path.stem, description=description),
                source_url=path.resolve().as_uri(),
                original_name=path.name,
                upload_id=upload_id,
            )
        except IngestError as exc:
            LOGGER.error("ingest_failed", extra={"path": str(path), "upload_id": upload_id, "error": str(exc)})
            raise typer.Exit(code=1) from exc
        typer.echo(json.dumps(_summarize(asset), ensure_ascii=False, indent=2))


@app.command("replace")
def replace(
    asset_id: int = typer.Argument(..., help="Id of the asset whose image is replaced."),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="New image file."),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Database URL or path. Defaults to databases.primary_url in settings.yaml.",
    ),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Alternate settings.yaml to load."),
) -> None:
    """Replace an asset's image and re-derive its descriptors."""

    settings = load_settings(settings_path)
    pipeline = IngestionPipeline(settings=settings)
    upload_id = uuid.uuid4().hex
    data = _read(path)

    with open_primary_session(db or settings.databases.primary_url) as session:
        try:
            asset = pipeline.replace_image(
                session,
                asset_id,
                data,
                source_url=path.resolve().as_uri(),
                original_name=path.name,
                upload_id=upload_id,
            )
        except IngestError as exc:
            LOGGER.error(
                "replace_failed",
                extra={"asset_id": asset_id, "path": str(path), "upload_id": upload_id, "error": str(exc)},
            )
            raise typer.Exit(code=1) from exc
        typer.echo(json.dumps(_summarize(asset), ensure_ascii=False, indent=2))


def main() -> None:
    """Entrypoint used when invoking the module as a script."""

    app()


if __name__ == "__main__":
    main()


__all__ = ["app", "main"]
