"""SQLAlchemy schema for gallery records and session management."""

from __future__ import annotations

import time
from pathlib import Path
from threading import Lock
from typing import Any

from sqlalchemy import Float, Index, Integer, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from liora_gallery.db_helpers import normalize_database_url, sqlite_path_from_target
from utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class MediaAsset(Base):
    """One gallery image with flattened curated fields and the extended metadata blob."""

    __tablename__ = "media_asset"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str] = mapped_column(String, nullable=False, default="")
    original_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    width: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    camera_model: Mapped[str] = mapped_column(String, nullable=False, default="")
    lens_model: Mapped[str] = mapped_column(String, nullable=False, default="")
    aperture: Mapped[str] = mapped_column(String, nullable=False, default="")
    focal_length: Mapped[str] = mapped_column(String, nullable=False, default="")
    iso: Mapped[str] = mapped_column(String, nullable=False, default="")
    shutter_speed: Mapped[str] = mapped_column(String, nullable=False, default="")
    capture_time: Mapped[str] = mapped_column(String, nullable=False, default="")
    location: Mapped[str] = mapped_column(String, nullable=False, default="")
    location_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    genre: Mapped[str] = mapped_column(String, nullable=False, default="")
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[float] = mapped_column(Float, nullable=False, default=time.time)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False, default=time.time)

    __table_args__ = (
        Index("idx_media_asset_camera_model", "camera_model"),
        Index("idx_media_asset_genre", "genre"),
    )


_ENGINE_CACHE: dict[str, Engine] = {}
_ENGINE_LOCK = Lock()


def _ensure_parent_directory(path: Path) -> None:
    """Ensure the parent directory for a database file exists."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.error("db_parent_directory_error", extra={"path": str(path), "error": str(exc)})
        raise


def _get_engine(target: str | Path) -> Engine:
    """Return a cached SQLAlchemy engine for the provided target, creating schema if needed."""

    normalized = normalize_database_url(target)
    engine = _ENGINE_CACHE.get(normalized)
    if engine is not None:
        return engine

    with _ENGINE_LOCK:
        engine = _ENGINE_CACHE.get(normalized)
        if engine is not None:
            return engine

        sa_url = make_url(normalized)
        is_sqlite = sa_url.drivername.startswith("sqlite")

        engine_kwargs: dict[str, object] = {}
        if is_sqlite:
            db_path = sqlite_path_from_target(normalized)
            if db_path is not None:
                _ensure_parent_directory(db_path)
            engine_kwargs["connect_args"] = {"timeout": 30.0}
        else:
            engine_kwargs["pool_pre_ping"] = True

        engine = create_engine(normalized, **engine_kwargs)

        if is_sqlite:

            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:  # type: ignore[override]
                """Configure SQLite for concurrent readers during long backfills."""

                cursor = dbapi_connection.cursor()
                try:
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA busy_timeout = 30000")
                finally:
                    cursor.close()

        try:
            Base.metadata.create_all(engine)
        except OperationalError as exc:
            # Another process may create the table between SQLite's existence
            # check and the CREATE TABLE statement.
            message = str(exc).lower()
            if "already exists" in message:
                LOGGER.info("db_create_all_table_exists_race", extra={"target": normalized, "error": str(exc)})
            else:
                raise

        _ENGINE_CACHE[normalized] = engine
        return engine


def open_primary_session(target: str | Path) -> Session:
    """Open a SQLAlchemy session for the gallery database."""

    engine = _get_engine(target)
    return Session(engine)


__all__ = ["Base", "MediaAsset", "open_primary_session"]
