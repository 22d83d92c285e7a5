"""Shared helpers for database URLs."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine.url import make_url


def normalize_database_url(target: str | Path) -> str:
    """Normalize database URL or path inputs to absolute URLs.

    Bare paths and ``Path`` objects become SQLite URLs; relative SQLite
    database paths are resolved against the working directory. Other URLs are
    returned unchanged.
    """

    if isinstance(target, Path):
        return f"sqlite:///{target.resolve()}"

    raw = str(target).strip()
    if not raw:
        raise ValueError("database target cannot be empty")

    if "://" not in raw:
        return f"sqlite:///{Path(raw).resolve()}"

    url = make_url(raw)
    if url.drivername.startswith("sqlite"):
        database = url.database or ""
        if database in {":memory:", ""}:
            return raw
        db_path = Path(database)
        if not db_path.is_absolute():
            db_path = (Path.cwd() / db_path).resolve()
        return url.set(database=str(db_path)).render_as_string(hide_password=False)

    return raw


def sqlite_path_from_target(target: str | Path) -> Path | None:
    """Return the absolute file path behind a SQLite target, or ``None`` for other targets."""

    normalized = make_url(normalize_database_url(target))
    if not normalized.drivername.startswith("sqlite"):
        return None
    database = normalized.database or ""
    if database in {"", ":memory:"}:
        return None
    return Path(database)


__all__ = ["normalize_database_url", "sqlite_path_from_target"]
