"""Keyed processing-status store addressed by upload correlation id."""

from __future__ import annotations

from threading import Lock

from liora_gallery.metadata import PROCESSING_STATUSES

UNKNOWN_STATUS = "unknown"


class UploadStatusStore:
    """In-memory map from upload id to processing status, guarded by a mutex.

    One instance is created by the application and injected into every
    pipeline that reports status, so tests and workers never share state by
    accident.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._statuses: dict[str, str] = {}

    def set(self, upload_id: str, status: str) -> None:
        if status not in PROCESSING_STATUSES:
            raise ValueError(f"unsupported processing status: {status!r}")
        with self._lock:
            self._statuses[upload_id] = status

    def get(self, upload_id: str) -> str | None:
        with self._lock:
            return self._statuses.get(upload_id)


__all__ = ["UNKNOWN_STATUS", "UploadStatusStore"]
