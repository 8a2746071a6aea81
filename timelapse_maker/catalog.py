"""Durable catalog of assembled timelapse videos."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol, Union

from timelapse_maker.errors import CatalogError
from timelapse_maker.models import ArtifactRecord


class CatalogRecorder(Protocol):
    """Persist artifact records, returning the generated identifier."""

    def insert_artifact(self, record: ArtifactRecord) -> int:
        ...


class SqliteCatalog:
    """Artifact catalog stored in a SQLite database file.

    Jobs run on scheduler worker threads, so the connection is shared across
    threads and every statement is serialized with a lock.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._closed = False
        try:
            if str(self.path) != ":memory:":
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS videos ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "name TEXT NOT NULL, "
                "type TEXT NOT NULL, "
                "file_path TEXT NOT NULL, "
                "uploaded INTEGER NOT NULL DEFAULT 0, "
                "created_at TEXT NOT NULL)"
            )
            self._conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise CatalogError(f"Unable to open catalog at {self.path}: {exc}") from exc

    def insert_artifact(self, record: ArtifactRecord) -> int:
        with self._lock:
            if self._closed:
                raise CatalogError(f"Catalog at {self.path} is closed")
            try:
                cursor = self._conn.execute(
                    "INSERT INTO videos (name, type, file_path, uploaded, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        record.display_name,
                        record.window_name,
                        str(record.absolute_path),
                        int(record.uploaded),
                        datetime.now().replace(microsecond=0).isoformat(),
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                message = f"Unable to insert {record.absolute_path}: {exc}"
                try:
                    self._conn.rollback()
                except sqlite3.Error as rollback_exc:
                    message = f"{message} (rollback failed: {rollback_exc})"
                raise CatalogError(message) from exc
            return int(cursor.lastrowid)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._conn.close()


__all__ = ["CatalogRecorder", "SqliteCatalog"]
