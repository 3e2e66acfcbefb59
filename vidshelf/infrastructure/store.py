"""SQLite persistence for catalog records."""
from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Union

from vidshelf.domain.errors import RecordNotFound, StoreDuplicateKey, StorePersistenceFailed
from vidshelf.domain.models import VideoRecord, split_tags

_COLUMNS = ("path", "name", "thumbnail", "preview", "codec", "width", "height", "fps", "tags")


def ensure_tables(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS videos (
            path TEXT PRIMARY KEY,
            name TEXT,
            thumbnail TEXT,
            preview TEXT,
            codec TEXT,
            width INTEGER,
            height INTEGER,
            fps TEXT,
            tags TEXT
        )
        """
    )


def _row_to_record(row: sqlite3.Row) -> VideoRecord:
    return VideoRecord(
        path=row["path"],
        name=row["name"] or "",
        thumbnail_path=row["thumbnail"],
        preview_path=row["preview"],
        codec=row["codec"],
        width=row["width"],
        height=row["height"],
        fps=row["fps"],
        tags=row["tags"],
    )


def _record_params(record: VideoRecord) -> tuple:
    return (
        record.path,
        record.name,
        record.thumbnail_path,
        record.preview_path,
        record.codec,
        record.width,
        record.height,
        record.fps,
        record.tags,
    )


class RecordStore:
    """Keyed record store; `path` is the primary key.

    One connection is shared between threads and every statement runs under a
    lock, so `insert_if_absent` is atomic per path.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=20)
            self.conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self.conn.execute("PRAGMA journal_mode = WAL")
            ensure_tables(self.conn)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorePersistenceFailed(f"Cannot open catalog database {self.db_path}: {e}") from e

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def get_all(self) -> List[VideoRecord]:
        with self._lock:
            rows = self.conn.execute("SELECT * FROM videos ORDER BY rowid").fetchall()
        return [_row_to_record(row) for row in rows]

    def get(self, path: str) -> Optional[VideoRecord]:
        with self._lock:
            row = self.conn.execute("SELECT * FROM videos WHERE path = ?", (str(path),)).fetchone()
        return _row_to_record(row) if row else None

    def exists(self, path: str) -> bool:
        with self._lock:
            row = self.conn.execute("SELECT 1 FROM videos WHERE path = ?", (str(path),)).fetchone()
        return row is not None

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM videos").fetchone()[0]

    def insert(self, record: VideoRecord) -> None:
        """Inserts a new record; raises StoreDuplicateKey if the path is present."""
        sql = f"INSERT INTO videos ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))})"
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(sql, _record_params(record))
            except sqlite3.IntegrityError as e:
                raise StoreDuplicateKey(record.path) from e
            except sqlite3.Error as e:
                raise StorePersistenceFailed(f"Insert failed for {record.path}: {e}") from e

    def insert_if_absent(self, record: VideoRecord) -> bool:
        """Atomic check-and-insert; returns False when the path already existed."""
        sql = (
            f"INSERT INTO videos ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))}) "
            "ON CONFLICT(path) DO NOTHING"
        )
        with self._lock:
            try:
                with self.conn:
                    cursor = self.conn.execute(sql, _record_params(record))
            except sqlite3.Error as e:
                raise StorePersistenceFailed(f"Insert failed for {record.path}: {e}") from e
        return cursor.rowcount == 1

    def update_tags(self, path: str, tags: str) -> None:
        with self._lock:
            try:
                with self.conn:
                    cursor = self.conn.execute(
                        "UPDATE videos SET tags = ? WHERE path = ?", (tags, str(path))
                    )
            except sqlite3.Error as e:
                raise StorePersistenceFailed(f"Tag update failed for {path}: {e}") from e
        if cursor.rowcount == 0:
            raise RecordNotFound(str(path))

    def all_tags(self) -> List[str]:
        """Distinct trimmed tags across the catalog, sorted."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT tags FROM videos WHERE tags IS NOT NULL AND tags != ''"
            ).fetchall()
        tag_set = set()
        for row in rows:
            tag_set.update(split_tags(row["tags"]))
        return sorted(tag_set)
