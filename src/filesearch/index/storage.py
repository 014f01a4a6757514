"""SQLite metadata store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List

from filesearch.models import FileRecord, SearchFilters
from filesearch.utils.files import display_path
from filesearch.utils.text import normalize_extension

LOGGER = logging.getLogger(__name__)

SORT_COLUMNS = {
    "name": "name",
    "extension": "extension",
    "size": "size",
    "last_modified": "last_modified",
    "lastModified": "last_modified",
    "indexed_at": "indexed_at",
    "indexedAt": "indexed_at",
}

_COLUMNS = "id, path, name, extension, size, last_modified, indexed_at, sha256"

_UPSERT_SQL = """
INSERT INTO files(path, name, extension, size, last_modified, indexed_at, sha256)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
    name = excluded.name,
    extension = excluded.extension,
    size = excluded.size,
    last_modified = excluded.last_modified,
    indexed_at = excluded.indexed_at,
    sha256 = COALESCE(excluded.sha256, files.sha256)
"""


class StoreError(Exception):
    """Raised when the metadata store cannot complete a read or write."""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        id=row["id"],
        path=Path(row["path"]),
        name=row["name"],
        extension=row["extension"],
        size=row["size"],
        last_modified=row["last_modified"],
        indexed_at=row["indexed_at"],
        sha256=row["sha256"],
    )


class SQLiteMetadataStore:
    """Persistence layer for file records.

    Writes go through a single connection guarded by a lock and become
    durable on :meth:`commit`. Reads use a second, independent connection so
    queries never wait on a running scan; they only see committed data.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._write_lock = threading.RLock()
        self._read_lock = threading.Lock()
        self._pending = 0
        try:
            self._conn = self._connect()
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._ensure_schema()
            self._read_conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to open index at {self.db_path}: {exc}") from exc

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def pending_writes(self) -> int:
        return self._pending

    def close(self) -> None:
        with self._write_lock:
            try:
                self._conn.commit()
            except sqlite3.Error as exc:
                LOGGER.warning("Final commit on close failed: %s", exc)
            finally:
                self._pending = 0
                self._conn.close()
        with self._read_lock:
            self._read_conn.close()

    def __enter__(self) -> "SQLiteMetadataStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock:
            try:
                yield self._conn
                self._conn.commit()
                self._pending = 0
            except Exception:
                self._conn.rollback()
                self._pending = 0
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS files (
                    id INTEGER PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    extension TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    last_modified INTEGER NOT NULL,
                    indexed_at INTEGER NOT NULL,
                    sha256 TEXT
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_files_name ON files(name)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_files_ext ON files(extension)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_files_size ON files(size)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_files_lastmod ON files(last_modified)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_files_sha ON files(sha256)")

    def upsert(self, record: FileRecord) -> None:
        """Insert or update a record keyed by path.

        A record without a hash keeps the previously stored one. The write is
        pending until :meth:`commit`.
        """
        params = (
            str(record.path),
            record.name,
            record.extension,
            record.size,
            record.last_modified,
            record.indexed_at,
            record.sha256,
        )
        with self._write_lock:
            try:
                self._conn.execute(_UPSERT_SQL, params)
            except (sqlite3.Error, ValueError, OverflowError) as exc:
                # ValueError covers paths with bytes that are not valid UTF-8
                raise StoreError(f"Unable to store {display_path(record.path)}: {exc}") from exc
            self._pending += 1

    def commit(self) -> None:
        with self._write_lock:
            try:
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"Commit failed: {exc}") from exc
            LOGGER.debug("Committed %d pending writes", self._pending)
            self._pending = 0

    def _query(self, sql: str, params: tuple | list = ()) -> List[FileRecord]:
        with self._read_lock:
            try:
                rows = self._read_conn.execute(sql, params).fetchall()
            except (sqlite3.Error, ValueError, OverflowError) as exc:
                raise StoreError(f"Query failed: {exc}") from exc
        return [_row_to_record(row) for row in rows]

    def search(
        self,
        filters: SearchFilters | None = None,
        *,
        sort_key: str = "name",
        descending: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[FileRecord]:
        """Return one page of records matching every given filter.

        Ties on the sort column are broken by path so pages do not overlap.
        """
        column = SORT_COLUMNS.get(sort_key)
        if column is None:
            raise ValueError(f"Unsupported sort key: {sort_key!r}")
        if limit <= 0:
            raise ValueError("limit must be positive")
        if offset < 0:
            raise ValueError("offset must not be negative")

        filters = filters or SearchFilters()
        clauses: List[str] = []
        params: List[Any] = []
        if filters.name:
            clauses.append("name LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(filters.name)}%")
        extension = normalize_extension(filters.extension)
        if extension:
            clauses.append("extension = ?")
            params.append(extension)
        if filters.size_min is not None:
            clauses.append("size >= ?")
            params.append(filters.size_min)
        if filters.size_max is not None:
            clauses.append("size <= ?")
            params.append(filters.size_max)
        if filters.modified_min is not None:
            clauses.append("last_modified >= ?")
            params.append(filters.modified_min)
        if filters.modified_max is not None:
            clauses.append("last_modified <= ?")
            params.append(filters.modified_max)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if descending else "ASC"
        sql = (
            f"SELECT {_COLUMNS} FROM files{where}"
            f" ORDER BY {column} {direction}, path ASC LIMIT ? OFFSET ?"
        )
        params.extend([limit, offset])
        return self._query(sql, params)

    def recent(self, limit: int = 50) -> List[FileRecord]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        return self._query(
            f"SELECT {_COLUMNS} FROM files ORDER BY indexed_at DESC, path ASC LIMIT ?",
            (limit,),
        )

    def duplicates(self) -> List[FileRecord]:
        """Return records sharing a content hash and size with another record."""
        return self._query(
            """
            SELECT f.id, f.path, f.name, f.extension, f.size, f.last_modified,
                   f.indexed_at, f.sha256
            FROM files f
            JOIN (
                SELECT sha256, size FROM files
                WHERE sha256 IS NOT NULL
                GROUP BY sha256, size
                HAVING COUNT(*) > 1
            ) d ON f.sha256 = d.sha256 AND f.size = d.size
            ORDER BY f.size DESC, f.name ASC, f.path ASC
            """
        )

    def get(self, path: Path) -> FileRecord | None:
        records = self._query(
            f"SELECT {_COLUMNS} FROM files WHERE path = ?", (str(path),)
        )
        return records[0] if records else None

    def count(self) -> int:
        with self._read_lock:
            try:
                row = self._read_conn.execute("SELECT COUNT(*) FROM files").fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc
        return int(row[0])
