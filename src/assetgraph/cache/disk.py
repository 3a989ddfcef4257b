"""Persistent cache store backed by SQLite."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from assetgraph.errors.exceptions import CorruptEntryError, StoreUnavailableError
from assetgraph.types import CacheEntry

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path.home() / ".assetgraph" / "cache.db"

_COLUMNS = (
    "resource_hash",
    "content_hash",
    "created_at",
    "source_type",
    "source",
    "has_transparency",
    "original_width",
    "original_height",
    "source_format",
    "is_animated",
    "tier_widths",
)

_LATE_COLUMNS = {
    "is_animated": "INTEGER DEFAULT 0",
    "tier_widths": "TEXT DEFAULT ''",
}


class SqliteCacheStore:
    """``image_cache`` table, one row per resource hash."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or _DEFAULT_DB_PATH
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.row_factory = sqlite3.Row
            self._create_table()
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailableError(f"Cannot open cache at {self._db_path}: {e}") from e

    @property
    def db_path(self) -> Path:
        return self._db_path

    def get(self, resource_hash: str, content_hash: str) -> CacheEntry | None:
        row = self._fetch_one(
            "SELECT * FROM image_cache WHERE resource_hash = ? AND content_hash = ?",
            (resource_hash, content_hash),
        )
        return self._row_to_entry(row) if row is not None else None

    def get_by_resource(self, resource_hash: str) -> CacheEntry | None:
        row = self._fetch_one(
            "SELECT * FROM image_cache WHERE resource_hash = ?", (resource_hash,)
        )
        return self._row_to_entry(row) if row is not None else None

    def upsert(self, entry: CacheEntry) -> None:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self._execute(
            f"INSERT OR REPLACE INTO image_cache ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            (
                entry.resource_hash,
                entry.content_hash,
                entry.created_at,
                entry.source_type.value,
                entry.source,
                int(entry.has_transparency),
                entry.original_width,
                entry.original_height,
                entry.source_format.value if entry.source_format else None,
                int(entry.is_animated),
                ",".join(str(w) for w in entry.tier_widths),
            ),
        )

    def remove(self, resource_hash: str) -> bool:
        cursor = self._execute(
            "DELETE FROM image_cache WHERE resource_hash = ?", (resource_hash,)
        )
        return cursor.rowcount > 0

    def clear(self) -> None:
        self._execute("DELETE FROM image_cache")

    @property
    def entry_count(self) -> int:
        row = self._fetch_one("SELECT COUNT(*) FROM image_cache")
        return row[0] if row else 0

    def entries(self) -> Iterator[CacheEntry]:
        try:
            rows = self._conn.execute(
                "SELECT * FROM image_cache ORDER BY created_at"
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cache read failed: {e}") from e
        for row in rows:
            yield self._row_to_entry(row)

    def close(self) -> None:
        self._conn.close()

    def _create_table(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS image_cache (
                resource_hash TEXT PRIMARY KEY,
                content_hash TEXT NOT NULL,
                created_at REAL,
                source_type TEXT,
                source TEXT,
                has_transparency INTEGER,
                original_width INTEGER,
                original_height INTEGER,
                source_format TEXT,
                is_animated INTEGER DEFAULT 0,
                tier_widths TEXT DEFAULT ''
            )
        """)
        self._add_missing_columns()
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_image_lookup "
            "ON image_cache (resource_hash, content_hash)"
        )
        self._conn.commit()

    def _add_missing_columns(self) -> None:
        # Databases written before a column existed get it with its default
        present = {row["name"] for row in self._conn.execute("PRAGMA table_info(image_cache)")}
        for column, ddl in _LATE_COLUMNS.items():
            if column not in present:
                logger.info("Adding cache column %s", column)
                self._conn.execute(f"ALTER TABLE image_cache ADD COLUMN {column} {ddl}")

    def _fetch_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cache read failed: {e}") from e

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cache write failed: {e}") from e

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        try:
            return CacheEntry(
                resource_hash=row["resource_hash"],
                content_hash=row["content_hash"],
                created_at=row["created_at"],
                source_type=row["source_type"],
                source=row["source"] or "",
                has_transparency=bool(row["has_transparency"]),
                original_width=row["original_width"],
                original_height=row["original_height"],
                source_format=row["source_format"],
                is_animated=bool(row["is_animated"]),
                tier_widths=_parse_widths(row["tier_widths"]),
            )
        except ValidationError as e:
            raise CorruptEntryError(
                f"Corrupt cache entry for {row['resource_hash']}: {e}"
            ) from e


def _parse_widths(value: str | None) -> list[int]:
    if not value:
        return []
    try:
        return [int(part) for part in value.split(",")]
    except ValueError as e:
        raise CorruptEntryError(f"Corrupt tier widths {value!r}") from e
