"""Full-text index store backed by SQLite FTS5."""

from __future__ import annotations

import sqlite3
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence

import structlog

from ..config.models import SEARCHABLE_FIELDS
from ..engine.decoder import Record
from ..errors import BatchCommitError, QueryError, StoreOpenError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS machines (
    name TEXT PRIMARY KEY,
    description TEXT NOT NULL DEFAULT '',
    year TEXT NOT NULL DEFAULT '',
    timestamp TEXT NOT NULL DEFAULT '',
    manufacturer TEXT NOT NULL DEFAULT '',
    driver_status TEXT NOT NULL DEFAULT ''
);

CREATE VIRTUAL TABLE IF NOT EXISTS machines_fts USING fts5(
    name,
    description,
    year,
    manufacturer,
    driver_status,
    content='machines',
    content_rowid='rowid'
);

CREATE TRIGGER IF NOT EXISTS machines_ai AFTER INSERT ON machines BEGIN
    INSERT INTO machines_fts(rowid, name, description, year, manufacturer, driver_status)
    VALUES (new.rowid, new.name, new.description, new.year, new.manufacturer, new.driver_status);
END;

CREATE TRIGGER IF NOT EXISTS machines_ad AFTER DELETE ON machines BEGIN
    INSERT INTO machines_fts(machines_fts, rowid, name, description, year, manufacturer, driver_status)
    VALUES ('delete', old.rowid, old.name, old.description, old.year, old.manufacturer, old.driver_status);
END;

CREATE TRIGGER IF NOT EXISTS machines_au AFTER UPDATE ON machines BEGIN
    INSERT INTO machines_fts(machines_fts, rowid, name, description, year, manufacturer, driver_status)
    VALUES ('delete', old.rowid, old.name, old.description, old.year, old.manufacturer, old.driver_status);
    INSERT INTO machines_fts(rowid, name, description, year, manufacturer, driver_status)
    VALUES (new.rowid, new.name, new.description, new.year, new.manufacturer, new.driver_status);
END;
"""

_UPSERT = """
INSERT INTO machines(name, description, year, timestamp, manufacturer, driver_status)
VALUES (:name, :description, :year, :timestamp, :manufacturer, :driver_status)
ON CONFLICT(name) DO UPDATE SET
    description = excluded.description,
    year = excluded.year,
    timestamp = excluded.timestamp,
    manufacturer = excluded.manufacturer,
    driver_status = excluded.driver_status
"""


class IndexBatch:
    """Records staged for one transactional commit."""

    def __init__(self) -> None:
        self._documents: list[tuple[str, Record]] = []

    def index(self, key: str, record: Record) -> None:
        self._documents.append((key, record))

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[tuple[str, Record]]:
        return iter(self._documents)


@dataclass(slots=True)
class SearchHit:
    name: str
    score: float
    fields: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class SearchResult:
    query: str
    total: int
    hits: list[SearchHit]
    took: float


class IndexStore(ABC):
    """Contract the pipeline and the search command rely on."""

    def new_batch(self) -> IndexBatch:
        return IndexBatch()

    @abstractmethod
    def commit(self, batch: IndexBatch) -> None:
        """Atomically persist every record in ``batch``."""

    @abstractmethod
    def get(self, name: str) -> Record | None:
        """Return the record stored under ``name``."""

    @abstractmethod
    def search(self, query: str, fields: Sequence[str] = (), size: int = 5) -> SearchResult:
        """Run a ranked full-text query."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


class SQLiteIndexStore(IndexStore):
    """Persist records in SQLite with an FTS5 index kept in sync by triggers."""

    def __init__(self, conn: sqlite3.Connection, path: Path) -> None:
        self.conn = conn
        self.path = path
        self.logger = structlog.get_logger("machine_index.store").bind(index=str(path))

    def commit(self, batch: IndexBatch) -> None:
        if not len(batch):
            return
        rows = [record.to_document() | {"name": key} for key, record in batch]
        try:
            with self.conn:
                self.conn.executemany(_UPSERT, rows)
        except sqlite3.Error as exc:
            raise BatchCommitError(f"failed to commit {len(rows)} records: {exc}") from exc
        self.logger.debug("batch_committed", size=len(rows))

    def get(self, name: str) -> Record | None:
        row = self.conn.execute(
            "SELECT name, description, year, timestamp, manufacturer, driver_status "
            "FROM machines WHERE name = ?",
            (name,),
        ).fetchone()
        if row is None:
            return None
        return Record(**dict(row))

    def search(self, query: str, fields: Sequence[str] = (), size: int = 5) -> SearchResult:
        unknown = [name for name in fields if name not in SEARCHABLE_FIELDS]
        if unknown:
            raise QueryError(f"unknown fields requested: {unknown}")
        columns = ", ".join(f"m.{name}" for name in fields)
        select = "m.name, bm25(machines_fts) AS score" + (f", {columns}" if columns else "")
        started = time.perf_counter()
        try:
            total = self.conn.execute(
                "SELECT count(*) FROM machines_fts WHERE machines_fts MATCH ?", (query,)
            ).fetchone()[0]
            rows = self.conn.execute(
                f"SELECT {select} FROM machines_fts "
                "JOIN machines m ON m.rowid = machines_fts.rowid "
                "WHERE machines_fts MATCH ? ORDER BY score LIMIT ?",
                (query, size),
            ).fetchall()
        except sqlite3.OperationalError as exc:
            raise QueryError(f"invalid query {query!r}: {exc}") from exc
        hits = [
            SearchHit(
                name=row["name"],
                score=-float(row["score"]),
                fields={name: row[name] for name in fields},
            )
            for row in rows
        ]
        return SearchResult(
            query=query, total=total, hits=hits, took=time.perf_counter() - started
        )

    def count(self) -> int:
        return self.conn.execute("SELECT count(*) FROM machines").fetchone()[0]

    def close(self) -> None:
        self.conn.close()


def open_index(path: Path) -> SQLiteIndexStore:
    """Open the index at ``path``, creating it on first use."""

    conn: sqlite3.Connection | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        conn.executescript(_SCHEMA)
        conn.commit()
    except (OSError, sqlite3.Error) as exc:
        if conn is not None:
            conn.close()
        raise StoreOpenError(f"cannot open index at {path}: {exc}") from exc
    return SQLiteIndexStore(conn, path)


def delete_index(path: Path) -> bool:
    """Remove the index and its journal files; return whether anything existed."""

    removed = False
    for suffix in ("", "-journal", "-wal", "-shm"):
        candidate = path.with_name(path.name + suffix)
        if candidate.exists():
            candidate.unlink()
            removed = True
    return removed


__all__ = [
    "IndexBatch",
    "IndexStore",
    "SQLiteIndexStore",
    "SearchHit",
    "SearchResult",
    "delete_index",
    "open_index",
]
