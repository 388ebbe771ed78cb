"""SQLite store for local runs and tests.

Mirrors the production tables: scraping_sources and conferences, with the
(title, university, date) uniqueness constraint enforced by the schema.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from rich.console import Console

from conference_pipeline.errors import PersistenceError, RegistryError
from conference_pipeline.models import Conference, Source
from conference_pipeline.storage.base import (
    CONFERENCES_TABLE,
    SOURCES_TABLE,
    ConferenceStore,
)

console = Console()

CONFERENCE_COLUMNS = (
    "title",
    "university",
    "date",
    "end_date",
    "location",
    "description",
    "format",
    "topic",
    "registration_url",
    "registration_deadline",
    "contact_email",
    "contact_phone",
    "venue",
    "fee",
    "source_url",
)

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {SOURCES_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    last_scraped_at TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS {CONFERENCES_TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    university TEXT NOT NULL,
    date TEXT NOT NULL,
    end_date TEXT,
    location TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    format TEXT NOT NULL,
    topic TEXT NOT NULL,
    registration_url TEXT,
    registration_deadline TEXT,
    contact_email TEXT,
    contact_phone TEXT,
    venue TEXT,
    fee TEXT,
    source_url TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (title, university, date)
);

CREATE INDEX IF NOT EXISTS idx_conferences_date ON {CONFERENCES_TABLE}(date);
"""


class SQLiteStore(ConferenceStore):
    """Conference store backed by a local SQLite file."""

    def __init__(self, db_path: Union[str, Path], auto_initialize: bool = True):
        self.db_path = Path(db_path)
        if auto_initialize:
            self.initialize()

    def initialize(self) -> None:
        """Create the database directory and schema if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._session() as conn:
            conn.executescript(SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Connection that commits (or rolls back) and is always closed."""
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    def add_source(self, name: str, url: str, is_active: bool = True) -> Source:
        """Register a source locally (production sources are managed elsewhere)."""
        with self._session() as conn:
            cur = conn.execute(
                f"INSERT INTO {SOURCES_TABLE} (name, url, is_active) VALUES (?, ?, ?)",
                (name, url, int(is_active)),
            )
            source_id = cur.lastrowid
        return Source(id=source_id, name=name, url=url, is_active=is_active)

    def get_source(self, source_id: int) -> Optional[Source]:
        with self._session() as conn:
            row = conn.execute(
                f"SELECT * FROM {SOURCES_TABLE} WHERE id = ?", (source_id,)
            ).fetchone()
        return Source.model_validate(dict(row)) if row else None

    def list_active_sources(self) -> list[Source]:
        try:
            with self._session() as conn:
                rows = conn.execute(
                    f"SELECT * FROM {SOURCES_TABLE} WHERE is_active = 1"
                ).fetchall()
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to list sources: {e}") from e
        return [Source.model_validate(dict(row)) for row in rows]

    def mark_scraped(self, source_id: int | str, when: datetime) -> None:
        try:
            with self._session() as conn:
                conn.execute(
                    f"UPDATE {SOURCES_TABLE} SET last_scraped_at = ? WHERE id = ?",
                    (when.isoformat(), source_id),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update source {source_id}: {e}") from e

    # ------------------------------------------------------------------
    # Conferences
    # ------------------------------------------------------------------
    def upsert_conferences(self, conferences: Sequence[Conference]) -> int:
        if not conferences:
            return 0

        columns = ", ".join(CONFERENCE_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in CONFERENCE_COLUMNS)
        sql = f"INSERT OR IGNORE INTO {CONFERENCES_TABLE} ({columns}) VALUES ({placeholders})"

        try:
            with self._session() as conn:
                before = conn.total_changes
                conn.executemany(sql, [c.to_row() for c in conferences])
                inserted = conn.total_changes - before
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to insert conferences: {e}") from e

        console.print(
            f"[dim]Inserted {inserted} new conferences "
            f"({len(conferences) - inserted} already stored)[/dim]"
        )
        return inserted

    def list_upcoming(self, cutoff: date) -> list[Conference]:
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT * FROM {CONFERENCES_TABLE} WHERE date >= ? ORDER BY date ASC",
                (cutoff.isoformat(),),
            ).fetchall()
        return [Conference.model_validate(dict(row)) for row in rows]
