"""SQLite persistence for time entries, idle intervals and settings."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .config import ActivityConfig
from .models import IdleInterval, TimeEntry

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS time_entries (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL,
            task_id TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT,
            duration INTEGER
        );

        CREATE INDEX IF NOT EXISTS idx_entries_start_time
            ON time_entries(start_time);

        CREATE TABLE IF NOT EXISTS idle_intervals (
            id INTEGER PRIMARY KEY,
            entry_id TEXT NOT NULL REFERENCES time_entries(id) ON DELETE CASCADE,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            discarded INTEGER NOT NULL DEFAULT 0,
            reason TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_idle_entry
            ON idle_intervals(entry_id);

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def _fmt(value: datetime) -> str:
    return value.strftime(DATETIME_FMT)


def _parse(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, DATETIME_FMT)


def insert_entry(conn: sqlite3.Connection, entry: TimeEntry) -> None:
    conn.execute(
        """
        INSERT INTO time_entries (id, project_id, task_id, start_time, end_time, duration)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            entry.id,
            entry.project_id,
            entry.task_id,
            _fmt(entry.start_time),
            _fmt(entry.end_time) if entry.end_time else None,
            entry.duration,
        ),
    )


def insert_idle_intervals(
    conn: sqlite3.Connection, entry_id: str, intervals: Iterable[IdleInterval]
) -> None:
    conn.executemany(
        """
        INSERT INTO idle_intervals (entry_id, start_time, end_time, discarded, reason)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            (
                entry_id,
                _fmt(interval.start),
                _fmt(interval.end),
                1 if interval.discarded else 0,
                interval.reason,
            )
            for interval in intervals
        ],
    )


def close_entry(
    conn: sqlite3.Connection,
    entry_id: str,
    end_time: datetime,
    duration: int,
    idle_intervals: Iterable[IdleInterval],
) -> None:
    """Close an open entry and record its idle intervals atomically."""
    with transaction(conn):
        cur = conn.execute(
            """
            UPDATE time_entries SET end_time = ?, duration = ?
            WHERE id = ? AND end_time IS NULL
            """,
            (_fmt(end_time), duration, entry_id),
        )
        if cur.rowcount == 0:
            raise ValueError(f"No open entry found for id={entry_id}")
        insert_idle_intervals(conn, entry_id, idle_intervals)


def fetch_idle_intervals(conn: sqlite3.Connection, entry_id: str) -> list[IdleInterval]:
    rows = conn.execute(
        """
        SELECT start_time, end_time, discarded, reason
        FROM idle_intervals
        WHERE entry_id = ?
        ORDER BY start_time
        """,
        (entry_id,),
    )
    return [
        IdleInterval(
            start=_parse(row["start_time"]),
            end=_parse(row["end_time"]),
            discarded=bool(row["discarded"]),
            reason=row["reason"],
        )
        for row in rows
    ]


def _row_to_entry(conn: sqlite3.Connection, row: sqlite3.Row) -> TimeEntry:
    return TimeEntry(
        id=row["id"],
        project_id=row["project_id"],
        task_id=row["task_id"],
        start_time=_parse(row["start_time"]),
        end_time=_parse(row["end_time"]),
        duration=row["duration"],
        idle_intervals=fetch_idle_intervals(conn, row["id"]),
    )


def fetch_open_entry(conn: sqlite3.Connection) -> Optional[TimeEntry]:
    row = conn.execute(
        """
        SELECT id, project_id, task_id, start_time, end_time, duration
        FROM time_entries
        WHERE end_time IS NULL
        ORDER BY start_time DESC
        LIMIT 1
        """
    ).fetchone()
    return _row_to_entry(conn, row) if row is not None else None


def fetch_entries_for_day(conn: sqlite3.Connection, day: datetime) -> list[TimeEntry]:
    """Fetch entries that started on the provided day."""
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    rows = conn.execute(
        """
        SELECT id, project_id, task_id, start_time, end_time, duration
        FROM time_entries
        WHERE start_time >= ? AND start_time < ?
        ORDER BY start_time
        """,
        (_fmt(start), _fmt(end)),
    ).fetchall()
    return [_row_to_entry(conn, row) for row in rows]


def fetch_config(conn: sqlite3.Connection) -> ActivityConfig:
    stored = {
        row["key"]: json.loads(row["value"])
        for row in conn.execute("SELECT key, value FROM settings")
    }
    config = ActivityConfig()
    known = config.to_dict()
    values = {key: value for key, value in stored.items() if key in known}
    if len(values) != len(stored):
        logger.debug("Ignoring unknown settings: %s", sorted(set(stored) - set(values)))
    return config.merged(values)


def store_config(conn: sqlite3.Connection, config: ActivityConfig) -> None:
    with transaction(conn):
        conn.executemany(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            [(key, json.dumps(value)) for key, value in config.to_dict().items()],
        )


class SqliteStore:
    """Persistence collaborator backed by a single SQLite connection."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = open_database(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()

    def create_entry(self, entry: TimeEntry) -> None:
        with self._lock:
            insert_entry(self._conn, entry)
        logger.debug("Stored new entry %s", entry.id)

    def close_entry(
        self,
        entry_id: str,
        end_time: datetime,
        duration: int,
        idle_intervals: Iterable[IdleInterval],
    ) -> None:
        with self._lock:
            close_entry(self._conn, entry_id, end_time, duration, idle_intervals)

    def get_open_entry(self) -> Optional[TimeEntry]:
        with self._lock:
            return fetch_open_entry(self._conn)

    def entries_for_day(self, day: datetime) -> list[TimeEntry]:
        with self._lock:
            return fetch_entries_for_day(self._conn, day)

    def load_config(self) -> ActivityConfig:
        with self._lock:
            return fetch_config(self._conn)

    def save_config(self, config: ActivityConfig) -> None:
        with self._lock:
            store_config(self._conn, config)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
