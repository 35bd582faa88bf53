"""Database utilities for the cabin administration store."""

from __future__ import annotations

import sqlite3
from pathlib import Path


# Relations a select may embed, keyed by table then related table, mapping to
# the foreign key column on the parent row.
RELATIONS: dict[str, dict[str, str]] = {
    "bookings": {"cabins": "cabin_id", "guests": "guest_id"},
}


def dict_factory(cursor: sqlite3.Cursor, row: sqlite3.Row) -> dict:
    """Return rows as dictionaries rather than tuples."""

    return {description[0]: row[idx] for idx, description in enumerate(cursor.description)}


def get_connection(path: str | Path) -> sqlite3.Connection:
    """Return a SQLite connection usable from the store's worker threads."""

    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def initialize_database(conn: sqlite3.Connection) -> None:
    """Create the database schema if it does not yet exist."""

    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS cabins (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now', 'localtime')),
            name TEXT NOT NULL,
            max_capacity INTEGER NOT NULL DEFAULT 1,
            regular_price REAL NOT NULL,
            discount REAL NOT NULL DEFAULT 0,
            description TEXT,
            image TEXT
        );

        CREATE TABLE IF NOT EXISTS guests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now', 'localtime')),
            full_name TEXT NOT NULL,
            email TEXT NOT NULL,
            national_id TEXT,
            nationality TEXT,
            country_flag TEXT
        );

        CREATE TABLE IF NOT EXISTS bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now', 'localtime')),
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            num_nights INTEGER NOT NULL,
            num_guests INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'unconfirmed',
            cabin_price REAL NOT NULL,
            extras_price REAL NOT NULL DEFAULT 0,
            total_price REAL NOT NULL,
            cabin_id INTEGER NOT NULL,
            guest_id INTEGER NOT NULL,
            FOREIGN KEY(cabin_id) REFERENCES cabins(id),
            FOREIGN KEY(guest_id) REFERENCES guests(id)
        );
        """
    )


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return the column names of ``table`` in declaration order."""

    return [row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]

