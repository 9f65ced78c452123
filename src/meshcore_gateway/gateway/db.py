"""SQLite database connection and migration system."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from .paths import db_path

logger = logging.getLogger(__name__)

SCHEMA_V1 = """\
CREATE TABLE schema_version (
    version INTEGER NOT NULL
);

INSERT INTO schema_version (version) VALUES (1);

CREATE TABLE adverts (
    public_key TEXT PRIMARY KEY,
    type TEXT,
    adv_name TEXT,
    last_advert INTEGER,
    last_mod INTEGER,
    adv_lat TEXT,
    adv_lon TEXT,
    timestamp INTEGER DEFAULT (strftime('%s','now'))
);

CREATE INDEX idx_adverts_adv_name_last_mod_timestamp
    ON adverts(adv_name, last_mod, timestamp);

CREATE TABLE messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    public_key TEXT,
    channel_idx INTEGER,
    channel_name TEXT,
    adv_name TEXT,
    sender_timestamp INTEGER,
    text TEXT,
    timestamp INTEGER DEFAULT (strftime('%s','now'))
);

CREATE INDEX idx_messages_channel_timestamp ON messages(channel_idx, sender_timestamp)
"""


def _statements(script: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in script.split(";") if part.strip())


# MIGRATIONS[n] upgrades a version-n database to version n+1
MIGRATIONS: list[tuple[str, ...]] = [
    _statements(SCHEMA_V1),
]

JOURNAL_MODES = {"delete", "truncate", "persist", "memory", "wal", "off"}


def _get_version(conn: sqlite3.Connection) -> int:
    """Schema version recorded in the database; 0 for a fresh file."""
    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
    except sqlite3.OperationalError:
        return 0
    return row[0] if row else 0


def _migrate(conn: sqlite3.Connection) -> None:
    """Apply the pending entries of MIGRATIONS in one transaction."""
    current = _get_version(conn)
    pending = MIGRATIONS[current:]
    if not pending:
        return
    target = len(MIGRATIONS)
    logger.info("Upgrading gateway database schema v%d -> v%d", current, target)
    with conn:
        for statements in pending:
            for stmt in statements:
                conn.execute(stmt)
        conn.execute("UPDATE schema_version SET version = ?", (target,))


def open_db(path: str | Path | None = None, journal_mode: str = "wal") -> sqlite3.Connection:
    """Open (and migrate if needed) the gateway database.

    *path* may be ``":memory:"`` for a throwaway database.
    """
    if path == ":memory:":
        conn = sqlite3.connect(":memory:")
    else:
        db = db_path(str(path) if path is not None else None)
        db.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db))
        mode = journal_mode.strip().lower()
        if mode in JOURNAL_MODES:
            conn.execute(f"PRAGMA journal_mode={mode}")
        elif mode:
            logger.warning("Unknown journal mode %r, keeping sqlite default", journal_mode)
    conn.row_factory = sqlite3.Row
    _migrate(conn)
    return conn
