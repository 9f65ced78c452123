"""Persistent advert and message records backed by SQLite."""

from __future__ import annotations

import logging
import sqlite3

from meshcore_gateway.core.models import AdvertRecord, MessageRecord
from meshcore_gateway.core.types import RecordDict

logger = logging.getLogger(__name__)


class RecordStore:
    """Adverts are one row per public key (latest wins); messages are append-only."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def upsert_advert(self, record: AdvertRecord) -> None:
        self._conn.execute(
            "INSERT INTO adverts "
            "(public_key, type, adv_name, last_advert, last_mod, adv_lat, adv_lon, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, strftime('%s','now')) "
            "ON CONFLICT(public_key) DO UPDATE SET "
            "type = excluded.type, "
            "adv_name = excluded.adv_name, "
            "last_advert = excluded.last_advert, "
            "last_mod = excluded.last_mod, "
            "adv_lat = excluded.adv_lat, "
            "adv_lon = excluded.adv_lon, "
            "timestamp = excluded.timestamp",
            (
                record.public_key,
                record.type,
                record.adv_name,
                record.last_advert,
                record.last_mod,
                record.adv_lat,
                record.adv_lon,
            ),
        )
        self._conn.commit()

    def save_message(self, record: MessageRecord) -> None:
        self._conn.execute(
            "INSERT INTO messages "
            "(public_key, channel_idx, channel_name, adv_name, sender_timestamp, text, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?, strftime('%s','now'))",
            (
                record.public_key,
                record.channel_idx,
                record.channel_name,
                record.adv_name,
                record.sender_timestamp,
                record.text,
            ),
        )
        self._conn.commit()

    def find_adverts_by_name(self, adv_name: str, limit: int = 3) -> list[RecordDict]:
        """Most recent adverts carrying *adv_name*, newest ``last_mod`` first."""
        rows = self._conn.execute(
            "SELECT public_key, adv_name, last_mod, timestamp FROM adverts "
            "WHERE adv_name = ? "
            "ORDER BY COALESCE(last_mod, 0) DESC, timestamp DESC "
            "LIMIT ?",
            (adv_name, limit),
        ).fetchall()
        return [dict(row) for row in rows]

    def get_adverts(self) -> list[RecordDict]:
        rows = self._conn.execute("SELECT * FROM adverts").fetchall()
        return [dict(row) for row in rows]

    def get_messages(self, limit: int = 100) -> list[RecordDict]:
        rows = self._conn.execute(
            "SELECT * FROM messages ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(row) for row in rows]

    def close(self) -> None:
        self._conn.close()
