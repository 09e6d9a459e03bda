"""History records stored in SQLite."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any

from schoolhistory.history import History

_SCHEMA = """
CREATE TABLE IF NOT EXISTS history (
    id TEXT PRIMARY KEY,
    table_name TEXT NOT NULL,
    record_id TEXT NOT NULL,
    action TEXT NOT NULL,
    old_data TEXT,
    new_data TEXT,
    user_id TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    metadata TEXT
)
"""

_COLUMNS = "id, table_name, record_id, action, old_data, new_data, user_id, created_at, metadata"


def _encode_map(value: dict[str, Any] | None) -> str | None:
    return None if value is None else json.dumps(value, ensure_ascii=False)


def _decode_map(text: str | None) -> dict[str, Any] | None:
    return None if text is None else json.loads(text)


def _encode_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat(timespec="microseconds")


def _decode_time(text: str) -> datetime:
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def _row_to_history(row: tuple) -> History:
    id_, table_name, record_id, action, old_data, new_data, user_id, created_at, metadata = row
    return History(
        id=id_,
        table_name=table_name,
        record_id=record_id,
        action=action,
        old_data=_decode_map(old_data),
        new_data=_decode_map(new_data),
        user_id=user_id,
        created_at=_decode_time(created_at),
        metadata=_decode_map(metadata),
    )


class SqliteHistoryRepo:
    """A history repository backed by an SQLite database file."""

    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.execute(_SCHEMA)

    def __enter__(self) -> SqliteHistoryRepo:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_history(self, history: History) -> History:
        """Insert a record; a duplicate id raises sqlite3.IntegrityError."""
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT INTO history ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    history.id,
                    history.table_name,
                    history.record_id,
                    history.action,
                    _encode_map(history.old_data),
                    _encode_map(history.new_data),
                    history.user_id,
                    _encode_time(history.created_at),
                    _encode_map(history.metadata),
                ),
            )
        return history

    def _select(self, where: str, params: tuple) -> list[History]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM history WHERE {where} "
                "ORDER BY created_at DESC, rowid DESC",
                params,
            ).fetchall()
        return [_row_to_history(row) for row in rows]

    def get_history_by_record_id(self, table_name: str, record_id: str) -> list[History]:
        """Records of one row of one table, newest first."""
        return self._select("table_name = ? AND record_id = ?", (table_name, record_id))

    def get_history_by_table_name(self, table_name: str) -> list[History]:
        """Records of one table, newest first."""
        return self._select("table_name = ?", (table_name,))

    def close(self) -> None:
        self._conn.close()