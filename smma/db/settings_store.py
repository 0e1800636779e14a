"""Key/value store for user-editable settings (LLM provider credentials etc.)."""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional


def get_setting(conn: sqlite3.Connection, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def set_setting(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or overwrite *key*."""
    with conn:
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT (key) DO UPDATE SET value = excluded.value,
                                            updated_at = excluded.updated_at
            """,
            (key, value, int(time())),
        )


def get_all_settings(conn: sqlite3.Connection) -> dict[str, str]:
    rows = conn.execute("SELECT key, value FROM settings ORDER BY key").fetchall()
    return {r["key"]: r["value"] for r in rows}


def delete_setting(conn: sqlite3.Connection, key: str) -> None:
    with conn:
        conn.execute("DELETE FROM settings WHERE key = ?", (key,))
