"""Per-domain pipeline artifacts.

Each pipeline step writes exactly one JSON document per domain under a fixed
*kind*; writing again overwrites the previous document.
"""

from __future__ import annotations

import json
import sqlite3
from time import time
from typing import Any, Optional

DOMAIN_PROFILE = "domain_profile"
COMPETITOR_SET = "competitor_set"
POSITIONING_SUMMARY = "positioning_summary"
CONTENT_STRATEGY = "content_strategy"
CAMPAIGN_CALENDAR = "campaign_calendar"

ARTIFACT_KINDS = (
    DOMAIN_PROFILE,
    COMPETITOR_SET,
    POSITIONING_SUMMARY,
    CONTENT_STRATEGY,
    CAMPAIGN_CALENDAR,
)


def _check_kind(kind: str) -> None:
    if kind not in ARTIFACT_KINDS:
        raise ValueError(f"Unknown artifact kind: {kind!r}")


def store_artifact(
    conn: sqlite3.Connection,
    domain_id: str,
    kind: str,
    data: dict[str, Any],
) -> None:
    """Upsert the *kind* artifact for *domain_id*.

    Raises:
        ValueError: If *kind* is not one of :data:`ARTIFACT_KINDS`.
    """
    _check_kind(kind)
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO artifacts (domain_id, kind, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (domain_id, kind)
            DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
            """,
            (domain_id, kind, json.dumps(data), now, now),
        )


def get_artifact(
    conn: sqlite3.Connection,
    domain_id: str,
    kind: str,
) -> Optional[dict[str, Any]]:
    """Return the stored *kind* artifact for *domain_id*, or ``None``."""
    _check_kind(kind)
    row = conn.execute(
        "SELECT data FROM artifacts WHERE domain_id = ? AND kind = ?",
        (domain_id, kind),
    ).fetchone()
    return json.loads(row["data"]) if row else None


def delete_artifact(conn: sqlite3.Connection, domain_id: str, kind: str) -> None:
    _check_kind(kind)
    with conn:
        conn.execute(
            "DELETE FROM artifacts WHERE domain_id = ? AND kind = ?",
            (domain_id, kind),
        )
