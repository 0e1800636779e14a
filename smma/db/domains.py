"""CRUD operations for the ``domains`` table."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Any, Optional

from smma.db.models import Domain


def _row_to_domain(row: sqlite3.Row) -> Domain:
    return Domain(
        id=row["id"],
        url=row["url"],
        name=row["name"],
        primary_goal=row["primary_goal"],
        audience_description=row["audience_description"],
        brand_voice_tone=row["brand_voice_tone"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_domain(
    conn: sqlite3.Connection,
    url: str,
    name: str,
    primary_goal: str = "drive_traffic",
    audience_description: Optional[str] = None,
    brand_voice_tone: str = "professional",
    domain_id: Optional[str] = None,
) -> Domain:
    """Insert a new domain and return it.

    Args:
        conn: Open DB connection.
        url: Start URL of the website to crawl.
        name: Human-readable brand name.
        primary_goal: Marketing goal, e.g. ``drive_traffic`` or ``grow_audience``.
        audience_description: Optional free-text description of the audience.
        brand_voice_tone: Tone used in the generated content.
        domain_id: Explicit UUID override (auto-generated when omitted).
    """
    did = domain_id or str(uuid.uuid4())
    now = int(time())

    with conn:
        conn.execute(
            """
            INSERT INTO domains (id, url, name, primary_goal, audience_description,
                                 brand_voice_tone, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (did, url, name, primary_goal, audience_description, brand_voice_tone, now, now),
        )

    return get_domain(conn, did)  # type: ignore[return-value]


def get_domain(conn: sqlite3.Connection, domain_id: str) -> Optional[Domain]:
    """Fetch a single domain by its UUID.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM domains WHERE id = ?", (domain_id,)).fetchone()
    return _row_to_domain(row) if row else None


def list_domains(conn: sqlite3.Connection) -> list[Domain]:
    """Return all domains, newest first."""
    rows = conn.execute(
        "SELECT * FROM domains ORDER BY created_at DESC, rowid DESC"
    ).fetchall()
    return [_row_to_domain(r) for r in rows]


def update_domain(conn: sqlite3.Connection, domain_id: str, **kwargs: Any) -> Domain:
    """Update one or more fields on a domain.

    Allowed keyword arguments: ``url``, ``name``, ``primary_goal``,
    ``audience_description``, ``brand_voice_tone``.  ``updated_at`` is always
    refreshed automatically.

    Raises:
        ValueError: If ``domain_id`` does not exist or an unknown field is given.
    """
    if get_domain(conn, domain_id) is None:
        raise ValueError(f"Domain not found: {domain_id!r}")

    allowed = {"url", "name", "primary_goal", "audience_description", "brand_voice_tone"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        updates[key] = value

    if not updates:
        return get_domain(conn, domain_id)  # type: ignore[return-value]

    updates["updated_at"] = int(time())
    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [domain_id]

    with conn:
        conn.execute(
            f"UPDATE domains SET {set_clause} WHERE id = ?", values  # noqa: S608
        )

    return get_domain(conn, domain_id)  # type: ignore[return-value]


def delete_domain(conn: sqlite3.Connection, domain_id: str) -> None:
    """Delete a domain together with its pages, artifacts and drafts.

    This is a no-op if the domain does not exist.
    """
    with conn:
        conn.execute("DELETE FROM domains WHERE id = ?", (domain_id,))
