"""CRUD operations for the ``personas`` table.

Generated personas replace the domain's earlier generated ones; personas a
user has edited are flagged ``is_ai_generated = 0`` and survive regeneration.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Any, Optional

from smma.db.models import Persona

# Top-level keys of a persona dict that map to their own columns
_COLUMN_KEYS = ("id", "name", "avatarEmoji", "isPrimary")


def _row_to_persona(row: sqlite3.Row) -> Persona:
    return Persona(
        id=row["id"],
        domain_id=row["domain_id"],
        name=row["name"],
        avatar_emoji=row["avatar_emoji"],
        is_primary=bool(row["is_primary"]),
        is_ai_generated=bool(row["is_ai_generated"]),
        data=json.loads(row["data"] or "{}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def store_personas(
    conn: sqlite3.Connection,
    domain_id: str,
    personas: list[dict[str, Any]],
) -> list[Persona]:
    """Replace the generated personas of *domain_id* with *personas*.

    Each dict may carry ``name``, ``avatarEmoji`` and ``isPrimary``; every
    other key (``demographics``, ``painPoints`` ...) is kept in ``data``.
    """
    now = int(time())
    ids: list[str] = []
    with conn:
        conn.execute(
            "DELETE FROM personas WHERE domain_id = ? AND is_ai_generated = 1",
            (domain_id,),
        )
        for position, persona in enumerate(personas, start=1):
            persona_id = str(uuid.uuid4())
            ids.append(persona_id)
            name = persona.get("name")
            conn.execute(
                """
                INSERT INTO personas (id, domain_id, name, avatar_emoji, is_primary,
                                      is_ai_generated, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (
                    persona_id,
                    domain_id,
                    name if isinstance(name, str) and name else f"Persona {position}",
                    str(persona.get("avatarEmoji") or "👤"),
                    1 if persona.get("isPrimary") else 0,
                    json.dumps({k: v for k, v in persona.items() if k not in _COLUMN_KEYS}),
                    now,
                    now,
                ),
            )
    return [get_persona(conn, i) for i in ids]  # type: ignore[misc]


def list_personas(conn: sqlite3.Connection, domain_id: str) -> list[Persona]:
    """Return personas of *domain_id*, primary first."""
    rows = conn.execute(
        "SELECT * FROM personas WHERE domain_id = ? ORDER BY is_primary DESC, created_at, rowid",
        (domain_id,),
    ).fetchall()
    return [_row_to_persona(r) for r in rows]


def get_persona(conn: sqlite3.Connection, persona_id: str) -> Optional[Persona]:
    row = conn.execute("SELECT * FROM personas WHERE id = ?", (persona_id,)).fetchone()
    return _row_to_persona(row) if row else None


def update_persona(conn: sqlite3.Connection, persona_id: str, **kwargs: Any) -> Persona:
    """Update fields on a persona and mark it as user-edited.

    Allowed keyword arguments: ``name``, ``avatar_emoji``, ``is_primary`` and
    ``data`` (merged key by key into the stored data).

    Raises:
        ValueError: If the persona does not exist or an unknown field is given.
    """
    persona = get_persona(conn, persona_id)
    if persona is None:
        raise ValueError(f"Persona not found: {persona_id!r}")

    allowed = {"name", "avatar_emoji", "is_primary", "data"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        if key == "data":
            updates["data"] = json.dumps({**persona.data, **value})
        elif key == "is_primary":
            updates["is_primary"] = 1 if value else 0
        else:
            updates[key] = value

    if updates:
        updates["is_ai_generated"] = 0
        updates["updated_at"] = int(time())
        set_clause = ", ".join(f"{col} = ?" for col in updates)
        with conn:
            conn.execute(
                f"UPDATE personas SET {set_clause} WHERE id = ?",  # noqa: S608
                list(updates.values()) + [persona_id],
            )

    return get_persona(conn, persona_id)  # type: ignore[return-value]


def delete_persona(conn: sqlite3.Connection, persona_id: str) -> None:
    """Delete a persona.  No-op if it does not exist."""
    with conn:
        conn.execute("DELETE FROM personas WHERE id = ?", (persona_id,))
