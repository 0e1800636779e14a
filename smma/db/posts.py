"""CRUD operations for the ``post_drafts`` table."""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Any, Optional

from smma.db.models import PostDraft

POST_STATUSES = ("draft", "approved", "scheduled", "published", "failed")


def _check_status(status: str) -> None:
    if status not in POST_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(POST_STATUSES)}")


def _row_to_draft(row: sqlite3.Row) -> PostDraft:
    return PostDraft(
        id=row["id"],
        domain_id=row["domain_id"],
        platform=row["platform"],
        content_type=row["content_type"],
        text=row["text_content"],
        hashtags=json.loads(row["hashtags"] or "[]"),
        scheduled_date=row["scheduled_date"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def replace_post_drafts(
    conn: sqlite3.Connection,
    domain_id: str,
    drafts: list[dict[str, Any]],
) -> list[PostDraft]:
    """Replace all drafts of *domain_id* with *drafts*.

    Each draft dict may carry ``platform``, ``text``, ``content_type``,
    ``hashtags``, ``scheduled_date`` and ``status``.
    """
    now = int(time())
    ids: list[str] = []
    with conn:
        conn.execute("DELETE FROM post_drafts WHERE domain_id = ?", (domain_id,))
        for draft in drafts:
            draft_id = str(uuid.uuid4())
            ids.append(draft_id)
            conn.execute(
                """
                INSERT INTO post_drafts (id, domain_id, platform, content_type, text_content,
                                         hashtags, scheduled_date, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    draft_id,
                    domain_id,
                    draft.get("platform") or "twitter",
                    draft.get("content_type") or "post",
                    draft.get("text") or "",
                    json.dumps(draft.get("hashtags") or []),
                    draft.get("scheduled_date"),
                    draft.get("status") or "draft",
                    now,
                    now,
                ),
            )
    return [get_post_draft(conn, i) for i in ids]  # type: ignore[misc]


def list_post_drafts(
    conn: sqlite3.Connection,
    domain_id: str,
    platform: Optional[str] = None,
    status: Optional[str] = None,
) -> list[PostDraft]:
    """Return drafts of *domain_id* ordered by scheduled date."""
    query = "SELECT * FROM post_drafts WHERE domain_id = ?"
    params: list[Any] = [domain_id]
    if platform:
        query += " AND platform = ?"
        params.append(platform)
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY scheduled_date, rowid"
    return [_row_to_draft(r) for r in conn.execute(query, params).fetchall()]


def get_post_draft(conn: sqlite3.Connection, draft_id: str) -> Optional[PostDraft]:
    row = conn.execute("SELECT * FROM post_drafts WHERE id = ?", (draft_id,)).fetchone()
    return _row_to_draft(row) if row else None


def update_post_draft(conn: sqlite3.Connection, draft_id: str, **kwargs: Any) -> PostDraft:
    """Update fields on a draft.

    Allowed keyword arguments: ``platform``, ``content_type``, ``text``,
    ``hashtags`` (list), ``scheduled_date``, ``status``.

    Raises:
        ValueError: If the draft does not exist, an unknown field is given or
            *status* is not one of :data:`POST_STATUSES`.
    """
    if get_post_draft(conn, draft_id) is None:
        raise ValueError(f"Post draft not found: {draft_id!r}")
    if "status" in kwargs:
        _check_status(kwargs["status"])

    columns = {
        "platform": "platform",
        "content_type": "content_type",
        "text": "text_content",
        "hashtags": "hashtags",
        "scheduled_date": "scheduled_date",
        "status": "status",
    }
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in columns:
            raise ValueError(f"Cannot update field {key!r}")
        updates[columns[key]] = json.dumps(value) if key == "hashtags" else value

    if updates:
        updates["updated_at"] = int(time())
        set_clause = ", ".join(f"{col} = ?" for col in updates)
        with conn:
            conn.execute(
                f"UPDATE post_drafts SET {set_clause} WHERE id = ?",  # noqa: S608
                list(updates.values()) + [draft_id],
            )

    return get_post_draft(conn, draft_id)  # type: ignore[return-value]


def delete_post_draft(conn: sqlite3.Connection, draft_id: str) -> None:
    """Delete a draft.  No-op if it does not exist."""
    with conn:
        conn.execute("DELETE FROM post_drafts WHERE id = ?", (draft_id,))


def bulk_update_post_status(conn: sqlite3.Connection, draft_ids: list[str], status: str) -> int:
    """Set *status* on every draft in *draft_ids*; return how many rows changed.

    Raises:
        ValueError: If *status* is not one of :data:`POST_STATUSES`.
    """
    _check_status(status)
    if not draft_ids:
        return 0
    placeholders = ", ".join("?" for _ in draft_ids)
    with conn:
        cur = conn.execute(
            f"UPDATE post_drafts SET status = ?, updated_at = ? WHERE id IN ({placeholders})",  # noqa: S608
            [status, int(time()), *draft_ids],
        )
    return cur.rowcount
