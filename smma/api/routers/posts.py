"""Single post draft endpoints.

Routes
------
GET    /posts/{id}           Fetch one draft
PUT    /posts/{id}           Edit a draft
DELETE /posts/{id}           Delete a draft
POST   /posts/bulk-status    Set one status on many drafts
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from smma.api.routers.domains import draft_response
from smma.db.models import PostDraft
from smma.db.posts import (
    bulk_update_post_status,
    delete_post_draft,
    get_post_draft,
    update_post_draft,
)

router = APIRouter()


class PostUpdate(BaseModel):
    platform: Optional[str] = None
    content_type: Optional[str] = None
    text: Optional[str] = None
    hashtags: Optional[list[str]] = None
    scheduled_date: Optional[str] = None
    status: Optional[str] = None


class BulkStatus(BaseModel):
    ids: list[str]
    status: str


def _require_draft(request: Request, draft_id: str) -> PostDraft:
    draft = get_post_draft(request.app.state.db, draft_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="Post draft not found")
    return draft


@router.post("/bulk-status")
def bulk_status(body: BulkStatus, request: Request) -> dict[str, Any]:
    """Set *status* on every listed draft; unknown ids are ignored."""
    try:
        updated = bulk_update_post_status(request.app.state.db, body.ids, body.status)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "updated": updated}


@router.get("/{draft_id}")
def get_one(draft_id: str, request: Request) -> dict[str, Any]:
    return draft_response(_require_draft(request, draft_id))


@router.put("/{draft_id}")
def update(draft_id: str, body: PostUpdate, request: Request) -> dict[str, Any]:
    _require_draft(request, draft_id)
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    try:
        draft = update_post_draft(request.app.state.db, draft_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return draft_response(draft)


@router.delete("/{draft_id}")
def remove(draft_id: str, request: Request) -> Response:
    _require_draft(request, draft_id)
    delete_post_draft(request.app.state.db, draft_id)
    return Response(status_code=204)
