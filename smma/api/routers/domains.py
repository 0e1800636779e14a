"""Domain endpoints.

Routes
------
POST   /domains                         Register a website
GET    /domains                         List domains
GET    /domains/{id}                    Fetch one domain
PUT    /domains/{id}                    Update domain fields
DELETE /domains/{id}                    Delete a domain (pages, artifacts, drafts, personas cascade)
POST   /domains/{id}/crawl              Crawl the website now and store its pages
GET    /domains/{id}/pages              Stored crawl result
GET    /domains/{id}/artifacts/{kind}   One pipeline artifact
GET    /domains/{id}/posts              Post drafts (optional ?platform= / ?status=)
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from smma.config import settings
from smma.crawler.crawler import crawl_domain
from smma.db.artifacts import ARTIFACT_KINDS, get_artifact
from smma.db.domains import create_domain, delete_domain, get_domain, list_domains, update_domain
from smma.db.models import Domain, PostDraft
from smma.db.pages import get_crawled_pages
from smma.db.posts import list_post_drafts

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class DomainCreate(BaseModel):
    url: str
    name: str
    primary_goal: str = "drive_traffic"
    audience_description: Optional[str] = None
    brand_voice_tone: str = "professional"


class DomainUpdate(BaseModel):
    url: Optional[str] = None
    name: Optional[str] = None
    primary_goal: Optional[str] = None
    audience_description: Optional[str] = None
    brand_voice_tone: Optional[str] = None


class DomainResponse(BaseModel):
    id: str
    url: str
    name: str
    primary_goal: str
    audience_description: Optional[str]
    brand_voice_tone: str
    created_at: int
    updated_at: int


class CrawlRequest(BaseModel):
    max_pages: int = Field(default_factory=lambda: settings.crawl_max_pages, ge=1)
    max_depth: int = Field(default_factory=lambda: settings.crawl_max_depth, ge=0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _domain_response(domain: Domain) -> dict[str, Any]:
    return {
        "id": domain.id,
        "url": domain.url,
        "name": domain.name,
        "primary_goal": domain.primary_goal,
        "audience_description": domain.audience_description,
        "brand_voice_tone": domain.brand_voice_tone,
        "created_at": domain.created_at,
        "updated_at": domain.updated_at,
    }


def draft_response(draft: PostDraft) -> dict[str, Any]:
    return {
        "id": draft.id,
        "platform": draft.platform,
        "content_type": draft.content_type,
        "text": draft.text,
        "hashtags": draft.hashtags,
        "scheduled_date": draft.scheduled_date,
        "status": draft.status,
        "created_at": draft.created_at,
        "updated_at": draft.updated_at,
    }


def _require_domain(conn: sqlite3.Connection, domain_id: str) -> Domain:
    domain = get_domain(conn, domain_id)
    if domain is None:
        raise HTTPException(status_code=404, detail=f"Domain not found: {domain_id!r}")
    return domain


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=DomainResponse, status_code=201)
def create(body: DomainCreate, request: Request) -> dict[str, Any]:
    """Register a new domain."""
    conn = request.app.state.db
    domain = create_domain(conn, **body.model_dump())
    return _domain_response(domain)


@router.get("", response_model=list[DomainResponse])
def list_all(request: Request) -> list[dict[str, Any]]:
    """Return all domains, newest first."""
    conn = request.app.state.db
    return [_domain_response(d) for d in list_domains(conn)]


@router.get("/{domain_id}", response_model=DomainResponse)
def get_one(domain_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    return _domain_response(_require_domain(conn, domain_id))


@router.put("/{domain_id}", response_model=DomainResponse)
def update(domain_id: str, body: DomainUpdate, request: Request) -> dict[str, Any]:
    """Update one or more fields on a domain."""
    conn = request.app.state.db
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    try:
        domain = update_domain(conn, domain_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _domain_response(domain)


@router.delete("/{domain_id}")
async def remove(domain_id: str, request: Request) -> Response:
    """Delete a domain, cancelling its pipeline run first if one is active."""
    conn = request.app.state.db
    await request.app.state.pipeline.forget(domain_id)
    delete_domain(conn, domain_id)
    return Response(status_code=204)


@router.post("/{domain_id}/crawl")
async def crawl(
    domain_id: str,
    request: Request,
    body: Optional[CrawlRequest] = None,
) -> dict[str, Any]:
    """Crawl the domain's website and replace its stored pages."""
    conn = request.app.state.db
    domain = _require_domain(conn, domain_id)
    if request.app.state.pipeline.registry.is_running(domain_id):
        raise HTTPException(status_code=409, detail="Pipeline is running for this domain.")

    body = body or CrawlRequest()
    try:
        pages = await crawl_domain(
            conn, domain.id, domain.url, max_pages=body.max_pages, max_depth=body.max_depth
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "success": True,
        "pageCount": len(pages),
        "pages": [{"url": p.url, "title": p.title, "pageType": p.page_type} for p in pages],
    }


@router.get("/{domain_id}/pages")
def pages(domain_id: str, request: Request) -> list[dict[str, Any]]:
    """Return the stored crawl result in crawl order."""
    conn = request.app.state.db
    _require_domain(conn, domain_id)
    return [p.to_dict() for p in get_crawled_pages(conn, domain_id)]


@router.get("/{domain_id}/artifacts/{kind}")
def artifact(domain_id: str, kind: str, request: Request) -> dict[str, Any]:
    """Return one stored pipeline artifact (e.g. ``domain_profile``)."""
    conn = request.app.state.db
    _require_domain(conn, domain_id)
    if kind not in ARTIFACT_KINDS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown artifact kind {kind!r}; expected one of {', '.join(ARTIFACT_KINDS)}",
        )
    data = get_artifact(conn, domain_id, kind)
    if data is None:
        raise HTTPException(status_code=404, detail=f"No {kind} stored for this domain yet.")
    return data


@router.get("/{domain_id}/posts")
def posts(
    domain_id: str,
    request: Request,
    platform: Optional[str] = None,
    status: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Return the domain's post drafts ordered by scheduled date."""
    conn = request.app.state.db
    _require_domain(conn, domain_id)
    drafts = list_post_drafts(conn, domain_id, platform=platform, status=status)
    return [draft_response(d) for d in drafts]
