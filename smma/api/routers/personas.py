"""Audience persona endpoints.

Routes
------
GET    /domains/{id}/personas               List personas, primary first
POST   /domains/{id}/personas               Store personas (replaces generated ones)
POST   /domains/{id}/personas/generate      Generate personas with the LLM now
PUT    /domains/{id}/personas/{persona_id}  Edit a persona (marks it user-edited)
DELETE /domains/{id}/personas/{persona_id}  Delete a persona
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from smma.agent.steps import generate_personas
from smma.db.domains import get_domain
from smma.db.models import Domain, Persona
from smma.db.personas import delete_persona, get_persona, list_personas, store_personas, update_persona
from smma.llm.providers import LLMError

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class PersonaStore(BaseModel):
    personas: list[dict[str, Any]]


class PersonaUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    avatar_emoji: Optional[str] = Field(default=None, alias="avatarEmoji")
    is_primary: Optional[bool] = Field(default=None, alias="isPrimary")
    data: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _persona_response(persona: Persona) -> dict[str, Any]:
    return {
        "id": persona.id,
        "domain_id": persona.domain_id,
        "name": persona.name,
        "avatar_emoji": persona.avatar_emoji,
        "is_primary": persona.is_primary,
        "is_ai_generated": persona.is_ai_generated,
        "data": persona.data,
        "created_at": persona.created_at,
        "updated_at": persona.updated_at,
    }


def _require_domain(conn: sqlite3.Connection, domain_id: str) -> Domain:
    domain = get_domain(conn, domain_id)
    if domain is None:
        raise HTTPException(status_code=404, detail=f"Domain not found: {domain_id!r}")
    return domain


def _require_persona(conn: sqlite3.Connection, domain_id: str, persona_id: str) -> Persona:
    persona = get_persona(conn, persona_id)
    if persona is None or persona.domain_id != domain_id:
        raise HTTPException(status_code=404, detail=f"Persona not found: {persona_id!r}")
    return persona


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/{domain_id}/personas")
def list_all(domain_id: str, request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    _require_domain(conn, domain_id)
    return [_persona_response(p) for p in list_personas(conn, domain_id)]


@router.post("/{domain_id}/personas")
def store(domain_id: str, body: PersonaStore, request: Request) -> list[dict[str, Any]]:
    """Store personas, replacing the domain's generated (unedited) ones."""
    conn = request.app.state.db
    _require_domain(conn, domain_id)
    if not body.personas:
        raise HTTPException(status_code=400, detail="personas array is required")
    return [_persona_response(p) for p in store_personas(conn, domain_id, body.personas)]


@router.post("/{domain_id}/personas/generate")
async def generate(domain_id: str, request: Request) -> list[dict[str, Any]]:
    """Generate buyer personas from the stored crawl and artifacts."""
    conn = request.app.state.db
    domain = _require_domain(conn, domain_id)
    pipeline = request.app.state.pipeline
    if pipeline.registry.is_running(domain_id):
        raise HTTPException(status_code=409, detail="Pipeline is running for this domain.")

    try:
        personas = await generate_personas(conn, domain, pipeline.llm_for(conn))
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [_persona_response(p) for p in personas]


@router.put("/{domain_id}/personas/{persona_id}")
def update(domain_id: str, persona_id: str, body: PersonaUpdate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    _require_persona(conn, domain_id, persona_id)
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    return _persona_response(update_persona(conn, persona_id, **updates))


@router.delete("/{domain_id}/personas/{persona_id}")
def remove(domain_id: str, persona_id: str, request: Request) -> dict[str, str]:
    conn = request.app.state.db
    _require_persona(conn, domain_id, persona_id)
    delete_persona(conn, persona_id)
    return {"deleted": persona_id}
