"""Marketing pipeline endpoints.

Routes
------
POST   /domains/{id}/pipeline   Start a background run (no-op while one is running)
DELETE /domains/{id}/pipeline   Cancel the active run
GET    /domains/{id}/status     Run snapshot plus what storage already holds

Runs execute as ``asyncio`` tasks on the server's event loop; the trigger
returns immediately and clients poll ``/status`` for progress.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from smma.agent.platforms import DEFAULT_PLATFORMS, PLATFORM_CONSTRAINTS
from smma.agent.steps import PipelineOptions
from smma.config import settings
from smma.db.domains import get_domain
from smma.db.models import Domain

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class PipelineRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_pages: int = Field(
        default_factory=lambda: settings.pipeline_max_pages, ge=1, alias="maxPages"
    )
    max_depth: int = Field(
        default_factory=lambda: settings.pipeline_max_depth, ge=0, alias="maxDepth"
    )
    generate_posts: bool = Field(default=True, alias="generatePosts")
    preferences: dict[str, Any] = Field(default_factory=dict)
    generate_personas: bool = Field(default=False, alias="generatePersonas")
    llm_posts: bool = Field(default=False, alias="llmPosts")
    platforms: list[str] = Field(default_factory=lambda: list(DEFAULT_PLATFORMS), min_length=1)

    @field_validator("platforms")
    @classmethod
    def known_platforms(cls, value: list[str]) -> list[str]:
        unknown = [p for p in value if p not in PLATFORM_CONSTRAINTS]
        if unknown:
            raise ValueError(
                f"Unknown platform(s): {', '.join(unknown)}; "
                f"expected any of {', '.join(PLATFORM_CONSTRAINTS)}"
            )
        return value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_domain(request: Request, domain_id: str) -> Domain:
    domain = get_domain(request.app.state.db, domain_id)
    if domain is None:
        raise HTTPException(status_code=404, detail="Domain not found")
    return domain


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/{domain_id}/pipeline")
async def trigger(
    domain_id: str,
    request: Request,
    body: Optional[PipelineRequest] = None,
) -> dict[str, Any]:
    """Start the full pipeline for a domain in the background.

    When a run is already in progress its current state is returned unchanged
    and nothing new is started.
    """
    domain = _require_domain(request, domain_id)
    body = body or PipelineRequest()
    options = PipelineOptions(
        max_pages=body.max_pages,
        max_depth=body.max_depth,
        generate_posts=body.generate_posts,
        preferences=body.preferences,
        generate_personas=body.generate_personas,
        llm_posts=body.llm_posts,
        platforms=body.platforms,
    )
    started, run = await request.app.state.pipeline.trigger(
        request.app.state.db, domain, options
    )
    if not started:
        return {"success": True, "message": "Pipeline already running", **run}
    return {"success": True, "message": "Pipeline started", "domainId": domain.id}


@router.delete("/{domain_id}/pipeline")
async def cancel(domain_id: str, request: Request) -> dict[str, Any]:
    """Cancel the domain's active run."""
    _require_domain(request, domain_id)
    if not request.app.state.pipeline.cancel(domain_id):
        raise HTTPException(status_code=409, detail="No pipeline running for this domain.")
    return {"success": True, "message": "Pipeline cancellation requested"}


@router.get("/{domain_id}/status")
async def status(domain_id: str, request: Request) -> dict[str, Any]:
    """Return run status, per-step state and the run log."""
    domain = _require_domain(request, domain_id)
    return request.app.state.pipeline.status(request.app.state.db, domain)
