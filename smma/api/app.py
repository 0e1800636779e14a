"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``), initialises the schema and creates
the :class:`~smma.agent.runner.PipelineService` that owns every background
pipeline run (``request.app.state.pipeline``).  On shutdown active runs are
cancelled before the connection is closed.

Routers
-------
    /domains   Domain CRUD, crawling, pipeline trigger/status, artifacts, drafts,
              personas
    /posts     Single post drafts and bulk status changes
    /settings  LLM provider configuration
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smma import __version__
from smma.agent.runner import PipelineService
from smma.db import get_connection, init_db

from smma.api.routers import domains as domains_router
from smma.api.routers import personas as personas_router
from smma.api.routers import pipeline as pipeline_router
from smma.api.routers import posts as posts_router
from smma.api.routers import settings as settings_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and the pipeline service on startup, tear both down on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    app.state.pipeline = PipelineService()
    try:
        yield
    finally:
        await app.state.pipeline.shutdown()
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="SMMA API",
        description=(
            "REST interface for the social media marketing agent. Registers "
            "domains, crawls their websites and runs the LLM marketing pipeline "
            "(site analysis, competitors, positioning, strategy, calendar)."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(domains_router.router, prefix="/domains", tags=["domains"])
    app.include_router(pipeline_router.router, prefix="/domains", tags=["pipeline"])
    app.include_router(personas_router.router, prefix="/domains", tags=["personas"])
    app.include_router(posts_router.router, prefix="/posts", tags=["posts"])
    app.include_router(settings_router.router, prefix="/settings", tags=["settings"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn smma.api.app:app --reload
app = create_app()
