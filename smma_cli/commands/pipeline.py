"""Foreground pipeline execution."""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer

from smma.agent.orchestrator import TaskStatus
from smma.agent.platforms import DEFAULT_PLATFORMS, PLATFORM_CONSTRAINTS
from smma.agent.runner import PipelineService
from smma.agent.steps import PipelineOptions
from smma.config import settings
from smma_cli.context import open_db, resolve_domain

pipeline_app = typer.Typer(help="Run the marketing pipeline.", no_args_is_help=True)


@pipeline_app.command("run")
def pipeline_run(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
    max_pages: int = typer.Option(settings.pipeline_max_pages, "--max-pages", min=1),
    max_depth: int = typer.Option(settings.pipeline_max_depth, "--max-depth", min=0),
    no_posts: bool = typer.Option(False, "--no-posts", help="Skip storing post drafts."),
    preferences: Optional[str] = typer.Option(
        None, "--preferences", help="JSON object forwarded to the content strategy step."
    ),
    personas: bool = typer.Option(False, "--personas", help="Also generate audience personas."),
    llm_posts: bool = typer.Option(
        False, "--llm-posts", help="Have the LLM write each draft within platform limits."
    ),
    platforms: str = typer.Option(
        ",".join(DEFAULT_PLATFORMS), "--platforms", help="Comma-separated platforms for --llm-posts."
    ),
) -> None:
    """Crawl (if needed) and run every pipeline step for a domain.

    Exits with code 1 unless every task finished.
    """
    try:
        prefs = json.loads(preferences) if preferences else {}
    except json.JSONDecodeError as exc:
        typer.echo(f"❌ --preferences is not valid JSON: {exc}", err=True)
        raise typer.Exit(1)
    if not isinstance(prefs, dict):
        typer.echo("❌ --preferences must be a JSON object.", err=True)
        raise typer.Exit(1)

    platform_list = [p.strip() for p in platforms.split(",") if p.strip()]
    unknown = [p for p in platform_list if p not in PLATFORM_CONSTRAINTS]
    if unknown or not platform_list:
        typer.echo(
            f"❌ --platforms must name any of: {', '.join(PLATFORM_CONSTRAINTS)}", err=True
        )
        raise typer.Exit(1)

    options = PipelineOptions(
        max_pages=max_pages,
        max_depth=max_depth,
        generate_posts=not no_posts,
        preferences=prefs,
        generate_personas=personas,
        llm_posts=llm_posts,
        platforms=platform_list,
    )

    with open_db() as conn:
        domain = resolve_domain(conn, identifier)
        typer.echo(f"🚀 Running pipeline for {domain.name} ({domain.url})")
        service = PipelineService()
        statuses = asyncio.run(service.run(conn, domain, options))
        run = service.registry.snapshot(domain.id) or {}

    if run.get("error"):
        typer.echo(f"❌ {run['error']}", err=True)
    if not statuses or any(s is not TaskStatus.DONE for s in statuses.values()):
        raise typer.Exit(1)
    typer.echo("🎉 All steps complete.")
