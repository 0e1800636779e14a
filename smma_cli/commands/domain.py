"""Domain management commands."""

from __future__ import annotations

import json
from typing import Optional

import typer

from smma.db.artifacts import ARTIFACT_KINDS, get_artifact
from smma.db.domains import create_domain, delete_domain, list_domains
from smma.db.pages import count_crawled_pages
from smma.db.posts import list_post_drafts
from smma_cli.context import open_db, resolve_domain

domain_app = typer.Typer(help="Register and inspect marketed websites.", no_args_is_help=True)


@domain_app.command("add")
def domain_add(
    url: str = typer.Argument(..., help="Start URL of the website."),
    name: str = typer.Option(..., "--name", help="Brand name."),
    goal: str = typer.Option("drive_traffic", "--goal", help="Primary marketing goal."),
    audience: Optional[str] = typer.Option(None, "--audience", help="Target audience description."),
    tone: str = typer.Option("professional", "--tone", help="Brand voice tone."),
) -> None:
    """Register a new domain."""
    with open_db() as conn:
        domain = create_domain(
            conn,
            url=url,
            name=name,
            primary_goal=goal,
            audience_description=audience,
            brand_voice_tone=tone,
        )
    typer.echo(f"✅ Domain created: {domain.name} ({domain.id})")


@domain_app.command("list")
def domain_list() -> None:
    """List all registered domains."""
    with open_db() as conn:
        domains = list_domains(conn)
        if not domains:
            typer.echo("No domains found.")
            return
        for d in domains:
            pages = count_crawled_pages(conn, d.id)
            typer.echo(f"  {d.id}  {d.name!r}  {d.url}  ({pages} pages)")


@domain_app.command("show")
def domain_show(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
    artifact: Optional[str] = typer.Option(
        None, "--artifact", help=f"Print one artifact as JSON: {', '.join(ARTIFACT_KINDS)}."
    ),
) -> None:
    """Show a domain and which pipeline outputs it already has."""
    with open_db() as conn:
        domain = resolve_domain(conn, identifier)

        if artifact is not None:
            if artifact not in ARTIFACT_KINDS:
                typer.echo(f"❌ Unknown artifact {artifact!r}.", err=True)
                raise typer.Exit(1)
            data = get_artifact(conn, domain.id, artifact)
            if data is None:
                typer.echo(f"No {artifact} stored yet.")
                raise typer.Exit(1)
            typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
            return

        typer.echo(f"{domain.name}  [{domain.id}]")
        typer.echo(f"  URL      : {domain.url}")
        typer.echo(f"  Goal     : {domain.primary_goal}")
        typer.echo(f"  Tone     : {domain.brand_voice_tone}")
        if domain.audience_description:
            typer.echo(f"  Audience : {domain.audience_description}")
        typer.echo(f"  Pages    : {count_crawled_pages(conn, domain.id)}")
        for kind in ARTIFACT_KINDS:
            mark = "✓" if get_artifact(conn, domain.id, kind) is not None else "○"
            typer.echo(f"  {mark} {kind}")
        typer.echo(f"  Drafts   : {len(list_post_drafts(conn, domain.id))}")


@domain_app.command("remove")
def domain_remove(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a domain with its pages, artifacts and drafts."""
    with open_db() as conn:
        domain = resolve_domain(conn, identifier)
        if not yes:
            typer.confirm(f"Delete {domain.name!r} and all its data?", abort=True)
        delete_domain(conn, domain.id)
    typer.echo(f"🗑️  Deleted domain {domain.name} ({domain.id})")
