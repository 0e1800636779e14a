"""SMMA CLI, entry-point for all backend operations.

Usage:
    smma --help

Command groups:
    db        database setup
    domain    register and inspect websites
    crawl     crawl a domain's website
    pipeline  run the marketing pipeline
    personas  generate and inspect audience personas
    posts     review post drafts
    settings  LLM provider configuration
"""

from __future__ import annotations

import asyncio

import typer

from smma.config import settings
from smma.crawler.crawler import crawl_domain
from smma.db import get_connection, init_db
from smma_cli.commands.domain import domain_app
from smma_cli.commands.personas import personas_app
from smma_cli.commands.pipeline import pipeline_app
from smma_cli.commands.posts import posts_app
from smma_cli.commands.settings import settings_app
from smma_cli.context import open_db, resolve_domain

app = typer.Typer(
    name="smma",
    help="Social media marketing agent CLI.",
    no_args_is_help=True,
)

app.add_typer(domain_app, name="domain")
app.add_typer(pipeline_app, name="pipeline")
app.add_typer(personas_app, name="personas")
app.add_typer(posts_app, name="posts")
app.add_typer(settings_app, name="settings")

# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------
@app.command("crawl")
def crawl(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
    max_pages: int = typer.Option(settings.crawl_max_pages, "--max-pages", min=1),
    max_depth: int = typer.Option(settings.crawl_max_depth, "--max-depth", min=0),
) -> None:
    """Crawl a domain's website and replace its stored pages."""
    with open_db() as conn:
        domain = resolve_domain(conn, identifier)
        typer.echo(f"[crawl] Crawling {domain.url} (max {max_pages} pages, depth {max_depth}) …")
        try:
            pages = asyncio.run(
                crawl_domain(conn, domain.id, domain.url, max_pages=max_pages, max_depth=max_depth)
            )
        except ValueError as exc:
            typer.echo(f"[crawl] {exc}", err=True)
            raise typer.Exit(1)

    for page in pages:
        typer.echo(f"  [{page.page_type:<8}] {page.url}  {page.title!r}")
    typer.echo(f"[crawl] Stored {len(pages)} page(s).")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
