"""Post draft commands."""

from __future__ import annotations

from typing import Optional

import typer

from smma.db.posts import POST_STATUSES, bulk_update_post_status, list_post_drafts
from smma_cli.context import open_db, resolve_domain

posts_app = typer.Typer(help="Review post drafts.", no_args_is_help=True)


@posts_app.command("list")
def posts_list(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Only this platform."),
    status: Optional[str] = typer.Option(None, "--status", help="Only drafts with this status."),
) -> None:
    """List a domain's drafts ordered by scheduled date."""
    with open_db() as conn:
        domain = resolve_domain(conn, identifier)
        drafts = list_post_drafts(conn, domain.id, platform=platform, status=status)
    if not drafts:
        typer.echo("No post drafts found.")
        return
    for d in drafts:
        typer.echo(f"  {d.id}  {d.scheduled_date or '----------'}  [{d.platform}/{d.status}]")
        typer.echo(f"      {d.text}")
        if d.hashtags:
            typer.echo(f"      {' '.join(d.hashtags)}")


@posts_app.command("set-status")
def posts_set_status(
    status: str = typer.Argument(..., help=f"One of: {', '.join(POST_STATUSES)}."),
    draft_ids: list[str] = typer.Argument(..., help="Draft ids to update."),
) -> None:
    """Set the same status on one or more drafts."""
    with open_db() as conn:
        try:
            updated = bulk_update_post_status(conn, draft_ids, status)
        except ValueError as exc:
            typer.echo(f"❌ {exc}", err=True)
            raise typer.Exit(1)
    typer.echo(f"✅ Updated {updated} draft(s) to {status}.")
