"""Audience persona commands."""

from __future__ import annotations

import asyncio
import json

import typer

from smma.agent.steps import generate_personas
from smma.db.models import Persona
from smma.db.personas import list_personas
from smma.llm.client import LLMClient
from smma.llm.providers import LLMError
from smma_cli.context import open_db, resolve_domain

personas_app = typer.Typer(help="Generate and inspect audience personas.", no_args_is_help=True)


def _echo_persona(persona: Persona, verbose: bool) -> None:
    marker = "★" if persona.is_primary else " "
    edited = "" if persona.is_ai_generated else "  (edited)"
    typer.echo(f"{marker} {persona.avatar_emoji} {persona.name}  {persona.id}{edited}")
    if verbose:
        typer.echo(json.dumps(persona.data, indent=2, ensure_ascii=False))


@personas_app.command("list")
def personas_list(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print each persona's details."),
) -> None:
    """List a domain's personas, primary first."""
    with open_db() as conn:
        domain = resolve_domain(conn, identifier)
        personas = list_personas(conn, domain.id)
    if not personas:
        typer.echo("No personas yet. Run `smma personas generate`.")
        return
    for persona in personas:
        _echo_persona(persona, verbose)


@personas_app.command("generate")
def personas_generate(
    identifier: str = typer.Argument(..., help="Domain UUID (or prefix), URL or name."),
) -> None:
    """Generate buyer personas with the LLM (replaces unedited ones)."""
    with open_db() as conn:
        domain = resolve_domain(conn, identifier)
        typer.echo(f"[personas] Generating personas for {domain.name} …")
        try:
            personas = asyncio.run(generate_personas(conn, domain, LLMClient.for_connection(conn)))
        except LLMError as exc:
            typer.echo(f"❌ {exc}", err=True)
            raise typer.Exit(1)

    for persona in personas:
        _echo_persona(persona, verbose=False)
    typer.echo(f"[personas] Stored {len(personas)} persona(s).")
