"""Shared helpers for CLI commands: DB access and domain lookup."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

import typer

from smma.db import get_connection, init_db
from smma.db.domains import get_domain, list_domains
from smma.db.models import Domain


@contextmanager
def open_db() -> Iterator[sqlite3.Connection]:
    """Yield an initialised connection to the workspace DB and close it afterwards."""
    conn = get_connection()
    init_db(conn)
    try:
        yield conn
    finally:
        conn.close()


def resolve_domain(conn: sqlite3.Connection, identifier: str) -> Domain:
    """Find a domain by UUID, UUID prefix, URL or name; exit with code 1 if none matches."""
    domain = get_domain(conn, identifier)
    if domain is not None:
        return domain

    matches = [
        d for d in list_domains(conn)
        if d.id.startswith(identifier) or d.url == identifier or d.name == identifier
    ]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        typer.echo(f"❌ Domain not found: {identifier!r}", err=True)
    else:
        typer.echo(f"❌ Ambiguous domain {identifier!r}; use the full id.", err=True)
    raise typer.Exit(1)
