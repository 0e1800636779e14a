"""LLM provider settings commands."""

from __future__ import annotations

import typer

from smma.db.settings_store import delete_setting, get_all_settings, set_setting
from smma.llm.providers import ACTIVE_PROVIDER_KEY, PROVIDERS, mask_settings
from smma_cli.context import open_db

settings_app = typer.Typer(help="Configure the LLM provider.", no_args_is_help=True)


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting key, e.g. active_provider or openai_api_key."),
    value: str = typer.Argument(..., help="Value to store; an empty string deletes the key."),
) -> None:
    """Store one setting."""
    if key == ACTIVE_PROVIDER_KEY and value and value not in PROVIDERS:
        typer.echo(f"❌ Unknown provider {value!r}. Choose from: {', '.join(PROVIDERS)}", err=True)
        raise typer.Exit(1)
    with open_db() as conn:
        if value:
            set_setting(conn, key, value)
            typer.echo(f"✅ {key} saved")
        else:
            delete_setting(conn, key)
            typer.echo(f"🗑️  {key} removed")


@settings_app.command("show")
def settings_show() -> None:
    """Print stored settings with API keys masked."""
    with open_db() as conn:
        stored = mask_settings(get_all_settings(conn))
    if not stored:
        typer.echo("No settings stored (environment defaults apply).")
        return
    for key, value in stored.items():
        typer.echo(f"  {key} = {value}")
