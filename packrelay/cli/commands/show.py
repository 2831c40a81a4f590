"""``packrelay show`` — display the current resource pack config values."""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from packrelay.cli._wiring import configure_logging, console, open_store
from packrelay.config import Settings
from packrelay.core.config_store import ABSENT
from packrelay.core.errors import PackrelayError
from packrelay.core.reconciler import OPTION_PACK_SHA1, OPTION_PACK_URL


def show_cmd() -> None:
    """Show the stored resource-pack and resource-pack-sha1 values."""
    settings = Settings()
    configure_logging(settings.log_level)

    try:
        store, _ = open_store(settings)
        values = {
            option: store.get_value(settings.config_file, option)
            for option in (OPTION_PACK_URL, OPTION_PACK_SHA1)
        }
    except PackrelayError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title=settings.config_file)
    table.add_column("Option", style="cyan")
    table.add_column("Value")
    for option, value in values.items():
        table.add_row(option, "[dim]not set[/dim]" if value is ABSENT else _display(value))
    console.print(table)


def _display(value: str) -> str:
    # Undecodable bytes were read with surrogateescape
    text = value.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    return escape(text)
