"""``packrelay publish`` — bundle, hash, and update the server config once.

Runs the Reconciler a single time under the output directory's run lock and
prints the run summary. On failure the summary states which of the two
config values were written before the error, then exits with code 1.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from packrelay.cli._wiring import configure_logging, console, open_store
from packrelay.config import Settings
from packrelay.core.errors import PackrelayError
from packrelay.core.reconciler import (
    OPTION_PACK_SHA1,
    OPTION_PACK_URL,
    ReconcileFailedError,
    Reconciler,
)
from packrelay.core.run_lock import RunLock
from packrelay.models.reconcile import ReconcileResult, UrlPolicy


def publish_cmd(
    source_dir: Path = typer.Option(
        None, "--source", "-s", help="Resource pack directory to bundle."
    ),
    output_dir: Path = typer.Option(
        None, "--output", "-o", help="Directory receiving the archives."
    ),
    url_policy: UrlPolicy = typer.Option(
        None, "--url-policy", help="Rewrite the pack URL 'always' or only 'on_change'."
    ),
    server_name: str = typer.Option(
        None, "--server", help="Exaroton server name (overrides PACKRELAY_SERVER_NAME)."
    ),
) -> None:
    """Publish the resource pack: bundle, hash, and update server.properties."""
    settings = Settings()
    if server_name:
        settings = settings.model_copy(update={"server_name": server_name})
    configure_logging(settings.log_level)

    try:
        config = settings.to_publish_config(
            source_dir=source_dir, output_dir=output_dir, url_policy=url_policy
        )
    except ValidationError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    try:
        store, announcer = open_store(settings)
        with RunLock(config.output_dir):
            result = Reconciler.from_config(config, store, announcer=announcer).run()
    except ReconcileFailedError as exc:
        print_summary(exc.result)
        console.print(f"[bold red]Publish failed:[/bold red] {exc.result.error}")
        raise typer.Exit(code=1)
    except PackrelayError as exc:
        console.print(f"[bold red]Publish failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    print_summary(result)


def print_summary(result: ReconcileResult) -> None:
    """Render a run summary panel and the per-option write table."""
    style = "green" if result.succeeded else "red"
    lines = [
        f"[bold]Run ID:[/bold]     {result.run_id}",
        f"[bold]State:[/bold]      [{style}]{result.state.value}[/{style}]",
        f"[bold]Old digest:[/bold] {result.old_digest or '[dim]none[/dim]'}",
        f"[bold]New digest:[/bold] {result.new_digest or '[dim]none[/dim]'}",
        f"[bold]Changed:[/bold]    {'yes' if result.changed else 'no'}",
    ]
    if result.artifact is not None:
        lines.append(
            f"[bold]Archive:[/bold]    {result.artifact.path} ({result.artifact.size_label})"
        )
    if result.failed_step is not None:
        lines.append(f"[bold]Failed at:[/bold]  {result.failed_step.value}")

    console.print(
        Panel("\n".join(lines), title="[bold]Resource Pack Publish[/bold]", border_style=style)
    )

    table = Table(title="Config writes")
    table.add_column("Option", style="cyan")
    table.add_column("Value")
    table.add_column("Written", justify="center")
    attempted = {w.option: w for w in result.writes}
    for option in (OPTION_PACK_URL, OPTION_PACK_SHA1):
        write = attempted.get(option)
        if write is None:
            table.add_row(option, "[dim]-[/dim]", "[yellow]No[/yellow]")
        elif write.written:
            table.add_row(option, write.value, "[green]Yes[/green]")
        else:
            table.add_row(option, write.value, f"[red]No[/red] ({write.error})")
    console.print(table)
