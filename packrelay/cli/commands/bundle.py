"""``packrelay bundle`` — build an archive and print its digest, no publish."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.markup import escape

from packrelay.cli._wiring import configure_logging, console
from packrelay.config import Settings
from packrelay.core.archiver import Archiver
from packrelay.core.errors import PackrelayError
from packrelay.core.hasher import ContentHasher


def bundle_cmd(
    source_dir: Path = typer.Option(
        None, "--source", "-s", help="Resource pack directory to bundle."
    ),
    output_dir: Path = typer.Option(
        None, "--output", "-o", help="Directory receiving the archive."
    ),
) -> None:
    """Bundle the resource pack directory into a new archive."""
    settings = Settings()
    configure_logging(settings.log_level)
    try:
        config = settings.to_publish_config(source_dir=source_dir, output_dir=output_dir)
    except ValidationError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    try:
        artifact = Archiver(
            config.output_dir, preserve_mtime=config.preserve_mtime
        ).bundle(config.source_dir)
        digest = ContentHasher(config.hash_algorithm, config.chunk_size).digest(
            artifact.path
        )
    except PackrelayError as exc:
        console.print(f"[bold red]Bundle failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(
        f"[bold green]Bundled[/bold green] {artifact.entry_count} file(s) "
        f"into {artifact.path} ({artifact.size_label})"
    )
    console.print(f"[bold]{config.hash_algorithm}:[/bold] {digest}")
