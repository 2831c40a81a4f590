"""``packrelay hash FILE`` — print a file's streaming digest."""

from __future__ import annotations

from pathlib import Path

import typer

from packrelay.cli._wiring import console
from packrelay.core.errors import NotFoundError
from packrelay.core.hasher import DEFAULT_ALGORITHM, ContentHasher


def hash_cmd(
    path: Path = typer.Argument(..., help="File to hash."),
    algorithm: str = typer.Option(
        DEFAULT_ALGORITHM, "--algorithm", "-a", help="hashlib algorithm name."
    ),
) -> None:
    """Print the hex digest of FILE."""
    try:
        digest = ContentHasher(algorithm).digest(path)
    except (NotFoundError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print(digest, highlight=False)
