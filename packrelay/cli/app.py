"""Main Typer application — imports and registers all CLI commands.

Entry point: ``packrelay`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from packrelay.cli.commands.bundle import bundle_cmd
from packrelay.cli.commands.hash_cmd import hash_cmd
from packrelay.cli.commands.publish import publish_cmd
from packrelay.cli.commands.show import show_cmd

app = typer.Typer(
    name="packrelay",
    help="packrelay: bundle a resource pack and publish it to a game server.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="publish", help="Bundle, hash, and update the server config once.")(publish_cmd)
app.command(name="bundle", help="Bundle the resource pack without publishing.")(bundle_cmd)
app.command(name="hash", help="Print the digest of a file.")(hash_cmd)
app.command(name="show", help="Show the current resource pack config values.")(show_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
