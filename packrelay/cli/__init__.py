"""packrelay CLI — Typer-based command-line interface.

Provides the ``packrelay`` command with subcommands for publishing the
resource pack once, bundling or hashing without publishing, and showing
the currently configured pack values.

All output uses Rich for formatted terminal display.
"""
