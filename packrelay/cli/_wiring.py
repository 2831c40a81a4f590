"""Shared CLI wiring — logging setup and store construction from settings."""

from __future__ import annotations

import logging
from collections.abc import Callable

from rich.console import Console
from rich.logging import RichHandler

from packrelay.bridge.exaroton import ExarotonClient
from packrelay.config import Settings
from packrelay.core.config_store import ConfigStore, LocalConfigStore

console = Console()


def configure_logging(level: str) -> None:
    """Route packrelay logging through Rich at *level*."""
    pkg_logger = logging.getLogger("packrelay")
    pkg_logger.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in pkg_logger.handlers):
        pkg_logger.addHandler(
            RichHandler(console=console, show_path=False, log_time_format="[%X]")
        )


def open_store(settings: Settings) -> tuple[ConfigStore, Callable[[str], None] | None]:
    """Build the config store (and chat announcer, if remote) from settings.

    Raises ``NotFoundError`` if the named server does not exist and
    ``TransportError`` if the API cannot be reached.
    """
    if settings.store_backend == "local":
        return LocalConfigStore(settings.local_config_root), None

    client = ExarotonClient(
        settings.token,
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
    )
    server = client.get_server_by_name(settings.server_name)
    return server.config_store(), server.send_chat_message
