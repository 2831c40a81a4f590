"""Exaroton REST API client — server lookup, config files, console commands.

Bridge boundary
---------------
The Reconciler never talks to Exaroton directly. It receives a
``ConfigStore`` (``ExarotonConfigStore``) and, optionally, an announcer
callable; both are built from the ``ExarotonServer`` handle returned by
``ExarotonClient.get_server_by_name``.

Every response is wrapped in ``{"success": bool, "error": str, "data": ...}``.
A ``success: false`` envelope, a non-2xx status, or a network failure is
raised as ``TransportError``.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict

from packrelay.core.config_store import ExarotonConfigStore
from packrelay.core.errors import NotFoundError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.exaroton.com/v1"


class ServerInfo(BaseModel):
    """The subset of an Exaroton server record packrelay uses."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    address: str = ""
    status: int = 0


class ExarotonClient:
    """Minimal authenticated client for the Exaroton API.

    Parameters
    ----------
    token:
        Exaroton API token (account settings → API).
    base_url:
        API root, overridable for testing.
    timeout:
        Per-request timeout in seconds.
    session:
        Optional pre-configured ``requests.Session``.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise TransportError("An Exaroton API token is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "User-Agent": "packrelay",
            }
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Any | None = None,
    ) -> Any:
        """Perform an API call and return the envelope's ``data`` field."""
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        logger.debug("Exaroton %s %s", method, url)
        try:
            resp = self._session.request(
                method, url, json=json_body, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {endpoint} failed: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if not resp.ok or not isinstance(payload, dict) or not payload.get("success"):
            message = ""
            if isinstance(payload, dict):
                message = payload.get("error") or ""
            raise TransportError(
                f"{method} {endpoint} returned HTTP {resp.status_code}"
                + (f": {message}" if message else "")
            )
        return payload.get("data")

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------

    def get_servers(self) -> list[ExarotonServer]:
        """List every server the token can access."""
        data = self.request("GET", "servers/") or []
        return [ExarotonServer(self, ServerInfo.model_validate(item)) for item in data]

    def get_server_by_name(self, name: str) -> ExarotonServer:
        """Resolve a human-readable server name to a server handle.

        Raises ``NotFoundError`` if no server has exactly that name.
        """
        for server in self.get_servers():
            if server.name == name:
                logger.info("Resolved server %r to id %s", name, server.id)
                return server
        raise NotFoundError(f"No Exaroton server named {name!r}")


class ExarotonServer:
    """Handle on a single Exaroton server."""

    def __init__(self, client: ExarotonClient, info: ServerInfo) -> None:
        self._client = client
        self.info = info

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def name(self) -> str:
        return self.info.name

    def _config_endpoint(self, path: str) -> str:
        return f"servers/{self.id}/files/config/{quote(path.lstrip('/'), safe='/')}"

    def get_config_options(self, path: str) -> list[dict[str, Any]]:
        """Return the parsed options of a config file (``key``/``value`` dicts)."""
        data = self._client.request("GET", self._config_endpoint(path))
        return list(data or [])

    def save_config_options(self, path: str, values: dict[str, str]) -> None:
        """Update options of a config file and save it on the server."""
        self._client.request("POST", self._config_endpoint(path), json_body=values)

    def execute_command(self, command: str) -> None:
        """Run a console command on the server."""
        self._client.request(
            "POST", f"servers/{self.id}/command/", json_body={"command": command}
        )

    def config_store(self) -> ExarotonConfigStore:
        """Return a ``ConfigStore`` backed by this server's config files."""
        return ExarotonConfigStore(self)

    def send_chat_message(self, message: str) -> None:
        """Broadcast *message* in the server chat via ``say``."""
        self.execute_command(f"say {message}")
        logger.info("Sent chat message on %s: %r", self.name, message)
