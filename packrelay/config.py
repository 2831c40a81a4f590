"""Runtime settings — env-driven via pydantic-settings.

Reads from a .env file and PACKRELAY_* environment variables.

Examples
--------
Override via environment::

    export PACKRELAY_TOKEN=...
    export PACKRELAY_SERVER_NAME=wpMoreCraft
    export PACKRELAY_PUBLIC_URL_TEMPLATE=https://example.com/packs/{filename}

Or run against a local server directory::

    PACKRELAY_STORE_BACKEND=local
    PACKRELAY_LOCAL_CONFIG_ROOT=/srv/minecraft
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from packrelay.models.config import PublishConfig
from packrelay.models.reconcile import UrlPolicy


class Settings(BaseSettings):
    """packrelay settings with environment variable overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PACKRELAY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote server
    token: str = ""
    server_name: str = ""
    api_base_url: str = "https://api.exaroton.com/v1"
    request_timeout: float = 30.0

    # Config store
    store_backend: Literal["exaroton", "local"] = "exaroton"
    local_config_root: Path = Path(".")
    config_file: str = "server.properties"

    # Bundling and hashing
    source_dir: Path = Path("texturePack")
    output_dir: Path = Path("build")
    preserve_mtime: bool = False
    hash_algorithm: str = "sha1"
    chunk_size: int = Field(default=256 * 1024, gt=0)

    # Publishing
    public_url_template: str = ""
    url_policy: UrlPolicy = UrlPolicy.ALWAYS
    announce_message: str = ""

    # Observability
    log_level: str = "INFO"

    def to_publish_config(self, **overrides: object) -> PublishConfig:
        """Build the frozen per-run ``PublishConfig`` from these settings."""
        values: dict[str, object] = {
            "source_dir": self.source_dir,
            "output_dir": self.output_dir,
            "config_file": self.config_file,
            "public_url_template": self.public_url_template,
            "url_policy": self.url_policy,
            "hash_algorithm": self.hash_algorithm,
            "chunk_size": self.chunk_size,
            "preserve_mtime": self.preserve_mtime,
            "announce_message": self.announce_message,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return PublishConfig(**values)
