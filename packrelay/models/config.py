"""Publish configuration model."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from packrelay.models.reconcile import UrlPolicy

# Placeholders each template may reference
URL_FIELDS = ("filename",)
ANNOUNCE_FIELDS = ("filename", "digest", "size")


def check_template(template: str, fields: tuple[str, ...]) -> str:
    """Raise ``ValueError`` unless *template* formats with only *fields*."""
    try:
        template.format(**{name: "" for name in fields})
    except (KeyError, IndexError, ValueError) as exc:
        allowed = ", ".join("{%s}" % name for name in fields)
        raise ValueError(
            f"invalid template {template!r} ({type(exc).__name__}: {exc}); "
            f"allowed placeholders: {allowed}"
        ) from exc
    return template


class PublishConfig(BaseModel):
    """Per-invocation publish configuration.

    Built from ``Settings`` by the CLI, or directly in tests.
    """

    model_config = ConfigDict(frozen=True)

    source_dir: Path = Path("texturePack")
    output_dir: Path = Path("build")
    config_file: str = "server.properties"
    public_url_template: str = ""  # e.g. "https://host/packs/{filename}"
    url_policy: UrlPolicy = UrlPolicy.ALWAYS
    hash_algorithm: str = "sha1"
    chunk_size: int = 256 * 1024
    preserve_mtime: bool = False
    announce_message: str = ""

    @field_validator("public_url_template")
    @classmethod
    def _check_url_template(cls, v: str) -> str:
        return check_template(v, URL_FIELDS)

    @field_validator("announce_message")
    @classmethod
    def _check_announce_message(cls, v: str) -> str:
        return check_template(v, ANNOUNCE_FIELDS)
