"""Archive artifact model (immutable once created)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ArchiveArtifact(BaseModel):
    """A bundled resource pack archive on disk.

    The creation token is embedded in ``filename`` so successive runs never
    share a path. Old artifacts are left in place; retention is the
    caller's business.
    """

    model_config = ConfigDict(frozen=True)

    path: Path  # absolute
    filename: str
    size_bytes: int
    entry_count: int = 0
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def size_label(self) -> str:
        """Human-readable size in megabytes, e.g. ``"1.2mb"``."""
        megabytes = round(self.size_bytes / 1_000_000, 1)
        return f"{megabytes:g}mb"
