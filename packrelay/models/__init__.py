"""packrelay data models — all Pydantic v2, all frozen (immutable)."""

from packrelay.models.artifacts import ArchiveArtifact
from packrelay.models.config import PublishConfig
from packrelay.models.reconcile import (
    VALID_TRANSITIONS,
    ConfigWrite,
    ReconcileResult,
    ReconcileState,
    StateTransition,
    UrlPolicy,
)

__all__ = [
    # artifacts
    "ArchiveArtifact",
    # reconcile
    "ReconcileState",
    "VALID_TRANSITIONS",
    "UrlPolicy",
    "StateTransition",
    "ConfigWrite",
    "ReconcileResult",
    # config
    "PublishConfig",
]
