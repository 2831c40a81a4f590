"""Reconcile run models — state machine states, transitions, and run summary."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from packrelay.models.artifacts import ArchiveArtifact


class ReconcileState(str, Enum):
    """States of a single publish run."""

    INIT = "init"
    BUNDLED = "bundled"
    HASHED = "hashed"
    COMPARED = "compared"
    UPDATED = "updated"
    SKIPPED = "skipped"
    DONE = "done"
    FAILED = "failed"


# Valid state transitions, enforced by the Reconciler.
# Terminal states (DONE, FAILED) have no outgoing transitions.
VALID_TRANSITIONS: dict[ReconcileState, set[ReconcileState]] = {
    ReconcileState.INIT: {ReconcileState.BUNDLED, ReconcileState.FAILED},
    ReconcileState.BUNDLED: {ReconcileState.HASHED, ReconcileState.FAILED},
    ReconcileState.HASHED: {ReconcileState.COMPARED, ReconcileState.FAILED},
    ReconcileState.COMPARED: {
        ReconcileState.UPDATED,
        ReconcileState.SKIPPED,
        ReconcileState.FAILED,
    },
    ReconcileState.UPDATED: {ReconcileState.DONE, ReconcileState.FAILED},
    ReconcileState.SKIPPED: {ReconcileState.DONE, ReconcileState.FAILED},
    ReconcileState.DONE: set(),  # terminal
    ReconcileState.FAILED: set(),  # terminal
}


class UrlPolicy(str, Enum):
    """When to rewrite the ``resource-pack`` URL.

    ``ALWAYS`` rewrites both values whenever a new artifact is produced,
    even if the digest is unchanged. ``ON_CHANGE`` skips both writes when
    the digest matches the stored one.
    """

    ALWAYS = "always"
    ON_CHANGE = "on_change"


class StateTransition(BaseModel):
    """Records a single state transition of a run."""

    model_config = ConfigDict(frozen=True)

    from_state: ReconcileState
    to_state: ReconcileState
    detail: str = ""


class ConfigWrite(BaseModel):
    """Outcome of one attempted config option write."""

    model_config = ConfigDict(frozen=True)

    option: str
    value: str
    written: bool
    error: str | None = None


class ReconcileResult(BaseModel):
    """Summary of a publish run.

    Produced by the Reconciler whether the run succeeds or fails; a failed
    run's result is attached to the raised ``ReconcileFailedError``.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    state: ReconcileState
    old_digest: str | None = None
    new_digest: str | None = None
    changed: bool = False
    artifact: ArchiveArtifact | None = None
    pack_url: str | None = None
    writes: list[ConfigWrite] = Field(default_factory=list)
    transitions: list[StateTransition] = Field(default_factory=list)
    failed_step: ReconcileState | None = None
    error: str | None = None

    def _was_written(self, option: str) -> bool:
        return any(w.option == option and w.written for w in self.writes)

    @property
    def pack_url_written(self) -> bool:
        """Whether the ``resource-pack`` option was durably written."""
        return self._was_written("resource-pack")

    @property
    def digest_written(self) -> bool:
        """Whether the ``resource-pack-sha1`` option was durably written."""
        return self._was_written("resource-pack-sha1")

    @property
    def succeeded(self) -> bool:
        return self.state == ReconcileState.DONE
