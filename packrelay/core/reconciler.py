"""Publish reconciler — bundle, hash, compare, update.

The Reconciler drives one publish run through a strict state machine:

    init -> bundled -> hashed -> compared -> {updated | skipped} -> done

and ``failed`` from any non-terminal state. Steps run sequentially; the
stored digest is read after hashing since both are independent reads.

URL policy
----------
``UrlPolicy.ALWAYS`` rewrites ``resource-pack`` and ``resource-pack-sha1``
whenever a new artifact was produced, even if the digest matches the stored
one. Because the artifact's filename changes every run, so does the
published URL, and clients re-download the pack. ``UrlPolicy.ON_CHANGE``
skips both writes when the digest is unchanged.

Failure semantics
-----------------
Any collaborator failure aborts the remaining steps. Writes that already
completed are NOT rolled back: a run can end with the URL written and the
digest not. The returned ``ReconcileResult`` (attached to
``ReconcileFailedError``) records the status of every write.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from packrelay.core.archiver import Archiver
from packrelay.core.config_store import ConfigStore
from packrelay.core.errors import PackrelayError
from packrelay.core.hasher import ContentHasher
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

logger = logging.getLogger(__name__)

OPTION_PACK_URL = "resource-pack"
OPTION_PACK_SHA1 = "resource-pack-sha1"


class InvalidTransitionError(PackrelayError):
    """Raised when a requested state transition is not valid."""


class ReconcileFailedError(PackrelayError):
    """Raised when a run ends in ``failed``; carries the run summary."""

    def __init__(self, result: ReconcileResult) -> None:
        written = [w.option for w in result.writes if w.written] or ["none"]
        super().__init__(
            f"Run {result.run_id} failed during {_state_name(result.failed_step)}: "
            f"{result.error} (written: {', '.join(written)})"
        )
        self.result = result


def _state_name(state: ReconcileState | None) -> str:
    return state.value if state is not None else "unknown"


def template_url_builder(template: str) -> Callable[[ArchiveArtifact], str]:
    """Build pack URLs from a template containing ``{filename}``.

    With an empty template the artifact's absolute path is used.
    """

    def _build(artifact: ArchiveArtifact) -> str:
        if not template:
            return str(artifact.path)
        return template.format(filename=artifact.filename)

    return _build


class Reconciler:
    """Runs one publish cycle against a config store.

    Parameters
    ----------
    archiver:
        Bundles the source directory.
    hasher:
        Digests the produced archive.
    store:
        Config store holding ``resource-pack`` and ``resource-pack-sha1``.
    source_dir:
        The resource pack directory to bundle.
    file_name:
        Config file to update.
    url_builder:
        Maps the new artifact to the value written to ``resource-pack``.
    url_policy:
        Whether to rewrite both values when the digest is unchanged.
    announcer:
        Optional callable that broadcasts a message after an update.
    announce_message:
        Message template; ``{filename}``, ``{digest}`` and ``{size}`` are
        substituted. Empty disables the announcement.
    """

    def __init__(
        self,
        archiver: Archiver,
        hasher: ContentHasher,
        store: ConfigStore,
        *,
        source_dir: Path,
        file_name: str = "server.properties",
        url_builder: Callable[[ArchiveArtifact], str] | None = None,
        url_policy: UrlPolicy = UrlPolicy.ALWAYS,
        announcer: Callable[[str], None] | None = None,
        announce_message: str = "",
        run_id: str | None = None,
    ) -> None:
        self.archiver = archiver
        self.hasher = hasher
        self.store = store
        self.source_dir = Path(source_dir)
        self.file_name = file_name
        self.url_builder = url_builder or template_url_builder("")
        self.url_policy = url_policy
        self.announcer = announcer
        self.announce_message = announce_message

        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        self.run_id = run_id or f"pr-{ts}-{uuid.uuid4().hex[:4]}"

        self._state = ReconcileState.INIT
        self._transitions: list[StateTransition] = []
        self._writes: list[ConfigWrite] = []

    @classmethod
    def from_config(
        cls,
        config: PublishConfig,
        store: ConfigStore,
        *,
        announcer: Callable[[str], None] | None = None,
    ) -> Reconciler:
        """Wire a Reconciler from a ``PublishConfig``."""
        return cls(
            Archiver(config.output_dir, preserve_mtime=config.preserve_mtime),
            ContentHasher(config.hash_algorithm, config.chunk_size),
            store,
            source_dir=config.source_dir,
            file_name=config.config_file,
            url_builder=template_url_builder(config.public_url_template),
            url_policy=config.url_policy,
            announcer=announcer,
            announce_message=config.announce_message,
        )

    @property
    def state(self) -> ReconcileState:
        return self._state

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, target: ReconcileState, detail: str = "") -> None:
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        self._transitions.append(
            StateTransition(from_state=self._state, to_state=target, detail=detail)
        )
        logger.debug("Run %s: %s -> %s", self.run_id, self._state.value, target.value)
        self._state = target

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> ReconcileResult:
        """Execute the publish cycle once.

        Returns the run summary. Raises ``ReconcileFailedError`` (carrying
        the summary) if any step fails, and ``InvalidTransitionError`` if
        the Reconciler was already run.
        """
        if self._state != ReconcileState.INIT:
            raise InvalidTransitionError(
                f"Run {self.run_id} already executed (state {self._state.value})"
            )

        step = ReconcileState.BUNDLED
        artifact: ArchiveArtifact | None = None
        old_digest: str | None = None
        new_digest: str | None = None
        pack_url: str | None = None
        changed = False

        try:
            # 1. Bundle
            logger.info("Bundling updated resource pack from %s", self.source_dir)
            artifact = self.archiver.bundle(self.source_dir)
            logger.info(
                "A new %s resource pack has been bundled at %s",
                artifact.size_label,
                artifact.path,
            )
            self._transition(step, artifact.filename)

            # 2. Hash
            step = ReconcileState.HASHED
            new_digest = self.hasher.digest(artifact.path)
            logger.info("Generated %s digest %s", self.hasher.algorithm, new_digest)
            self._transition(step, new_digest)

            # 3. Read the stored digest and compare
            step = ReconcileState.COMPARED
            stored = self.store.get_value(self.file_name, OPTION_PACK_SHA1)
            old_digest = str(stored) if stored else None
            if old_digest is None:
                logger.info("No existing %r value found", OPTION_PACK_SHA1)
            else:
                logger.info("Found existing %r value %s", OPTION_PACK_SHA1, old_digest)
            changed = old_digest != new_digest
            if not changed:
                logger.warning("Unchanged content: new and old digests match")
            self._transition(step, "changed" if changed else "unchanged")

            # 4. Update or skip
            if not changed and self.url_policy == UrlPolicy.ON_CHANGE:
                step = ReconcileState.SKIPPED
                logger.info("Skipping config update; digest unchanged")
                self._transition(step, "digest unchanged")
            else:
                step = ReconcileState.UPDATED
                pack_url = self.url_builder(artifact)
                self._write(OPTION_PACK_URL, pack_url)
                self._write(OPTION_PACK_SHA1, new_digest)
                self._transition(step, f"{len(self._writes)} option(s) written")
                self._announce(artifact, new_digest)

            step = ReconcileState.DONE
            self._transition(step)
        except Exception as exc:
            self._transition(ReconcileState.FAILED, str(exc))
            result = self._result(
                artifact, old_digest, new_digest, pack_url, changed,
                failed_step=step, error=f"{type(exc).__name__}: {exc}",
            )
            logger.error(
                "Run %s failed during %s: %s (pack URL written: %s, digest written: %s)",
                self.run_id,
                step.value,
                exc,
                result.pack_url_written,
                result.digest_written,
            )
            raise ReconcileFailedError(result) from exc

        return self._result(artifact, old_digest, new_digest, pack_url, changed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, option: str, value: str) -> None:
        logger.info("Updating the %r value", option)
        try:
            self.store.set_value(self.file_name, option, value)
        except Exception as exc:
            self._writes.append(
                ConfigWrite(option=option, value=value, written=False, error=str(exc))
            )
            raise
        self._writes.append(ConfigWrite(option=option, value=value, written=True))
        logger.info("Updated %r and saved %s", option, self.file_name)

    def _announce(self, artifact: ArchiveArtifact, digest: str) -> None:
        if self.announcer is None or not self.announce_message:
            return
        # Config is already saved; the run state is unaffected
        try:
            message = self.announce_message.format(
                filename=artifact.filename, digest=digest, size=artifact.size_label
            )
        except (KeyError, IndexError, ValueError) as exc:
            logger.error(
                "Could not format announcement %r: %s: %s",
                self.announce_message,
                type(exc).__name__,
                exc,
            )
            return
        try:
            self.announcer(message)
        except PackrelayError as exc:
            logger.error("Could not announce update: %s", exc)

    def _result(
        self,
        artifact: ArchiveArtifact | None,
        old_digest: str | None,
        new_digest: str | None,
        pack_url: str | None,
        changed: bool,
        *,
        failed_step: ReconcileState | None = None,
        error: str | None = None,
    ) -> ReconcileResult:
        return ReconcileResult(
            run_id=self.run_id,
            state=self._state,
            old_digest=old_digest,
            new_digest=new_digest,
            changed=changed,
            artifact=artifact,
            pack_url=pack_url,
            writes=list(self._writes),
            transitions=list(self._transitions),
            failed_step=failed_step,
            error=error,
        )
