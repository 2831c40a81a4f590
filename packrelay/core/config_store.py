"""Read/update contract over a flat key-value server config file.

``get_value`` never treats a missing option as an error unless the caller
asks for it: a missing ``resource-pack-sha1`` is the normal first-run state.
``set_value`` stages the change on a copy of the last durable document and
persists it; if persisting fails the staged copy is discarded, so the store
never reports a value that was not saved.

Backends
--------
LocalConfigStore
    A ``server.properties`` file on local disk, saved atomically.
InMemoryConfigStore
    Documents held in memory, with optional save-failure injection.
ExarotonConfigStore
    A config file on an Exaroton-hosted server (see ``packrelay.bridge``).
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from packrelay.core.errors import OptionNotFoundError, PersistError, TransportError
from packrelay.core.properties import ConfigDocument

if TYPE_CHECKING:
    from packrelay.bridge.exaroton import ExarotonServer

logger = logging.getLogger(__name__)

# Bytes that are not valid UTF-8 (e.g. Latin-1 text) are carried through
# reads and saves unchanged.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class _Absent:
    """Sentinel type for an option that is not present in a document."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ConfigStore(Protocol):
    """Protocol for config-file backends used by the Reconciler."""

    def get_value(
        self, file_name: str, option: str, *, required: bool = False
    ) -> str | _Absent:
        """Return the option's value, or ``ABSENT`` if it is not set.

        Raises ``OptionNotFoundError`` instead when *required* is true.
        """
        ...

    def set_value(self, file_name: str, option: str, value: str) -> None:
        """Set the option and persist the document.

        Raises ``PersistError`` if the save fails; nothing is changed then.
        """
        ...


# ---------------------------------------------------------------------------
# Shared read / stage / persist logic
# ---------------------------------------------------------------------------


class DocumentConfigStore(ABC):
    """Base class implementing the store contract over whole documents.

    Subclasses provide ``_load`` (fetch the durable document) and
    ``_persist`` (save a staged document).
    """

    @abstractmethod
    def _load(self, file_name: str) -> ConfigDocument:
        """Fetch the current durable document."""

    @abstractmethod
    def _persist(
        self, file_name: str, document: ConfigDocument, changes: dict[str, str]
    ) -> None:
        """Durably save *document*; *changes* lists the options that differ.

        Must raise ``PersistError`` on failure.
        """

    def read_document(self, file_name: str) -> ConfigDocument:
        """Return a copy of the current durable document."""
        return self._load(file_name).copy()

    def get_value(
        self, file_name: str, option: str, *, required: bool = False
    ) -> str | _Absent:
        value = self._load(file_name).get(option)
        if value is None:
            if required:
                raise OptionNotFoundError(file_name, option)
            return ABSENT
        return value

    def set_value(self, file_name: str, option: str, value: str) -> None:
        staged = self._load(file_name).copy()
        staged.set(option, value)
        try:
            self._persist(file_name, staged, {option: value})
        except PersistError:
            logger.warning(
                "Save of %s failed; discarded staged change to %r", file_name, option
            )
            raise
        logger.info("Saved %s with %s=%s", file_name, option, value)


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class LocalConfigStore(DocumentConfigStore):
    """Config files under a local directory.

    Saves go through a temporary file and ``os.replace`` so a crash never
    leaves a half-written document.

    Parameters
    ----------
    root:
        Directory containing the config files (e.g. the server directory).
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def _path(self, file_name: str) -> Path:
        return self._root / file_name

    def _load(self, file_name: str) -> ConfigDocument:
        path = self._path(file_name)
        if not path.exists():
            return ConfigDocument()
        with path.open("r", encoding=_ENCODING, errors=_ERRORS, newline="") as fh:
            return ConfigDocument.parse(fh.read())

    def _persist(
        self, file_name: str, document: ConfigDocument, changes: dict[str, str]
    ) -> None:
        path = self._path(file_name)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
            )
            with os.fdopen(
                fd, "w", encoding=_ENCODING, errors=_ERRORS, newline=""
            ) as fh:
                fh.write(document.to_text())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistError(f"Could not save {path}: {exc}") from exc


class InMemoryConfigStore(DocumentConfigStore):
    """Config documents held in memory.

    Parameters
    ----------
    files:
        Initial document texts keyed by file name.
    fail_on:
        Option names whose save raises ``PersistError``.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        *,
        fail_on: set[str] | None = None,
    ) -> None:
        self._texts: dict[str, str] = dict(files or {})
        self.fail_on: set[str] = set(fail_on or ())
        self.save_count = 0

    def text(self, file_name: str) -> str:
        """Return the durable text of a document (empty if never saved)."""
        return self._texts.get(file_name, "")

    def _load(self, file_name: str) -> ConfigDocument:
        return ConfigDocument.parse(self._texts.get(file_name, ""))

    def _persist(
        self, file_name: str, document: ConfigDocument, changes: dict[str, str]
    ) -> None:
        failing = self.fail_on.intersection(changes)
        if failing:
            raise PersistError(
                f"Simulated save failure for {file_name} ({', '.join(sorted(failing))})"
            )
        self._texts[file_name] = document.to_text()
        self.save_count += 1


class ExarotonConfigStore(DocumentConfigStore):
    """Config files of an Exaroton server, via its config-file API.

    The remote API exposes a file's options as a flat list; only the
    changed options are sent on save, so the server keeps every other key
    and its own ordering.
    """

    def __init__(self, server: ExarotonServer) -> None:
        self._server = server

    def _load(self, file_name: str) -> ConfigDocument:
        options = self._server.get_config_options(file_name)
        return ConfigDocument.from_mapping(
            {
                str(option["key"]): _option_text(option.get("value"))
                for option in options
                if option.get("key")
            }
        )

    def _persist(
        self, file_name: str, document: ConfigDocument, changes: dict[str, str]
    ) -> None:
        try:
            self._server.save_config_options(file_name, changes)
        except TransportError as exc:
            raise PersistError(
                f"Could not save {file_name} on server {self._server.name!r}: {exc}"
            ) from exc


def _option_text(value: Any) -> str:
    """Render a remote option value the way it appears in the file."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)
