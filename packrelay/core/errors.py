"""Error kinds raised by the packrelay core and its collaborators.

Every error derives from ``PackrelayError`` so the CLI can report any
pipeline failure uniformly. Errors are never retried by the core; they
abort the current run and carry enough context (step, resource) to
diagnose the failure.
"""

from __future__ import annotations


class PackrelayError(RuntimeError):
    """Base class for all packrelay errors."""


class NotFoundError(PackrelayError):
    """A source directory, file to hash, or named server does not exist."""


class OptionNotFoundError(PackrelayError):
    """A config option was absent when the caller required it."""

    def __init__(self, file_name: str, option: str) -> None:
        super().__init__(f"Option {option!r} not found in {file_name}")
        self.file_name = file_name
        self.option = option


class PersistError(PackrelayError):
    """Saving a config document failed; the staged change was discarded."""


class TransportError(PackrelayError):
    """A remote capability call failed for network or auth reasons."""
