"""Streaming content hashing for bundled archives.

The digest is folded over fixed-size chunks, so memory use is bounded by
the chunk size regardless of archive size. SHA-1 is the default because
the ``resource-pack-sha1`` server option expects a 40-character SHA-1 hex
digest.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator
from pathlib import Path

from packrelay.core.errors import NotFoundError

DEFAULT_ALGORITHM = "sha1"
DEFAULT_CHUNK_SIZE = 256 * 1024


def iter_file_chunks(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the bytes of *path* in chunks of at most *chunk_size*."""
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(f"File to hash not found: {path}")
    try:
        with path.open("rb") as fh:
            while chunk := fh.read(chunk_size):
                yield chunk
    except FileNotFoundError as exc:
        raise NotFoundError(f"File to hash not found: {path}") from exc


class ContentHasher:
    """Computes hex digests of files via bounded-memory streaming.

    Parameters
    ----------
    algorithm:
        Any name accepted by ``hashlib.new``.
    chunk_size:
        Maximum number of bytes read per chunk.
    """

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        # Fail fast on unknown algorithm names
        try:
            hashlib.new(algorithm)
        except ValueError as exc:
            raise ValueError(f"Unsupported hash algorithm: {algorithm!r}") from exc
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def digest_chunks(self, chunks: Iterable[bytes]) -> str:
        """Fold a sequence of byte chunks into a lowercase hex digest."""
        state = hashlib.new(self.algorithm)
        for chunk in chunks:
            state.update(chunk)
        return state.hexdigest()

    def digest(self, path: Path) -> str:
        """Return the hex digest of the file at *path*.

        Raises ``NotFoundError`` if the path is missing or not a regular file.
        """
        return self.digest_chunks(iter_file_chunks(path, self.chunk_size))


def sha1_file(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Return the SHA-1 hex digest of a file."""
    return ContentHasher("sha1", chunk_size).digest(path)
