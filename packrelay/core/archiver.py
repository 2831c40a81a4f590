"""Deterministic directory-to-ZIP bundling.

Entries are written in sorted order with POSIX relative names; the source
directory's own name is never a prefix inside the archive. By default every
entry gets a fixed timestamp and fixed permissions, so two identical trees
produce byte-identical archives and therefore identical digests. With
``preserve_mtime=True`` the files' modification times are stored instead and
archives of content-identical trees may differ.

Layout: {output_dir}/{epoch_ms}.zip
No delete method — earlier artifacts are left in place.
"""

from __future__ import annotations

import logging
import os
import time
import zipfile
from pathlib import Path
from typing import BinaryIO

from packrelay.core.errors import NotFoundError
from packrelay.models.artifacts import ArchiveArtifact

logger = logging.getLogger(__name__)

# Earliest timestamp a ZIP entry can carry.
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
FIXED_FILE_MODE = 0o100644


class Archiver:
    """Bundles a source directory into a single compressed archive.

    Parameters
    ----------
    output_dir:
        Directory receiving the archives. Created if it does not exist.
    preserve_mtime:
        Store file modification times instead of a fixed timestamp.
    """

    def __init__(self, output_dir: Path, *, preserve_mtime: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.preserve_mtime = preserve_mtime

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def bundle(self, source_dir: Path) -> ArchiveArtifact:
        """Archive every regular file under *source_dir*.

        Raises ``NotFoundError`` if *source_dir* does not exist, is not a
        directory, or cannot be listed.
        """
        source = Path(source_dir)
        files = self.list_files(source)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path, handle = self._open_unique_output()
        try:
            with handle, zipfile.ZipFile(
                handle, mode="w", compression=zipfile.ZIP_DEFLATED
            ) as archive:
                for arcname, path in files:
                    self._write_entry(archive, arcname, path)
        except BaseException:
            # Never leave a truncated archive behind
            output_path.unlink(missing_ok=True)
            raise

        size = output_path.stat().st_size
        logger.info(
            "Bundled %d file(s) from %s into %s (%d bytes)",
            len(files),
            source,
            output_path,
            size,
        )
        return ArchiveArtifact(
            path=output_path.resolve(),
            filename=output_path.name,
            size_bytes=size,
            entry_count=len(files),
        )

    def list_files(self, source_dir: Path) -> list[tuple[str, Path]]:
        """Return ``(entry_name, path)`` pairs for every regular file, sorted."""
        source = Path(source_dir)
        if not source.is_dir():
            raise NotFoundError(f"Source directory not found: {source}")

        collected: list[tuple[str, Path]] = []

        def _raise(exc: OSError) -> None:
            raise NotFoundError(f"Cannot read source directory {source}: {exc}") from exc

        for dirpath, dirnames, filenames in os.walk(source, onerror=_raise, followlinks=False):
            dirnames.sort()
            for name in filenames:
                path = Path(dirpath) / name
                if not path.is_file():
                    continue  # sockets, broken symlinks
                arcname = path.relative_to(source).as_posix()
                collected.append((arcname, path))

        collected.sort(key=lambda pair: pair[0])
        return collected

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_unique_output(self) -> tuple[Path, BinaryIO]:
        """Create a new archive file with an unused time-based name.

        The file is opened in exclusive-create mode; if the name is taken the
        token is bumped until a free one is found.
        """
        token = int(time.time() * 1000)
        while True:
            path = self.output_dir / f"{token}.zip"
            try:
                return path, path.open("xb")
            except FileExistsError:
                token += 1

    def _write_entry(self, archive: zipfile.ZipFile, arcname: str, path: Path) -> None:
        if self.preserve_mtime:
            archive.write(path, arcname)
            return

        info = zipfile.ZipInfo(arcname, date_time=FIXED_DATE_TIME)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = FIXED_FILE_MODE << 16
        info.create_system = 3  # unix, independent of the host platform
        with path.open("rb") as src, archive.open(info, mode="w") as dst:
            while chunk := src.read(1024 * 1024):
                dst.write(chunk)
