"""Shared test fixtures for packrelay."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from packrelay.core.archiver import Archiver
from packrelay.core.config_store import InMemoryConfigStore
from packrelay.core.hasher import ContentHasher
from packrelay.core.reconciler import Reconciler


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """Provide a small resource pack directory."""
    root = tmp_path / "texturePack"
    (root / "assets" / "minecraft" / "textures").mkdir(parents=True)
    (root / "pack.mcmeta").write_text(
        '{"pack": {"pack_format": 15, "description": "test pack"}}'
    )
    (root / "assets" / "minecraft" / "textures" / "stone.png").write_bytes(
        b"\x89PNG\r\n\x1a\n" + bytes(range(256))
    )
    return root


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Provide the archive output directory."""
    return tmp_path / "build"


@pytest.fixture
def archiver(output_dir: Path) -> Archiver:
    """Provide an Archiver writing to the temp output directory."""
    return Archiver(output_dir)


@pytest.fixture
def hasher() -> ContentHasher:
    """Provide a SHA-1 ContentHasher."""
    return ContentHasher()


@pytest.fixture
def memory_store() -> InMemoryConfigStore:
    """Provide an in-memory store seeded with a typical server.properties."""
    return InMemoryConfigStore(
        {
            "server.properties": (
                "#Minecraft server properties\n"
                "motd=A Minecraft Server\n"
                "resource-pack=\n"
                "resource-pack-sha1=\n"
                "max-players=20\n"
            )
        }
    )


@pytest.fixture
def make_reconciler(
    archiver: Archiver,
    hasher: ContentHasher,
    memory_store: InMemoryConfigStore,
    source_tree: Path,
) -> Callable[..., Reconciler]:
    """Factory fixture: build a Reconciler with test defaults."""

    def _factory(**overrides: Any) -> Reconciler:
        defaults: dict[str, Any] = {
            "archiver": archiver,
            "hasher": hasher,
            "store": memory_store,
            "source_dir": source_tree,
            "run_id": "pr-test-run-001",
        }
        defaults.update(overrides)
        archiver_ = defaults.pop("archiver")
        hasher_ = defaults.pop("hasher")
        store_ = defaults.pop("store")
        return Reconciler(archiver_, hasher_, store_, **defaults)

    return _factory
