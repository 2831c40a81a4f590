"""Tests for the Reconciler — state machine, URL policy, partial failures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from packrelay.core.archiver import Archiver
from packrelay.core.config_store import InMemoryConfigStore
from packrelay.core.errors import NotFoundError, TransportError
from packrelay.core.reconciler import (
    OPTION_PACK_SHA1,
    OPTION_PACK_URL,
    InvalidTransitionError,
    ReconcileFailedError,
    Reconciler,
    template_url_builder,
)
from packrelay.models.artifacts import ArchiveArtifact
from packrelay.models.config import PublishConfig
from packrelay.models.reconcile import ReconcileState, UrlPolicy

FILE = "server.properties"


class TestReconcilerHappyPath:
    def test_first_run_writes_both_values(
        self, make_reconciler: Callable[..., Reconciler], memory_store: InMemoryConfigStore
    ):
        result = make_reconciler().run()
        assert result.state == ReconcileState.DONE
        assert result.succeeded
        assert result.old_digest is None
        assert result.changed is True
        assert result.pack_url_written and result.digest_written
        assert memory_store.get_value(FILE, OPTION_PACK_SHA1) == result.new_digest
        assert memory_store.get_value(FILE, OPTION_PACK_URL) == str(result.artifact.path)

    def test_writes_url_before_digest(self, make_reconciler: Callable[..., Reconciler]):
        result = make_reconciler().run()
        assert [w.option for w in result.writes] == [OPTION_PACK_URL, OPTION_PACK_SHA1]

    def test_state_sequence(self, make_reconciler: Callable[..., Reconciler]):
        result = make_reconciler().run()
        assert [t.to_state for t in result.transitions] == [
            ReconcileState.BUNDLED,
            ReconcileState.HASHED,
            ReconcileState.COMPARED,
            ReconcileState.UPDATED,
            ReconcileState.DONE,
        ]

    def test_url_template(self, make_reconciler: Callable[..., Reconciler], memory_store):
        reconciler = make_reconciler(
            url_builder=template_url_builder("https://cdn.example.com/packs/{filename}")
        )
        result = reconciler.run()
        assert result.pack_url == f"https://cdn.example.com/packs/{result.artifact.filename}"
        assert memory_store.get_value(FILE, OPTION_PACK_URL) == result.pack_url

    def test_other_keys_untouched(self, make_reconciler, memory_store: InMemoryConfigStore):
        make_reconciler().run()
        text = memory_store.text(FILE)
        assert text.startswith("#Minecraft server properties\nmotd=A Minecraft Server\n")
        assert text.endswith("max-players=20\n")

    def test_run_twice_is_rejected(self, make_reconciler: Callable[..., Reconciler]):
        reconciler = make_reconciler()
        reconciler.run()
        with pytest.raises(InvalidTransitionError):
            reconciler.run()


class TestUrlPolicy:
    def test_always_rewrites_on_unchanged_content(
        self, make_reconciler: Callable[..., Reconciler], memory_store: InMemoryConfigStore
    ):
        first = make_reconciler(run_id="r1").run()
        second = make_reconciler(run_id="r2").run()
        assert second.state == ReconcileState.DONE
        assert second.changed is False
        assert second.old_digest == first.new_digest == second.new_digest
        # The artifact address moves every run, so the URL is rewritten
        assert second.pack_url != first.pack_url
        assert memory_store.get_value(FILE, OPTION_PACK_URL) == second.pack_url
        assert len(second.writes) == 2

    def test_unchanged_content_logs_warning(self, make_reconciler, caplog):
        make_reconciler(run_id="r1").run()
        with caplog.at_level("WARNING", logger="packrelay.core.reconciler"):
            make_reconciler(run_id="r2").run()
        assert any("Unchanged content" in r.message for r in caplog.records)

    def test_on_change_skips_when_unchanged(
        self, make_reconciler: Callable[..., Reconciler], memory_store: InMemoryConfigStore
    ):
        first = make_reconciler(run_id="r1", url_policy=UrlPolicy.ON_CHANGE).run()
        saves = memory_store.save_count
        second = make_reconciler(run_id="r2", url_policy=UrlPolicy.ON_CHANGE).run()
        assert second.state == ReconcileState.DONE
        assert ReconcileState.SKIPPED in [t.to_state for t in second.transitions]
        assert second.writes == []
        assert memory_store.save_count == saves
        assert memory_store.get_value(FILE, OPTION_PACK_URL) == first.pack_url

    def test_on_change_writes_when_changed(
        self, make_reconciler: Callable[..., Reconciler], source_tree: Path
    ):
        make_reconciler(run_id="r1", url_policy=UrlPolicy.ON_CHANGE).run()
        (source_tree / "pack.mcmeta").write_text('{"pack": {"pack_format": 18}}')
        result = make_reconciler(run_id="r2", url_policy=UrlPolicy.ON_CHANGE).run()
        assert result.changed is True
        assert len(result.writes) == 2


class TestReconcilerFailures:
    def test_missing_source_fails_before_any_write(
        self, make_reconciler, memory_store: InMemoryConfigStore, tmp_path: Path
    ):
        before = memory_store.text(FILE)
        with pytest.raises(ReconcileFailedError) as exc_info:
            make_reconciler(source_dir=tmp_path / "missing").run()
        result = exc_info.value.result
        assert result.state == ReconcileState.FAILED
        assert result.failed_step == ReconcileState.BUNDLED
        assert result.writes == []
        assert "NotFoundError" in (result.error or "")
        assert isinstance(exc_info.value.__cause__, NotFoundError)
        assert memory_store.text(FILE) == before

    def test_partial_update_is_reported(
        self, make_reconciler, memory_store: InMemoryConfigStore
    ):
        memory_store.fail_on.add(OPTION_PACK_SHA1)
        with pytest.raises(ReconcileFailedError) as exc_info:
            make_reconciler().run()
        result = exc_info.value.result
        assert result.state == ReconcileState.FAILED
        assert result.failed_step == ReconcileState.UPDATED
        assert result.pack_url_written is True
        assert result.digest_written is False
        assert [(w.option, w.written) for w in result.writes] == [
            (OPTION_PACK_URL, True),
            (OPTION_PACK_SHA1, False),
        ]
        # No rollback of the URL write
        assert memory_store.get_value(FILE, OPTION_PACK_URL) == result.pack_url
        assert memory_store.get_value(FILE, OPTION_PACK_SHA1) == ""
        assert "resource-pack" in str(exc_info.value)

    def test_url_write_failure_stops_digest_write(
        self, make_reconciler, memory_store: InMemoryConfigStore
    ):
        memory_store.fail_on.add(OPTION_PACK_URL)
        with pytest.raises(ReconcileFailedError) as exc_info:
            make_reconciler().run()
        result = exc_info.value.result
        assert result.pack_url_written is False
        assert result.digest_written is False
        assert [w.option for w in result.writes] == [OPTION_PACK_URL]

    def test_store_read_failure(self, make_reconciler):
        class _BrokenStore(InMemoryConfigStore):
            def get_value(self, file_name, option, *, required=False):
                raise TransportError("HTTP 502")

        with pytest.raises(ReconcileFailedError) as exc_info:
            make_reconciler(store=_BrokenStore()).run()
        result = exc_info.value.result
        assert result.failed_step == ReconcileState.COMPARED
        assert result.new_digest is not None
        assert result.writes == []

    def test_failed_transition_is_last(self, make_reconciler, tmp_path: Path):
        reconciler = make_reconciler(source_dir=tmp_path / "missing")
        with pytest.raises(ReconcileFailedError):
            reconciler.run()
        assert reconciler.state == ReconcileState.FAILED
        with pytest.raises(InvalidTransitionError):
            reconciler.run()


class TestAnnouncer:
    def test_announces_after_update(self, make_reconciler):
        messages: list[str] = []
        result = make_reconciler(
            announcer=messages.append,
            announce_message="Resource pack updated ({size}, {digest})",
        ).run()
        assert messages == [
            f"Resource pack updated ({result.artifact.size_label}, {result.new_digest})"
        ]

    def test_no_announcement_without_message(self, make_reconciler):
        messages: list[str] = []
        make_reconciler(announcer=messages.append).run()
        assert messages == []

    def test_no_announcement_when_skipped(self, make_reconciler):
        messages: list[str] = []
        kwargs = {
            "announcer": messages.append,
            "announce_message": "updated",
            "url_policy": UrlPolicy.ON_CHANGE,
        }
        make_reconciler(run_id="r1", **kwargs).run()
        make_reconciler(run_id="r2", **kwargs).run()
        assert messages == ["updated"]

    def test_announce_failure_does_not_fail_run(self, make_reconciler):
        def _announcer(message: str) -> None:
            raise TransportError("server offline")

        result = make_reconciler(announcer=_announcer, announce_message="hi").run()
        assert result.state == ReconcileState.DONE

    def test_bad_announcement_template_does_not_fail_run(
        self, make_reconciler, memory_store: InMemoryConfigStore, caplog
    ):
        messages: list[str] = []
        result = make_reconciler(
            announcer=messages.append, announce_message="Pack {version} live"
        ).run()
        assert result.state == ReconcileState.DONE
        assert result.pack_url_written and result.digest_written
        assert memory_store.get_value(FILE, OPTION_PACK_SHA1) == result.new_digest
        assert messages == []
        assert "Could not format announcement" in caplog.text


class TestUrlBuilder:
    def test_empty_template_uses_path(self, tmp_path: Path):
        artifact = ArchiveArtifact(
            path=tmp_path / "1.zip", filename="1.zip", size_bytes=1
        )
        assert template_url_builder("")(artifact) == str(tmp_path / "1.zip")

    def test_template(self, tmp_path: Path):
        artifact = ArchiveArtifact(
            path=tmp_path / "1.zip", filename="1.zip", size_bytes=1
        )
        build = template_url_builder("https://h/raw/main/build/{filename}")
        assert build(artifact) == "https://h/raw/main/build/1.zip"


class TestFromConfig:
    def test_wires_components(self, tmp_path: Path, source_tree: Path):
        config = PublishConfig(
            source_dir=source_tree,
            output_dir=tmp_path / "out",
            public_url_template="https://h/{filename}",
            url_policy=UrlPolicy.ON_CHANGE,
            preserve_mtime=True,
        )
        store = InMemoryConfigStore()
        reconciler = Reconciler.from_config(config, store)
        assert isinstance(reconciler.archiver, Archiver)
        assert reconciler.archiver.preserve_mtime is True
        assert reconciler.hasher.algorithm == "sha1"
        assert reconciler.url_policy == UrlPolicy.ON_CHANGE
        result = reconciler.run()
        assert result.pack_url.startswith("https://h/")
        assert result.artifact.path.parent == (tmp_path / "out").resolve()
