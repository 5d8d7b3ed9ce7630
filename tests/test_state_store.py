"""Tests for the project store and its JSON persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitegen.schemas.project import (
    DEFAULT_OPINION,
    HubPage,
    Identity,
    ProjectState,
    ProjectStatus,
    SiteType,
)
from sitegen.storage.state_store import STORAGE_KEY, JsonStateStorage, ProjectStore


class TestJsonStateStorage:
    def test_missing_file_loads_nothing(self, tmp_path: Path) -> None:
        assert JsonStateStorage(tmp_path / "nope.json").load() is None

    def test_round_trip_uses_fixed_key(self, tmp_path: Path, built_state: ProjectState) -> None:
        path = tmp_path / "state.json"
        storage = JsonStateStorage(path)
        storage.save(built_state)

        document = json.loads(path.read_text())
        assert list(document) == [STORAGE_KEY]
        assert storage.load() == built_state

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[]", '{"other_key": {}}', '{"sitegen_state_v2": {"hubs": "nope"}}'],
    )
    def test_unreadable_document_loads_nothing(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "state.json"
        path.write_text(content)
        assert JsonStateStorage(path).load() is None

    def test_interrupted_status_recovers(self, tmp_path: Path, built_state: ProjectState) -> None:
        storage = JsonStateStorage(tmp_path / "state.json")
        storage.save(built_state.model_copy(update={"status": ProjectStatus.PUSHING_FILES}))
        assert storage.load().status == ProjectStatus.READY

    def test_interrupted_build_without_identity_recovers_to_idle(self, tmp_path: Path) -> None:
        storage = JsonStateStorage(tmp_path / "state.json")
        storage.save(ProjectState(status=ProjectStatus.GENERATING_STRATEGY))
        assert storage.load().status == ProjectStatus.IDLE


class TestProjectStore:
    def test_fresh_store_has_defaults(self, store: ProjectStore) -> None:
        state = store.state
        assert state.opinion == DEFAULT_OPINION
        assert state.status == ProjectStatus.IDLE
        assert state.hubs == []

    def test_custom_defaults(self) -> None:
        store = ProjectStore(default_opinion="Less is more", default_branch="gh-pages", default_path="")
        assert store.state.opinion == "Less is more"
        assert store.state.github_config.branch == "gh-pages"
        assert store.state.github_config.path == ""

    def test_unparseable_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("garbage")
        assert ProjectStore(JsonStateStorage(path)).state == ProjectState()

    def test_apply_update_persists(self, tmp_path: Path, identity: Identity) -> None:
        path = tmp_path / "state.json"
        store = ProjectStore(JsonStateStorage(path))
        hubs = [HubPage(id="h", title="Home", slug="index")]

        store.apply_update(identity=identity, hubs=hubs, site_type=SiteType.PERSONAL)

        reloaded = ProjectStore(JsonStateStorage(path)).state
        assert reloaded.identity == identity
        assert reloaded.hubs == hubs
        assert reloaded.site_type == SiteType.PERSONAL

    def test_apply_update_leaves_other_fields(self, ready_store: ProjectStore) -> None:
        before = ready_store.snapshot()
        ready_store.apply_update(gtm_id="GTM-123")
        after = ready_store.state
        assert after.gtm_id == "GTM-123"
        assert after.hubs == before.hubs
        assert after.identity == before.identity

    def test_apply_update_rejects_unknown_fields(self, store: ProjectStore) -> None:
        with pytest.raises(ValueError, match="Unknown project fields"):
            store.apply_update(colour="red")

    def test_snapshot_is_independent(self, ready_store: ProjectStore) -> None:
        snap = ready_store.snapshot()
        snap.hubs.clear()
        assert len(ready_store.state.hubs) == 2

    def test_in_memory_store(self) -> None:
        store = ProjectStore()
        store.apply_update(status=ProjectStatus.READY)
        assert store.state.status == ProjectStatus.READY
