"""Tests for the Project Orchestration Engine workflows."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from sitegen.engine.orchestrator import ProjectEngine, configure_project, export_site
from sitegen.errors import (
    ErrorKind,
    ServiceError,
    SiteValidationError,
    TransientNetworkError,
    WorkflowBusyError,
)
from sitegen.schemas.generation import NavLink, SectionStub, ShowcaseProposal, StrategyProposal
from sitegen.schemas.project import GitHubConfig, HubPage, ProjectStatus, SiteTone, SiteType
from sitegen.schemas.storage import RepoMetadata, TreeEntry
from sitegen.schemas.workflow import OutcomeKind, ProgressEvent, WorkflowName
from sitegen.storage.state_store import ProjectStore

HEAD_PAGE = "<html><head><title>{}</title></head><body></body></html>"


@pytest.fixture
def events() -> list[ProgressEvent]:
    return []


@pytest.fixture
def engine(store, fake_generation, fake_storage, ids, events) -> ProjectEngine:
    return ProjectEngine(store, fake_generation, fake_storage, id_provider=ids, on_progress=events.append)


@pytest.fixture
def ready_engine(ready_store, fake_generation, fake_storage, ids, events) -> ProjectEngine:
    return ProjectEngine(
        ready_store, fake_generation, fake_storage, id_provider=ids, on_progress=events.append,
    )


def _statuses(events: list[ProgressEvent]) -> list[ProjectStatus]:
    """Distinct consecutive statuses seen by the progress callback."""
    seen: list[ProjectStatus] = []
    for e in events:
        if not seen or seen[-1] != e.status:
            seen.append(e.status)
    return seen


# ----------------------------------------------------------------------
# Build
# ----------------------------------------------------------------------


class TestBuild:
    @pytest.mark.asyncio
    async def test_build_commits_home_and_sections(self, engine: ProjectEngine, fake_generation) -> None:
        outcome = await engine.build("A lab for makers", SiteType.PERSONAL, SiteTone.MINIMAL)

        assert outcome.ok
        assert outcome.workflow == WorkflowName.BUILD
        state = engine.state
        assert state.status == ProjectStatus.READY
        assert [h.slug for h in state.hubs] == ["index", "services", "about"]
        assert all(h.html for h in state.hubs)
        assert state.identity.site_name == "Acme Labs"
        assert state.site_type == SiteType.PERSONAL
        assert state.strategy_rationale == "Keep it short"
        state.check_invariants()

        fake_generation.derive_identity.assert_awaited_once()
        assert fake_generation.derive_identity.await_args.args == (
            "A lab for makers", SiteType.PERSONAL, SiteTone.MINIMAL,
        )

    @pytest.mark.asyncio
    async def test_home_is_generated_last_with_nav_links(self, engine: ProjectEngine, fake_generation) -> None:
        await engine.build("x")

        calls = fake_generation.generate_page_markup.await_args_list
        assert [c.args[0].title for c in calls] == ["Services", "About Us", "Home"]
        assert [c.args[5] for c in calls] == [False, False, True]
        assert calls[-1].args[4] == [
            NavLink(title="Services", url="services/index.html"),
            NavLink(title="About Us", url="about/index.html"),
        ]

    @pytest.mark.asyncio
    async def test_status_sequence(self, engine: ProjectEngine, events) -> None:
        await engine.build("x")
        assert _statuses(events) == [
            ProjectStatus.BUILDING_IDENTITY,
            ProjectStatus.GENERATING_STRATEGY,
            ProjectStatus.GENERATING_HUBS,
            ProjectStatus.READY,
        ]

    @pytest.mark.asyncio
    async def test_page_progress_is_monotonic(self, engine: ProjectEngine, events) -> None:
        await engine.build("x")
        counted = [(e.completed, e.total) for e in events if e.total is not None]
        assert counted == [(0, 3), (1, 3), (2, 3)]

    @pytest.mark.asyncio
    async def test_strategy_slugs_are_normalised(self, engine: ProjectEngine, fake_generation) -> None:
        fake_generation.propose_strategy = AsyncMock(return_value=StrategyProposal(sections=[
            SectionStub(title="About Us", slug="About Us!"),
            SectionStub(title="About", slug="about-us"),
            SectionStub(title="Home again", slug="index"),
            SectionStub(title="???", slug=""),
        ]))

        outcome = await engine.build("x")

        assert outcome.ok
        assert [h.slug for h in engine.state.hubs] == ["index", "about-us", "about-us-2", "index-2", "section"]
        engine.state.check_invariants()

    @pytest.mark.asyncio
    async def test_identity_failure_commits_nothing(self, engine: ProjectEngine, fake_generation) -> None:
        fake_generation.derive_identity = AsyncMock(side_effect=ServiceError("model refused"))

        outcome = await engine.build("x")

        assert outcome.kind == OutcomeKind.FAILED
        assert outcome.error_kind == ErrorKind.SERVICE
        assert "model refused" in outcome.error
        assert engine.state.status == ProjectStatus.IDLE
        assert engine.state.identity is None
        fake_generation.propose_strategy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_page_failure_discards_all_pages(self, engine: ProjectEngine, fake_generation) -> None:
        fake_generation.generate_page_markup = AsyncMock(
            side_effect=["<html>one</html>", TransientNetworkError("gave up")],
        )

        outcome = await engine.build("x")

        assert outcome.kind == OutcomeKind.FAILED
        assert outcome.error_kind == ErrorKind.TRANSIENT
        assert engine.state.hubs == []
        assert engine.state.identity is None
        assert engine.state.status == ProjectStatus.IDLE

    @pytest.mark.asyncio
    async def test_cancel_during_sections(self, engine: ProjectEngine, fake_generation) -> None:
        async def cancel_first(page, *args, **kwargs) -> str:
            engine.cancel()
            return "<html>first</html>"

        fake_generation.generate_page_markup = AsyncMock(side_effect=cancel_first)

        outcome = await engine.build("x")

        assert outcome.kind == OutcomeKind.CANCELLED
        assert outcome.error == ""
        assert fake_generation.generate_page_markup.await_count == 1
        assert engine.state.hubs == []
        assert engine.state.status == ProjectStatus.IDLE

    @pytest.mark.asyncio
    async def test_rebuild_replaces_pages_and_articles(self, ready_engine: ProjectEngine) -> None:
        outcome = await ready_engine.build("x")

        assert outcome.ok
        assert ready_engine.state.articles == []
        assert "svc" not in [h.id for h in ready_engine.state.hubs]

    @pytest.mark.asyncio
    async def test_failed_rebuild_keeps_previous_site(self, ready_engine: ProjectEngine, fake_generation) -> None:
        before = ready_engine.store.snapshot()
        fake_generation.propose_strategy = AsyncMock(side_effect=ServiceError("nope"))

        await ready_engine.build("x")

        assert ready_engine.state.hubs == before.hubs
        assert ready_engine.state.articles == before.articles
        assert ready_engine.state.status == ProjectStatus.READY

    @pytest.mark.asyncio
    async def test_empty_intent_rejected(self, engine: ProjectEngine, fake_generation) -> None:
        configure_project(engine.store, opinion="")
        outcome = await engine.build("  ")
        assert outcome.error_kind == ErrorKind.VALIDATION
        fake_generation.derive_identity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stored_opinion_and_site_type_are_defaults(self, engine: ProjectEngine, fake_generation) -> None:
        configure_project(engine.store, opinion="Handmade furniture", site_type=SiteType.PERSONAL)

        outcome = await engine.build()

        assert outcome.ok
        assert fake_generation.derive_identity.await_args.args[:2] == ("Handmade furniture", SiteType.PERSONAL)
        assert fake_generation.propose_strategy.await_args.args[1] == SiteType.PERSONAL
        assert engine.state.site_type == SiteType.PERSONAL
        assert engine.state.opinion == "Handmade furniture"

    @pytest.mark.asyncio
    async def test_stored_site_type_kept_when_only_intent_given(self, engine: ProjectEngine, fake_generation) -> None:
        configure_project(engine.store, site_type=SiteType.PERSONAL)

        await engine.build("A portfolio")

        assert fake_generation.derive_identity.await_args.args[1] == SiteType.PERSONAL
        assert engine.state.site_type == SiteType.PERSONAL

    @pytest.mark.asyncio
    async def test_intent_is_stored_as_opinion(self, engine: ProjectEngine) -> None:
        await engine.build("  A lab for makers  ")
        assert engine.state.opinion == "A lab for makers"

    @pytest.mark.asyncio
    async def test_failed_build_keeps_previous_opinion(self, engine: ProjectEngine, fake_generation) -> None:
        configure_project(engine.store, opinion="Old")
        fake_generation.propose_strategy = AsyncMock(side_effect=ServiceError("nope"))

        await engine.build("New")

        assert engine.state.opinion == "Old"


# ----------------------------------------------------------------------
# Concurrency and cancellation
# ----------------------------------------------------------------------


class TestWorkflowMutex:
    @pytest.mark.asyncio
    async def test_second_start_is_rejected(self, engine: ProjectEngine, fake_generation, identity) -> None:
        rejected: list[Exception] = []

        async def derive(*args, **kwargs):
            with pytest.raises(WorkflowBusyError) as info:
                await engine.tune("increase padding")
            rejected.append(info.value)
            with pytest.raises(WorkflowBusyError):
                configure_project(engine.store, gtm_id="GTM-1")
            return identity

        fake_generation.derive_identity = AsyncMock(side_effect=derive)

        outcome = await engine.build("x")

        assert outcome.ok
        assert len(rejected) == 1
        fake_generation.tune_markup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_a_no_op(self, engine: ProjectEngine) -> None:
        engine.cancel()
        outcome = await engine.build("x")
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_token_is_cleared_after_cancel(self, engine: ProjectEngine, fake_generation, identity) -> None:
        async def derive(*args, **kwargs):
            engine.cancel()
            return identity

        fake_generation.derive_identity = AsyncMock(side_effect=derive)
        first = await engine.build("x")
        assert first.kind == OutcomeKind.CANCELLED

        fake_generation.derive_identity = AsyncMock(return_value=identity)
        second = await engine.build("x")
        assert second.ok


# ----------------------------------------------------------------------
# Import
# ----------------------------------------------------------------------


def _blob(path: str) -> TreeEntry:
    return TreeEntry(path=path, type="blob", url=f"blob://{path}")


class TestImport:
    @pytest.fixture
    def remote(self, fake_storage) -> MagicMock:
        fake_storage.get_repository_metadata = AsyncMock(return_value=RepoMetadata(default_branch="trunk"))
        fake_storage.list_tree = AsyncMock(return_value=[
            _blob("README.md"),
            _blob("docs/index.html"),
            _blob("docs/services/index.html"),
            _blob("docs/services/consulting.html"),
            _blob("docs/about.html"),
        ])

        async def fetch(url: str, credential: str, **kwargs) -> str:
            return HEAD_PAGE.format(url.removeprefix("blob://docs/"))

        fake_storage.fetch_file_content = AsyncMock(side_effect=fetch)
        return fake_storage

    @pytest.mark.asyncio
    async def test_import_commits_model_and_target(self, engine: ProjectEngine, remote, fake_generation) -> None:
        outcome = await engine.import_repository("octo/site", "ghp_x")

        assert outcome.ok
        state = engine.state
        assert state.status == ProjectStatus.READY
        assert [h.slug for h in state.hubs] == ["index", "services"]
        assert [a.slug for a in state.articles] == ["consulting"]
        assert state.articles[0].hub_id == state.hubs[1].id
        assert state.identity.site_name == "Acme Labs"
        assert state.github_config == GitHubConfig(token="ghp_x", repo="octo/site", branch="trunk", path="docs")
        state.check_invariants()

        fake_generation.analyze_existing_markup.assert_awaited_once()
        assert "index.html" in fake_generation.analyze_existing_markup.await_args.args[0]
        fetched = [c.args[0] for c in remote.fetch_file_content.await_args_list]
        assert fetched.count("blob://docs/index.html") == 1

    @pytest.mark.asyncio
    async def test_tree_is_listed_on_the_default_branch(self, engine: ProjectEngine, remote) -> None:
        await engine.import_repository("octo/site", "ghp_x")
        config = remote.list_tree.await_args.args[0]
        assert config.branch == "trunk"

    @pytest.mark.asyncio
    async def test_no_index_fails_without_commit(self, engine: ProjectEngine, remote, fake_generation) -> None:
        remote.list_tree = AsyncMock(return_value=[_blob("README.md"), _blob("src/app.py")])

        outcome = await engine.import_repository("octo/site", "ghp_x")

        assert outcome.kind == OutcomeKind.FAILED
        assert outcome.error_kind == ErrorKind.VALIDATION
        assert engine.state.status == ProjectStatus.IDLE
        assert engine.state.hubs == []
        assert engine.state.github_config.repo == ""
        fake_generation.analyze_existing_markup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetch_failure_commits_nothing(self, engine: ProjectEngine, remote) -> None:
        remote.fetch_file_content = AsyncMock(side_effect=["<html>home</html>", ServiceError("500")])

        outcome = await engine.import_repository("octo/site", "ghp_x")

        assert outcome.kind == OutcomeKind.FAILED
        assert engine.state.identity is None
        assert engine.state.hubs == []

    @pytest.mark.asyncio
    async def test_stored_token_is_used(self, engine: ProjectEngine, remote) -> None:
        configure_project(engine.store, token="ghp_stored")
        await engine.import_repository("octo/site")
        assert remote.get_repository_metadata.await_args.args[0].token == "ghp_stored"

    @pytest.mark.asyncio
    async def test_import_twice_is_structurally_identical(self, engine: ProjectEngine, remote) -> None:
        await engine.import_repository("octo/site", "ghp_x")
        first = engine.store.snapshot()
        await engine.import_repository("octo/site", "ghp_x")
        second = engine.state

        assert [h.slug for h in first.hubs] == [h.slug for h in second.hubs]
        assert [a.slug for a in first.articles] == [a.slug for a in second.articles]
        assert first.hubs[0].id != second.hubs[0].id


# ----------------------------------------------------------------------
# Tune
# ----------------------------------------------------------------------


class TestTune:
    @pytest.mark.asyncio
    async def test_tune_all(self, ready_engine: ProjectEngine, events) -> None:
        outcome = await ready_engine.tune("increase padding")

        assert outcome.ok
        assert outcome.pages_updated == 3
        state = ready_engine.state
        assert all("tuned" in h.html for h in state.hubs)
        assert "tuned" in state.articles[0].content_html
        assert state.status == ProjectStatus.READY
        assert _statuses(events) == [ProjectStatus.TUNING_DESIGN, ProjectStatus.READY]

    @pytest.mark.asyncio
    async def test_tune_single_page(self, ready_engine: ProjectEngine, fake_generation) -> None:
        outcome = await ready_engine.tune("bigger", "svc")

        assert outcome.pages_updated == 1
        assert ready_engine.state.hubs[0].html == "<html>home</html>"
        assert ready_engine.state.hubs[1].html == "<html tuned>services</html>"
        assert fake_generation.tune_markup.await_args.args[3] == "<html>home</html>"

    @pytest.mark.asyncio
    async def test_failure_keeps_rewritten_pages(self, ready_engine: ProjectEngine, fake_generation) -> None:
        fake_generation.tune_markup = AsyncMock(side_effect=["<html>new</html>", ServiceError("bad")])

        outcome = await ready_engine.tune("x")

        assert outcome.kind == OutcomeKind.FAILED
        assert outcome.pages_updated == 1
        assert ready_engine.state.hubs[0].html == "<html>new</html>"
        assert ready_engine.state.hubs[1].html == "<html>services</html>"
        assert ready_engine.state.status == ProjectStatus.READY

    @pytest.mark.asyncio
    async def test_cancel_keeps_completed_prefix(self, ready_engine: ProjectEngine, fake_generation) -> None:
        async def tune_then_cancel(*args, **kwargs) -> str:
            ready_engine.cancel()
            return "<html>new</html>"

        fake_generation.tune_markup = AsyncMock(side_effect=tune_then_cancel)

        outcome = await ready_engine.tune("x")

        assert outcome.kind == OutcomeKind.CANCELLED
        assert outcome.pages_updated == 1
        assert fake_generation.tune_markup.await_count == 1
        assert ready_engine.state.hubs[0].html == "<html>new</html>"
        assert ready_engine.state.status == ProjectStatus.READY

    @pytest.mark.asyncio
    async def test_tune_without_site(self, engine: ProjectEngine) -> None:
        outcome = await engine.tune("x")
        assert outcome.error_kind == ErrorKind.VALIDATION
        assert engine.state.status == ProjectStatus.IDLE

    @pytest.mark.asyncio
    async def test_unknown_target(self, ready_engine: ProjectEngine) -> None:
        outcome = await ready_engine.tune("x", "nope")
        assert outcome.kind == OutcomeKind.FAILED
        assert outcome.error_kind == ErrorKind.VALIDATION


# ----------------------------------------------------------------------
# Publish
# ----------------------------------------------------------------------


class TestPublish:
    @pytest.fixture
    def publishable(self, ready_engine: ProjectEngine) -> ProjectEngine:
        configure_project(ready_engine.store, repo="octo/site", token="ghp_x", path="docs")
        return ready_engine

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, publishable: ProjectEngine, fake_storage, fake_generation, events) -> None:
        order: list[str] = []
        for name in ("ensure_repository_exists", "bulk_push_files", "enable_static_hosting"):
            getattr(fake_storage, name).side_effect = lambda *a, _n=name, **k: order.append(_n)
        fake_generation.generate_readme.side_effect = lambda *a, **k: order.append("readme") or "# R"

        outcome = await publish_and_check(publishable)

        assert outcome.ok
        assert order == ["ensure_repository_exists", "readme", "bulk_push_files", "enable_static_hosting"]
        assert _statuses(events) == [
            ProjectStatus.CREATING_REPO,
            ProjectStatus.PUSHING_FILES,
            ProjectStatus.ENABLING_PAGES,
            ProjectStatus.READY,
        ]

    @pytest.mark.asyncio
    async def test_push_receives_pages_and_readme(self, publishable: ProjectEngine, fake_storage) -> None:
        await publishable.publish()

        config, hubs, articles, readme = fake_storage.bulk_push_files.await_args.args
        assert config.repo == "octo/site"
        assert [h.slug for h in hubs] == ["index", "services"]
        assert [a.slug for a in articles] == ["consulting"]
        assert readme == "# Acme Labs\n"

    @pytest.mark.asyncio
    async def test_tracking_tags_are_pushed_not_stored(self, publishable: ProjectEngine, fake_storage) -> None:
        hubs = [h.model_copy(update={"html": HEAD_PAGE.format(h.title)}) for h in publishable.state.hubs]
        publishable.store.apply_update(hubs=hubs, gtm_id="GTM-XYZ")

        await publishable.publish()

        pushed = fake_storage.bulk_push_files.await_args.args[1]
        assert all("GTM-XYZ" in h.html for h in pushed)
        assert all("GTM-XYZ" not in h.html for h in publishable.state.hubs)

    @pytest.mark.asyncio
    async def test_invalid_target_fails_before_any_call(self, publishable: ProjectEngine, fake_storage) -> None:
        fake_storage.validate_target.side_effect = SiteValidationError("bad path")

        outcome = await publishable.publish()

        assert outcome.error_kind == ErrorKind.VALIDATION
        fake_storage.ensure_repository_exists.assert_not_awaited()
        assert publishable.state.status == ProjectStatus.READY

    @pytest.mark.asyncio
    async def test_credential_fills_missing_token(self, ready_engine: ProjectEngine, fake_storage) -> None:
        configure_project(ready_engine.store, repo="octo/site")

        await ready_engine.publish("ghp_env")

        assert fake_storage.ensure_repository_exists.await_args.args[0].token == "ghp_env"

    @pytest.mark.asyncio
    async def test_credential_overrides_stored_token(self, publishable: ProjectEngine, fake_storage) -> None:
        await publishable.publish("ghp_fresh")

        assert fake_storage.ensure_repository_exists.await_args.args[0].token == "ghp_fresh"
        assert fake_storage.bulk_push_files.await_args.args[0].token == "ghp_fresh"
        assert publishable.state.github_config.token == "ghp_x"

    @pytest.mark.asyncio
    async def test_push_failure_skips_pages_step(self, publishable: ProjectEngine, fake_storage) -> None:
        fake_storage.bulk_push_files.side_effect = ServiceError("422")

        outcome = await publishable.publish()

        assert outcome.kind == OutcomeKind.FAILED
        fake_storage.enable_static_hosting.assert_not_awaited()
        assert publishable.state.status == ProjectStatus.READY

    @pytest.mark.asyncio
    async def test_nothing_to_publish(self, engine: ProjectEngine, fake_storage) -> None:
        outcome = await engine.publish("ghp")
        assert outcome.error_kind == ErrorKind.VALIDATION
        fake_storage.ensure_repository_exists.assert_not_awaited()


async def publish_and_check(engine: ProjectEngine):
    outcome = await engine.publish()
    engine.state.check_invariants()
    return outcome


# ----------------------------------------------------------------------
# Add article
# ----------------------------------------------------------------------


class TestAddArticle:
    @pytest.mark.asyncio
    async def test_appends_article_under_proposed_hub(self, ready_engine: ProjectEngine, fake_generation) -> None:
        outcome = await ready_engine.add_article("I built a rocket sled")

        assert outcome.ok
        state = ready_engine.state
        assert len(state.articles) == 2
        article = state.articles[-1]
        assert (article.hub_id, article.slug, article.title) == ("svc", "rocket-sled", "Rocket Sled")
        assert article.content_html
        state.check_invariants()

        call = fake_generation.generate_page_markup.await_args
        assert call.kwargs["exemplar_markup"] == "<html>home</html>"
        assert call.kwargs["material"] == "I built a rocket sled"

    @pytest.mark.asyncio
    async def test_unknown_hub_falls_back_to_first_section(self, ready_engine: ProjectEngine, fake_generation) -> None:
        fake_generation.propose_showcase = AsyncMock(
            return_value=ShowcaseProposal(title="Sled", slug="sled", target_hub_id="made-up"),
        )
        await ready_engine.add_article("x")
        assert ready_engine.state.articles[-1].hub_id == "svc"

    @pytest.mark.asyncio
    async def test_home_only_site_is_rejected(self, ready_engine: ProjectEngine, fake_generation) -> None:
        ready_engine.store.apply_update(hubs=ready_engine.state.hubs[:1], articles=[])

        outcome = await ready_engine.add_article("x")

        assert outcome.error_kind == ErrorKind.VALIDATION
        assert ready_engine.state.articles == []
        fake_generation.propose_showcase.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_proposed_home_falls_back_to_section(self, ready_engine: ProjectEngine, fake_generation) -> None:
        fake_generation.propose_showcase = AsyncMock(
            return_value=ShowcaseProposal(title="Sled", slug="sled", target_hub_id="home"),
        )
        await ready_engine.add_article("x")
        assert ready_engine.state.articles[-1].hub_id == "svc"
        ready_engine.state.check_invariants()

    @pytest.mark.asyncio
    async def test_slug_made_unique_within_hub(self, ready_engine: ProjectEngine, fake_generation) -> None:
        fake_generation.propose_showcase = AsyncMock(
            return_value=ShowcaseProposal(title="Consulting", slug="consulting", target_hub_id="svc"),
        )
        await ready_engine.add_article("x")
        assert ready_engine.state.articles[-1].slug == "consulting-2"

    @pytest.mark.asyncio
    async def test_failure_appends_nothing(self, ready_engine: ProjectEngine, fake_generation) -> None:
        fake_generation.generate_page_markup = AsyncMock(side_effect=ServiceError("bad"))

        outcome = await ready_engine.add_article("x")

        assert outcome.kind == OutcomeKind.FAILED
        assert len(ready_engine.state.articles) == 1
        assert ready_engine.state.status == ProjectStatus.READY

    @pytest.mark.asyncio
    async def test_requires_a_site(self, engine: ProjectEngine) -> None:
        outcome = await engine.add_article("x")
        assert outcome.error_kind == ErrorKind.VALIDATION


# ----------------------------------------------------------------------
# Settings and export
# ----------------------------------------------------------------------


class TestConfigureAndExport:
    def test_configure_merges_github_settings(self, store: ProjectStore) -> None:
        configure_project(store, repo="octo/site", token="t")
        state = configure_project(store, branch="gh-pages", gtm_id="GTM-1", site_type=SiteType.PERSONAL)

        assert state.github_config == GitHubConfig(token="t", repo="octo/site", branch="gh-pages", path="docs")
        assert state.gtm_id == "GTM-1"
        assert state.site_type == SiteType.PERSONAL

    def test_configure_nothing(self, store: ProjectStore) -> None:
        assert configure_project(store) == store.state

    def test_export_writes_site(self, ready_store: ProjectStore, tmp_path: Path) -> None:
        written = export_site(ready_store, tmp_path / "out")

        assert len(written) == 3
        assert (tmp_path / "out" / "services" / "consulting.html").read_text() == "<html>consulting</html>"
        assert not (tmp_path / "out" / "README.md").exists()
        assert ready_store.state.status == ProjectStatus.READY

    def test_export_empty_project(self, store: ProjectStore, tmp_path: Path) -> None:
        with pytest.raises(SiteValidationError):
            export_site(store, tmp_path / "out")

    def test_export_includes_tracking_tags(self, ready_store: ProjectStore, tmp_path: Path) -> None:
        hubs = [HubPage(id="home", title="Home", slug="index", html=HEAD_PAGE.format("Home"))]
        ready_store.apply_update(hubs=hubs, articles=[], adsense_id="ca-pub-9")

        export_site(ready_store, tmp_path / "out")

        assert "ca-pub-9" in (tmp_path / "out" / "index.html").read_text()
