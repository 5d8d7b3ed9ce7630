"""Shared test fixtures."""

from __future__ import annotations

import itertools
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from sitegen.schemas.generation import SectionStub, ShowcaseProposal, StrategyProposal
from sitegen.schemas.project import Article, HubPage, Identity, ProjectState, ProjectStatus
from sitegen.schemas.storage import RepoMetadata
from sitegen.shared.llm_client import LLMClient
from sitegen.shared.retry import RetryPolicy
from sitegen.storage.state_store import JsonStateStorage, ProjectStore


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "sitegen.yml"
    cfg.write_text(
        """\
model: gpt-4o-mini
retry:
  max_retries: 2
  initial_delay: 0
state_path: "{state}"
""".format(state=str(tmp_path / "state.json"))
    )
    return cfg


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Return an LLMClient with a mocked OpenAI SDK underneath."""
    client = LLMClient.__new__(LLMClient)
    client._client = AsyncMock()
    client.model = "gpt-4o"
    client.max_tokens = 1024
    return client


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """RetryPolicy that never actually sleeps."""
    return RetryPolicy(max_retries=3, initial_delay=1.0, multiplier=2.0, sleep=AsyncMock())


@pytest.fixture
def ids():
    """Deterministic id provider: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def identity() -> Identity:
    return Identity(
        site_name="Acme Labs",
        slug="acme-labs",
        mission="Tools for makers",
        brand_description="Friendly and precise",
        theme_color="#112233",
    )


@pytest.fixture
def built_state(identity: Identity) -> ProjectState:
    """A ready project with home + services and one article."""
    return ProjectState(
        identity=identity,
        hubs=[
            HubPage(id="home", title="Home", slug="index", html="<html>home</html>"),
            HubPage(id="svc", title="Services", slug="services", html="<html>services</html>"),
        ],
        articles=[
            Article(id="art", hub_id="svc", title="Consulting", slug="consulting",
                    content_html="<html>consulting</html>"),
        ],
        status=ProjectStatus.READY,
    )


@pytest.fixture
def store(tmp_path: Path) -> ProjectStore:
    return ProjectStore(JsonStateStorage(tmp_path / "state.json"))


@pytest.fixture
def ready_store(tmp_path: Path, built_state: ProjectState) -> ProjectStore:
    storage = JsonStateStorage(tmp_path / "state.json")
    storage.save(built_state)
    return ProjectStore(storage)


@pytest.fixture
def fake_generation(identity: Identity) -> MagicMock:
    """Generation Service stand-in; every operation is an AsyncMock."""
    gen = MagicMock()
    gen.derive_identity = AsyncMock(return_value=identity)
    gen.analyze_existing_markup = AsyncMock(return_value=identity)
    gen.propose_strategy = AsyncMock(
        return_value=StrategyProposal(
            sections=[
                SectionStub(title="Services", slug="services", description="What we do"),
                SectionStub(title="About Us", slug="about", description="Who we are"),
            ],
            rationale="Keep it short",
        )
    )

    async def page(page, *args, **kwargs) -> str:
        return f"<html><title>{page.title}</title></html>"

    gen.generate_page_markup = AsyncMock(side_effect=page)

    async def tune(current_html, instruction, identity, exemplar_html=None, **kwargs) -> str:
        return current_html.replace("<html>", "<html tuned>")

    gen.tune_markup = AsyncMock(side_effect=tune)
    gen.generate_readme = AsyncMock(return_value="# Acme Labs\n")
    gen.propose_showcase = AsyncMock(
        return_value=ShowcaseProposal(
            title="Rocket Sled", slug="rocket-sled", description="A fast sled", target_hub_id="svc",
        )
    )
    return gen


@pytest.fixture
def fake_storage() -> MagicMock:
    """Repository Storage stand-in; async operations are AsyncMocks."""
    st = MagicMock()
    st.validate_target = MagicMock(return_value=None)
    st.get_repository_metadata = AsyncMock(return_value=RepoMetadata(default_branch="main"))
    st.list_tree = AsyncMock(return_value=[])
    st.fetch_file_content = AsyncMock(return_value="<html><title>Page</title></html>")
    st.ensure_repository_exists = AsyncMock(return_value=None)
    st.bulk_push_files = AsyncMock(return_value=None)
    st.enable_static_hosting = AsyncMock(return_value=None)
    return st
