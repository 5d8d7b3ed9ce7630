"""Project Orchestration Engine — runs the Build, Import, Tune, Publish and
Add Article workflows over a ``ProjectStore``.

Status flow:
    idle  → building_identity → generating_strategy → generating_hubs → ready
    idle  → importing → ready
    ready → tuning_design → ready
    ready → creating_repo → pushing_files → enabling_pages → ready
    ready → generating_hubs (add article) → ready

``status`` doubles as the workflow mutex: a start request while it is
anything but idle/ready raises ``WorkflowBusyError``.  Pages, identity and
remote config are committed in one ``apply_update`` at the end of a
workflow; only Tune commits its completed prefix when it stops early.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from sitegen.engine.importer import IdProvider, new_id, locate_index, reconcile_import
from sitegen.engine.tuning import SCOPE_ALL, Tuner, tune_pages
from sitegen.errors import SiteValidationError, WorkflowBusyError, classify_error
from sitegen.generation.markup import unique_slug
from sitegen.schemas.generation import NavLink, ShowcaseProposal, StrategyProposal
from sitegen.schemas.project import (
    HOME_SLUG,
    Article,
    GitHubConfig,
    HubPage,
    Identity,
    ProjectState,
    ProjectStatus,
    SiteTone,
    SiteType,
)
from sitegen.schemas.storage import RepoMetadata, TreeEntry
from sitegen.schemas.workflow import OutcomeKind, ProgressEvent, WorkflowName, WorkflowOutcome
from sitegen.shared.cancellation import CancellationToken, Cancelled
from sitegen.shared.task_queue import PageTask, QueueProgress, SequentialQueue
from sitegen.site.files import build_site_files, with_tracking_tags, write_site
from sitegen.storage.state_store import ProjectStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

HOME_TITLE = "Home"
HOME_DESCRIPTION = "Landing page introducing the site and linking to every section"


class Generation(Tuner, Protocol):
    async def derive_identity(
        self, intent: str, category: SiteType, tone: SiteTone | None = None, *,
        cancel: CancellationToken | None = None,
    ) -> Identity: ...

    async def analyze_existing_markup(
        self, html: str, *, cancel: CancellationToken | None = None,
    ) -> Identity: ...

    async def propose_strategy(
        self, identity: Identity, category: SiteType, *,
        cancel: CancellationToken | None = None,
    ) -> StrategyProposal: ...

    async def generate_page_markup(
        self, page, identity: Identity, category: SiteType, all_sections: list[HubPage],
        nav_links: list[NavLink], is_home: bool, exemplar_markup: str | None = None,
        extra_instruction: str | None = None, *, material: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> str: ...

    async def generate_readme(
        self, identity: Identity, *, cancel: CancellationToken | None = None,
    ) -> str: ...

    async def propose_showcase(
        self, material: str, identity: Identity, hubs: list[HubPage], *,
        cancel: CancellationToken | None = None,
    ) -> ShowcaseProposal: ...


class Storage(Protocol):
    def validate_target(self, config: GitHubConfig) -> None: ...

    async def get_repository_metadata(
        self, config: GitHubConfig, *, cancel: CancellationToken | None = None,
    ) -> RepoMetadata: ...

    async def list_tree(
        self, config: GitHubConfig, *, cancel: CancellationToken | None = None,
    ) -> list[TreeEntry]: ...

    async def fetch_file_content(
        self, url: str, credential: str, *, cancel: CancellationToken | None = None,
    ) -> str: ...

    async def ensure_repository_exists(
        self, config: GitHubConfig, *, cancel: CancellationToken | None = None,
    ) -> None: ...

    async def bulk_push_files(
        self, config: GitHubConfig, hubs: list[HubPage], articles: list[Article],
        readme: str | None, *, cancel: CancellationToken | None = None,
    ) -> None: ...

    async def enable_static_hosting(
        self, config: GitHubConfig, *, cancel: CancellationToken | None = None,
    ) -> None: ...


class ProjectEngine:
    """Sequences the service clients into user-facing workflows."""

    def __init__(
        self,
        store: ProjectStore,
        generation: Generation,
        storage: Storage,
        *,
        id_provider: IdProvider = new_id,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.store = store
        self.generation = generation
        self.storage = storage
        self.id_provider = id_provider
        self.on_progress = on_progress
        self._cancel = CancellationToken()
        self._workflow: WorkflowName | None = None
        self._pages_committed = 0

    @property
    def state(self) -> ProjectState:
        return self.store.state

    @property
    def busy(self) -> bool:
        return not self.store.state.status.is_stable

    def cancel(self) -> None:
        """Ask the in-flight workflow to stop at its next suspension point."""
        if self.busy:
            logger.info("Cancellation requested for %s", self._workflow.value if self._workflow else "workflow")
            self._cancel.cancel()

    # ------------------------------------------------------------------
    # Workflow plumbing
    # ------------------------------------------------------------------

    def _emit(
        self,
        message: str = "",
        *,
        completed: int | None = None,
        total: int | None = None,
    ) -> None:
        if self.on_progress is None or self._workflow is None:
            return
        self.on_progress(ProgressEvent(
            workflow=self._workflow,
            status=self.store.state.status,
            message=message,
            completed=completed,
            total=total,
        ))

    def _set_status(self, status: ProjectStatus, message: str = "") -> None:
        self.store.apply_update(status=status)
        self._emit(message or status.value.replace("_", " "))

    def _queue_progress(self, prefix: str) -> Callable[[QueueProgress], None]:
        def report(p: QueueProgress) -> None:
            self._emit(f"{prefix} {p.label}", completed=p.index, total=p.total)
        return report

    def _commit(self, **changes: object) -> None:
        """Validate the resulting state, then write all changes at once."""
        self.store.state.model_copy(update=changes).check_invariants()
        self.store.apply_update(**changes)

    def _ensure_idle(self) -> None:
        if self.busy:
            raise WorkflowBusyError(
                f"A {self._workflow.value if self._workflow else 'workflow'} is already running "
                f"(status: {self.store.state.status.value})"
            )

    async def _run(
        self,
        workflow: WorkflowName,
        first_status: ProjectStatus,
        body: Callable[[], Awaitable[int]],
    ) -> WorkflowOutcome:
        self._ensure_idle()
        self._cancel.clear()
        self._workflow = workflow
        self._pages_committed = 0
        logger.info("Starting %s", workflow.value)
        self._set_status(first_status)

        try:
            pages = await body()
            outcome = WorkflowOutcome(workflow=workflow, kind=OutcomeKind.COMPLETED, pages_updated=pages)
            logger.info("%s completed", workflow.value)
        except Cancelled:
            outcome = WorkflowOutcome(
                workflow=workflow, kind=OutcomeKind.CANCELLED, pages_updated=self._pages_committed,
            )
            logger.info("%s cancelled", workflow.value)
        except Exception as exc:
            logger.exception("%s failed", workflow.value)
            outcome = WorkflowOutcome(
                workflow=workflow,
                kind=OutcomeKind.FAILED,
                error=str(exc) or type(exc).__name__,
                error_kind=classify_error(exc),
                pages_updated=self._pages_committed,
            )
        finally:
            self._cancel.clear()
            self.store.apply_update(status=self.store.state.stable_status())
            self._emit(f"{workflow.value} finished")
            self._workflow = None
        return outcome

    def _require_identity(self) -> Identity:
        identity = self.store.state.identity
        if identity is None:
            raise SiteValidationError("The project has no identity yet; run build or import first")
        return identity

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def build(
        self,
        intent: str | None = None,
        category: SiteType | None = None,
        tone: SiteTone | None = None,
    ) -> WorkflowOutcome:
        """Build a site from scratch.

        ``intent`` and ``category`` default to the stored opinion and site type.
        """
        async def body() -> int:
            statement = (intent or "").strip() or self.store.state.opinion.strip()
            if not statement:
                raise SiteValidationError("An intent statement is required")
            site_type = category or self.store.state.site_type
            cancel = self._cancel

            identity = await self.generation.derive_identity(statement, site_type, tone, cancel=cancel)

            self._set_status(ProjectStatus.GENERATING_STRATEGY)
            strategy = await self.generation.propose_strategy(identity, site_type, cancel=cancel)
            sections = self._sections_from_strategy(strategy)

            self._set_status(ProjectStatus.GENERATING_HUBS)
            home = HubPage(
                id=self.id_provider(), title=HOME_TITLE, slug=HOME_SLUG, description=HOME_DESCRIPTION,
            )

            def section_task(section: HubPage) -> PageTask[str]:
                async def run() -> str:
                    return await self.generation.generate_page_markup(
                        section, identity, site_type, sections, [], False, cancel=cancel,
                    )
                return PageTask(label=section.title, run=run)

            async def home_run() -> str:
                nav_links = [NavLink(title=s.title, url=f"{s.slug}/index.html") for s in sections]
                return await self.generation.generate_page_markup(
                    home, identity, site_type, sections, nav_links, True, cancel=cancel,
                )

            tasks = [section_task(s) for s in sections] + [PageTask(label=HOME_TITLE, run=home_run)]
            report = await SequentialQueue(tasks).run(
                cancel=cancel, on_progress=self._queue_progress("Generating"),
            )
            if report.cancelled:
                raise Cancelled()
            if report.error is not None:
                raise report.error

            *section_html, home_html = report.results
            hubs = [home.model_copy(update={"html": home_html})] + [
                s.model_copy(update={"html": html}) for s, html in zip(sections, section_html)
            ]
            self._commit(
                identity=identity,
                opinion=statement,
                site_type=site_type,
                hubs=hubs,
                articles=[],
                strategy_rationale=strategy.rationale,
            )
            return len(hubs)

        return await self._run(WorkflowName.BUILD, ProjectStatus.BUILDING_IDENTITY, body)

    def _sections_from_strategy(self, strategy: StrategyProposal) -> list[HubPage]:
        """Turn proposed stubs into hub pages with unique, URL-safe slugs."""
        taken: list[str] = []
        sections: list[HubPage] = []
        for stub in strategy.sections:
            slug = unique_slug(stub.slug or stub.title, taken, fallback="section")
            taken.append(slug)
            sections.append(HubPage(
                id=self.id_provider(), title=stub.title, slug=slug, description=stub.description,
            ))
        return sections

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def import_repository(self, repo: str, credential: str = "") -> WorkflowOutcome:
        async def body() -> int:
            cancel = self._cancel
            token = credential or self.store.state.github_config.token
            config = GitHubConfig(token=token, repo=repo)

            meta = await self.storage.get_repository_metadata(config, cancel=cancel)
            config = config.model_copy(update={"branch": meta.default_branch})
            tree = await self.storage.list_tree(config, cancel=cancel)

            entry, prefix = locate_index(tree)
            self._emit(f"Found {entry.path}")
            home_html = await self.storage.fetch_file_content(entry.url, token, cancel=cancel)
            identity = await self.generation.analyze_existing_markup(home_html, cancel=cancel)

            async def fetch(url: str) -> str:
                return await self.storage.fetch_file_content(url, token, cancel=cancel)

            pages = await reconcile_import(
                tree, prefix, fetch, id_provider=self.id_provider, home_html=home_html,
            )
            self._commit(
                identity=identity,
                hubs=pages.hubs,
                articles=pages.articles,
                strategy_rationale=None,
                github_config=config.model_copy(update={"path": prefix}),
            )
            return len(pages.hubs) + len(pages.articles)

        return await self._run(WorkflowName.IMPORT, ProjectStatus.IMPORTING, body)

    # ------------------------------------------------------------------
    # Tune
    # ------------------------------------------------------------------

    async def tune(self, instruction: str, scope: str = SCOPE_ALL) -> WorkflowOutcome:
        async def body() -> int:
            result = await tune_pages(
                self.generation,
                self.store.state,
                instruction,
                scope,
                cancel=self._cancel,
                on_progress=self._queue_progress("Tuning"),
            )
            # Finished pages are kept whether or not the rest succeeded.
            if result.pages_updated:
                self._commit(hubs=result.hubs, articles=result.articles)
                self._pages_committed = result.pages_updated

            report = result.report
            if report.cancelled:
                raise Cancelled()
            if report.error is not None:
                raise report.error
            return result.pages_updated

        return await self._run(WorkflowName.TUNE, ProjectStatus.TUNING_DESIGN, body)

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, credential: str = "") -> WorkflowOutcome:
        async def body() -> int:
            cancel = self._cancel
            state = self.store.state
            config = state.github_config
            if credential:
                config = config.model_copy(update={"token": credential})
            identity = self._require_identity()
            if not state.hubs:
                raise SiteValidationError("Nothing to publish: build or import a site first")
            self.storage.validate_target(config)

            await self.storage.ensure_repository_exists(config, cancel=cancel)

            self._set_status(ProjectStatus.PUSHING_FILES)
            readme = await self.generation.generate_readme(identity, cancel=cancel)
            hubs, articles = with_tracking_tags(
                state.hubs, state.articles, gtm_id=state.gtm_id, adsense_id=state.adsense_id,
            )
            await self.storage.bulk_push_files(config, hubs, articles, readme, cancel=cancel)

            self._set_status(ProjectStatus.ENABLING_PAGES)
            await self.storage.enable_static_hosting(config, cancel=cancel)
            return len(hubs) + len(articles)

        return await self._run(WorkflowName.PUBLISH, ProjectStatus.CREATING_REPO, body)

    # ------------------------------------------------------------------
    # Add article
    # ------------------------------------------------------------------

    async def add_article(self, material: str) -> WorkflowOutcome:
        async def body() -> int:
            cancel = self._cancel
            if not material.strip():
                raise SiteValidationError("Project material is required")
            state = self.store.state
            identity = self._require_identity()
            home = state.home
            if home is None:
                raise SiteValidationError("Nothing to attach an article to: build or import a site first")
            if not any(not h.is_home for h in state.hubs):
                raise SiteValidationError("Articles live under a section; the site has no sections yet")

            proposal = await self.generation.propose_showcase(material, identity, state.hubs, cancel=cancel)
            hub = self._showcase_hub(state, proposal.target_hub_id)
            slug = unique_slug(
                proposal.slug or proposal.title,
                [a.slug for a in state.articles if a.hub_id == hub.id],
                fallback="article",
            )
            self._emit(f"Writing {proposal.title!r} under {hub.title}")

            html = await self.generation.generate_page_markup(
                proposal, identity, state.site_type, state.hubs, [], hub.is_home,
                exemplar_markup=home.html, material=material, cancel=cancel,
            )
            article = Article(
                id=self.id_provider(), hub_id=hub.id, title=proposal.title, slug=slug, content_html=html,
            )
            self._commit(articles=[*self.store.state.articles, article])
            return 1

        return await self._run(WorkflowName.ADD_ARTICLE, ProjectStatus.GENERATING_HUBS, body)

    @staticmethod
    def _showcase_hub(state: ProjectState, hub_id: str) -> HubPage:
        """The proposed section, else the first section."""
        hub = state.hub_by_id(hub_id) if hub_id else None
        if hub is not None and not hub.is_home:
            return hub
        if hub_id:
            logger.warning("Proposed hub %r is not a section; falling back", hub_id)
        return next(h for h in state.hubs if not h.is_home)


# ----------------------------------------------------------------------
# Outside workflows: no services, no status transition
# ----------------------------------------------------------------------


def export_site(store: ProjectStore, out_dir: Path) -> list[Path]:
    """Write the publishable file set, tracking tags included, to ``out_dir``."""
    state = store.snapshot()
    if not state.hubs:
        raise SiteValidationError("Nothing to export: build or import a site first")
    hubs, articles = with_tracking_tags(
        state.hubs, state.articles, gtm_id=state.gtm_id, adsense_id=state.adsense_id,
    )
    written = write_site(build_site_files(hubs, articles), out_dir)
    logger.info("Exported %d file(s) to %s", len(written), out_dir)
    return written


def configure_project(
    store: ProjectStore,
    *,
    repo: str | None = None,
    token: str | None = None,
    branch: str | None = None,
    path: str | None = None,
    gtm_id: str | None = None,
    adsense_id: str | None = None,
    opinion: str | None = None,
    site_type: SiteType | None = None,
) -> ProjectState:
    """Update project settings; ``None`` leaves a setting as it is.

    Rejected while a workflow is running.
    """
    if not store.state.status.is_stable:
        raise WorkflowBusyError(f"Cannot change settings while {store.state.status.value}")

    github = {
        k: v for k, v in {"repo": repo, "token": token, "branch": branch, "path": path}.items()
        if v is not None
    }
    changes: dict[str, object] = {
        k: v for k, v in {
            "gtm_id": gtm_id, "adsense_id": adsense_id, "opinion": opinion, "site_type": site_type,
        }.items()
        if v is not None
    }
    if github:
        changes["github_config"] = store.state.github_config.model_copy(update=github)
    if not changes:
        return store.state
    return store.apply_update(**changes)
