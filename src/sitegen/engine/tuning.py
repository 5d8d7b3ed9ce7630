"""Tuning Fan-out: apply one style instruction across a page set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Literal, Protocol

from sitegen.errors import SiteValidationError
from sitegen.schemas.project import Article, HubPage, Identity, ProjectState
from sitegen.shared.cancellation import CancellationToken
from sitegen.shared.task_queue import PageTask, QueueProgress, QueueReport, SequentialQueue

logger = logging.getLogger(__name__)

SCOPE_ALL = "all"


class Tuner(Protocol):
    async def tune_markup(
        self,
        current_html: str,
        instruction: str,
        identity: Identity,
        exemplar_html: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> str: ...


@dataclass
class TuneTarget:
    kind: Literal["hub", "article"]
    id: str
    label: str
    html: str
    exemplar: str | None


@dataclass
class TuneResult:
    hubs: list[HubPage]
    articles: list[Article]
    report: QueueReport[str] = field(default_factory=QueueReport)

    @property
    def pages_updated(self) -> int:
        return len(self.report.results)


def select_targets(state: ProjectState, scope: str = SCOPE_ALL) -> list[TuneTarget]:
    """Pages to tune, in order: hubs then articles.

    The home page's current markup is the exemplar for every other page;
    the home page itself is tuned without one.
    """
    home = state.home
    exemplar = home.html if home is not None and home.html else None

    def hub_target(hub: HubPage) -> TuneTarget:
        return TuneTarget(
            kind="hub", id=hub.id, label=hub.title, html=hub.html or "",
            exemplar=None if hub.is_home else exemplar,
        )

    def article_target(article: Article) -> TuneTarget:
        return TuneTarget(
            kind="article", id=article.id, label=article.title,
            html=article.content_html or "", exemplar=exemplar,
        )

    if scope == SCOPE_ALL:
        targets = [hub_target(h) for h in state.hubs] + [article_target(a) for a in state.articles]
        skipped = [t.label for t in targets if not t.html]
        if skipped:
            logger.info("Skipping pages without markup: %s", ", ".join(skipped))
        return [t for t in targets if t.html]

    hub = state.hub_by_id(scope)
    if hub is not None:
        target = hub_target(hub)
    else:
        article = next((a for a in state.articles if a.id == scope), None)
        if article is None:
            raise SiteValidationError(f"No page with id {scope!r}")
        target = article_target(article)
    if not target.html:
        raise SiteValidationError(f"Page {target.label!r} has no markup to tune")
    return [target]


async def tune_pages(
    tuner: Tuner,
    state: ProjectState,
    instruction: str,
    scope: str = SCOPE_ALL,
    *,
    cancel: CancellationToken | None = None,
    on_progress: Callable[[QueueProgress], None] | None = None,
) -> TuneResult:
    """Run the tuning operation on each target, one at a time.

    The returned page lists carry the rewritten markup of every page that
    finished, even when a later page failed or the run was cancelled; the
    report says which.
    """
    if state.identity is None:
        raise SiteValidationError("Nothing to tune: the project has no identity yet")
    if not instruction.strip():
        raise SiteValidationError("A tuning instruction is required")

    identity = state.identity
    targets = select_targets(state, scope)

    def make_task(target: TuneTarget) -> PageTask[str]:
        async def run() -> str:
            return await tuner.tune_markup(
                target.html, instruction, identity, target.exemplar, cancel=cancel,
            )
        return PageTask(label=target.label, run=run)

    queue = SequentialQueue([make_task(t) for t in targets])
    report = await queue.run(cancel=cancel, on_progress=on_progress)

    new_html = {t.id: html for t, html in zip(targets, report.results)}
    hubs = [
        h.model_copy(update={"html": new_html[h.id]}) if h.id in new_html else h
        for h in state.hubs
    ]
    articles = [
        a.model_copy(update={"content_html": new_html[a.id]}) if a.id in new_html else a
        for a in state.articles
    ]
    return TuneResult(hubs=hubs, articles=articles, report=report)
