"""Import Reconciler: rebuild hubs and articles from a repository tree.

Only paths under the root directory count. Relative to it:

    index.html                  home page
    <segment>/index.html        section, slug = segment
    <segment>/<name>.html       article under the section ``segment``

Everything else is ignored. Articles whose section does not exist are
dropped rather than reported.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Awaitable, Callable, Sequence

from sitegen.errors import SiteValidationError
from sitegen.generation.markup import extract_title
from sitegen.schemas.project import HOME_SLUG, Article, HubPage
from sitegen.schemas.storage import TreeEntry

logger = logging.getLogger(__name__)

# Checked in order; the first blob present wins.
INDEX_CANDIDATES = (
    "index.html",
    "docs/index.html",
    "public/index.html",
    "dist/index.html",
    "build/index.html",
    "site/index.html",
    "_site/index.html",
    "out/index.html",
)

IMPORTED_DESCRIPTION = "Imported from repository"

Fetcher = Callable[[str], Awaitable[str]]
IdProvider = Callable[[], str]


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ImportedPages:
    hubs: list[HubPage] = field(default_factory=list)
    articles: list[Article] = field(default_factory=list)


def locate_index(tree: Sequence[TreeEntry]) -> tuple[TreeEntry, str]:
    """Find the site's root index file and the directory it lives in.

    Raises ``SiteValidationError`` when no candidate exists; Import never
    retries that.
    """
    blobs = {entry.path: entry for entry in tree if entry.type == "blob"}
    for candidate in INDEX_CANDIDATES:
        entry = blobs.get(candidate)
        if entry is not None:
            prefix = str(PurePosixPath(candidate).parent)
            return entry, "" if prefix == "." else prefix
    raise SiteValidationError(
        "No index.html found at the repository root or in "
        + ", ".join(c.rsplit("/", 1)[0] + "/" for c in INDEX_CANDIDATES[1:])
    )


def relative_path(path: str, root_prefix: str) -> str | None:
    """``path`` with ``root_prefix`` stripped, or None if it lies outside it."""
    if not root_prefix:
        return path
    if path.startswith(root_prefix + "/"):
        return path[len(root_prefix) + 1:]
    return None


def _classify(rel: str) -> tuple[str, str] | None:
    """(kind, segment) for depth-2 html files, else None."""
    parts = rel.split("/")
    if len(parts) != 2 or not parts[1].endswith(".html"):
        return None
    segment, filename = parts
    if not segment or segment == HOME_SLUG:
        return None
    if filename == "index.html":
        return "section", segment
    return "article", segment


async def reconcile_import(
    tree: Sequence[TreeEntry],
    root_prefix: str,
    fetch: Fetcher,
    *,
    id_provider: IdProvider = new_id,
    home_html: str | None = None,
) -> ImportedPages:
    """Derive ``{hubs, articles}`` from a tree listing.

    Sections are collected in a first pass so an article listed before its
    section's ``index.html`` still finds its hub. Output order is home,
    then sections, then articles, each in tree order.
    """
    home_entry: TreeEntry | None = None
    sections: list[tuple[str, TreeEntry]] = []
    article_entries: list[tuple[str, str, TreeEntry]] = []

    for entry in tree:
        if entry.type != "blob":
            continue
        rel = relative_path(entry.path, root_prefix)
        if rel is None:
            continue
        if rel == "index.html":
            home_entry = entry
            continue
        classified = _classify(rel)
        if classified is None:
            continue
        kind, segment = classified
        if kind == "section":
            sections.append((segment, entry))
        else:
            stem = PurePosixPath(rel).stem
            article_entries.append((segment, stem, entry))

    if home_html is None:
        if home_entry is None:
            raise SiteValidationError(f"No index.html under {root_prefix or 'the repository root'}")
        home_html = await fetch(home_entry.url)

    home = HubPage(
        id=id_provider(),
        title="Home",
        slug=HOME_SLUG,
        description=IMPORTED_DESCRIPTION,
        html=home_html,
    )
    hubs = [home]
    hub_by_slug: dict[str, HubPage] = {}

    for segment, entry in sections:
        html = await fetch(entry.url)
        hub = HubPage(
            id=id_provider(),
            title=extract_title(html, segment),
            slug=segment,
            description=IMPORTED_DESCRIPTION,
            html=html,
        )
        hubs.append(hub)
        hub_by_slug[segment] = hub

    articles: list[Article] = []
    for segment, stem, entry in article_entries:
        hub = hub_by_slug.get(segment)
        if hub is None:
            logger.debug("Dropping %s: no section %r", entry.path, segment)
            continue
        html = await fetch(entry.url)
        articles.append(
            Article(
                id=id_provider(),
                hub_id=hub.id,
                title=extract_title(html, stem),
                slug=stem,
                content_html=html,
            )
        )

    logger.info(
        "Reconciled %d section(s) and %d article(s) under %r",
        len(hubs) - 1, len(articles), root_prefix,
    )
    return ImportedPages(hubs=hubs, articles=articles)
