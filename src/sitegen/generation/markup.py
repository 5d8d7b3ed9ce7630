"""Markup helpers: fence stripping, slugs, titles and shared page chrome."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, FileSystemLoader

from sitegen.schemas.project import HOME_SLUG, HubPage, Identity, SiteType

_TEMPLATE_DIR = Path(__file__).parent / "templates"

_env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=True)

_LEADING_FENCE_RE = re.compile(r"\A\s*```[a-z]*[ \t]*\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\n?```\s*\Z")
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_TITLE_SEPARATOR_RE = re.compile(r"[|\-]")


def strip_markdown(text: str) -> str:
    """Remove the ```html fence the model sometimes wraps around markup.

    Only a fence opening or closing the whole reply is removed; fences inside
    the page (code samples in ``<pre>``) are kept.
    """
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    return _TRAILING_FENCE_RE.sub("", text, count=1).strip()


def slugify(text: str) -> str:
    """Lowercase, URL-safe slug (a-z, 0-9, single hyphens)."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug


def unique_slug(candidate: str, taken: Iterable[str], *, fallback: str = "page") -> str:
    """Slugify ``candidate`` and suffix ``-2``, ``-3``… until it is not taken.

    The home slug is always treated as taken.
    """
    taken_set = set(taken) | {HOME_SLUG}
    base = slugify(candidate) or fallback
    slug = base
    n = 2
    while slug in taken_set:
        slug = f"{base}-{n}"
        n += 1
    return slug


def extract_title(html: str, fallback: str) -> str:
    """First ``<title>`` text, cut at the first ``|`` or ``-`` separator.

    "Services | Acme" → "Services".  Falls back when there is no title or
    the part before the separator is empty.
    """
    match = _TITLE_RE.search(html or "")
    if not match:
        return fallback
    text = re.sub(r"\s+", " ", match.group(1)).strip()
    head = _TITLE_SEPARATOR_RE.split(text, maxsplit=1)[0].strip()
    return head or fallback


def render_header(
    identity: Identity,
    site_type: SiteType,
    hubs: list[HubPage],
    *,
    is_home: bool,
) -> str:
    prefix = "./" if is_home else "../"
    nav_links = [
        {"title": h.title, "url": f"{prefix}{h.slug}/index.html"}
        for h in hubs
        if not h.is_home
    ]
    return _env.get_template("header.html").render(
        prefix=prefix,
        site_name=identity.site_name,
        initial=identity.site_name[:1],
        theme_color=identity.theme_color,
        nav_links=nav_links,
        contact_label="Contact us" if site_type == SiteType.CORPORATE else "Contact",
    )


def render_footer(identity: Identity, *, year: int | None = None) -> str:
    return _env.get_template("footer.html").render(
        site_name=identity.site_name,
        mission=identity.mission,
        year=year or datetime.now().year,
    )
