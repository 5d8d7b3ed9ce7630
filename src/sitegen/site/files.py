"""Repository layout for generated pages, plus tracking-tag injection.

Publish pushes exactly the file set built here, and local export writes
the same set to disk, so an exported tree re-imports to the same model.

Layout, relative to the target directory:
    index.html                  home page
    <section>/index.html        section page
    <section>/<article>.html    article
README.md always goes to the repository root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sitegen.schemas.project import Article, HubPage

logger = logging.getLogger(__name__)

README_PATH = "README.md"

_GTM_HEAD = """<!-- Google Tag Manager -->
<script>(function(w,d,s,l,i){{w[l]=w[l]||[];w[l].push({{'gtm.start':
new Date().getTime(),event:'gtm.js'}});var f=d.getElementsByTagName(s)[0],
j=d.createElement(s),dl=l!='dataLayer'?'&l='+l:'';j.async=true;j.src=
'https://www.googletagmanager.com/gtm.js?id='+i+dl;f.parentNode.insertBefore(j,f);
}})(window,document,'script','dataLayer','{gtm_id}');</script>
<!-- End Google Tag Manager -->"""

_ADSENSE_HEAD = (
    '<script async src="https://pagead2.googlesyndication.com/pagead/js/adsbygoogle.js'
    '?client={adsense_id}" crossorigin="anonymous"></script>'
)


def _join(base: str, relative: str) -> str:
    base = base.strip("/")
    return f"{base}/{relative}" if base else relative


def page_path(base: str, hub: HubPage) -> str:
    if hub.is_home:
        return _join(base, "index.html")
    return _join(base, f"{hub.slug}/index.html")


def article_path(base: str, article: Article, hub: HubPage) -> str:
    return _join(base, f"{hub.slug}/{article.slug}.html")


def build_site_files(
    hubs: list[HubPage],
    articles: list[Article],
    *,
    base_path: str = "",
    readme: str | None = None,
) -> dict[str, str]:
    """Map repository paths to file contents.

    Pages without markup are skipped. Articles whose hub is missing or is
    the home page have no place in the layout and are skipped with a warning.
    """
    files: dict[str, str] = {}
    by_id = {h.id: h for h in hubs}

    for hub in hubs:
        if hub.html:
            files[page_path(base_path, hub)] = hub.html

    for article in articles:
        hub = by_id.get(article.hub_id)
        if hub is None or hub.is_home:
            logger.warning("Skipping article %r: hub %r is not a section", article.slug, article.hub_id)
            continue
        if article.content_html:
            files[article_path(base_path, article, hub)] = article.content_html

    if readme is not None:
        files[README_PATH] = readme
    return files


def inject_tracking_tags(html: str, *, gtm_id: str = "", adsense_id: str = "") -> str:
    """Insert GTM / AdSense snippets right before ``</head>``.

    Idempotent: a snippet whose id already appears in the page is skipped.
    Pages without a ``</head>`` are returned unchanged.
    """
    snippets: list[str] = []
    if gtm_id and gtm_id not in html:
        snippets.append(_GTM_HEAD.format(gtm_id=gtm_id))
    if adsense_id and adsense_id not in html:
        snippets.append(_ADSENSE_HEAD.format(adsense_id=adsense_id))
    if not snippets:
        return html

    idx = html.lower().find("</head>")
    if idx == -1:
        return html
    return html[:idx] + "\n".join(snippets) + "\n" + html[idx:]


def with_tracking_tags(
    hubs: list[HubPage],
    articles: list[Article],
    *,
    gtm_id: str = "",
    adsense_id: str = "",
) -> tuple[list[HubPage], list[Article]]:
    """Copies of the page lists with tracking tags injected into every page."""
    if not gtm_id and not adsense_id:
        return list(hubs), list(articles)

    tagged_hubs = [
        h.model_copy(update={"html": inject_tracking_tags(h.html, gtm_id=gtm_id, adsense_id=adsense_id)})
        if h.html else h
        for h in hubs
    ]
    tagged_articles = [
        a.model_copy(update={
            "content_html": inject_tracking_tags(a.content_html, gtm_id=gtm_id, adsense_id=adsense_id)
        })
        if a.content_html else a
        for a in articles
    ]
    return tagged_hubs, tagged_articles


def write_site(files: dict[str, str], out_dir: Path) -> list[Path]:
    """Write a file map under ``out_dir``; returns the written paths."""
    written: list[Path] = []
    for rel, content in files.items():
        target = out_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)
    return written
