"""Typer CLI — ``sitegen build``, ``import``, ``tune``, ``add-article``,
``publish``, ``export``, ``configure`` and ``status``."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Awaitable, Callable

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from sitegen.config import load_config
from sitegen.engine.orchestrator import ProjectEngine, configure_project, export_site
from sitegen.errors import SiteGenError
from sitegen.schemas.config import AppConfig
from sitegen.schemas.project import SiteTone, SiteType
from sitegen.schemas.workflow import OutcomeKind, WorkflowOutcome
from sitegen.storage.state_store import JsonStateStorage, ProjectStore

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="sitegen",
    help="Generate, import, tune and publish AI-built static sites.",
    no_args_is_help=True,
)
console = Console()

EXIT_CANCELLED = 130

ConfigOption = typer.Option(None, "--config", "-c", help="Path to sitegen.yml")
VerboseOption = typer.Option(False, "--verbose", "-v")
DryRunOption = typer.Option(False, "--dry-run", help="Use canned generation output (no API calls).")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO; too noisy for users
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def _load(config: Path | None) -> AppConfig:
    if config is None:
        return AppConfig()
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


def _store(cfg: AppConfig) -> ProjectStore:
    return ProjectStore(
        JsonStateStorage(cfg.resolved_state_path),
        default_opinion=cfg.default_opinion,
        default_branch=cfg.github.default_branch,
        default_path=cfg.github.default_path,
    )


async def _run_engine(
    cfg: AppConfig,
    label: str,
    start: Callable[[ProjectEngine], Awaitable[WorkflowOutcome]],
    *,
    dry_run: bool = False,
) -> WorkflowOutcome:
    """Wire up clients, run one workflow, and route Ctrl-C to cancellation."""
    from sitegen.generation.service import GenerationService
    from sitegen.shared.progress import WorkflowProgress
    from sitegen.shared.retry import RetryPolicy
    from sitegen.storage.github import GitHubStorageClient

    if dry_run:
        from sitegen.shared.llm_client import DryRunClient
        client = DryRunClient()
    else:
        from sitegen.shared.llm_client import LLMClient
        client = LLMClient(model=cfg.model, max_tokens=cfg.max_tokens)

    retry = RetryPolicy(
        max_retries=cfg.retry.max_retries,
        initial_delay=cfg.retry.initial_delay,
        multiplier=cfg.retry.multiplier,
        max_delay=cfg.retry.max_delay,
    )
    generation = GenerationService(client, retry)

    async with GitHubStorageClient(retry, api_url=cfg.github.api_url, timeout=cfg.github.timeout) as storage:
        with WorkflowProgress(label) as progress:
            engine = ProjectEngine(_store(cfg), generation, storage, on_progress=progress.handle)

            loop = asyncio.get_running_loop()
            try:
                loop.add_signal_handler(signal.SIGINT, engine.cancel)
                handler_installed = True
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows event loops and non-main threads have no signal handlers
                handler_installed = False

            try:
                outcome = await start(engine)
            finally:
                if handler_installed:
                    loop.remove_signal_handler(signal.SIGINT)
            progress.finish(outcome)
    return outcome


def _execute(
    cfg: AppConfig,
    label: str,
    start: Callable[[ProjectEngine], Awaitable[WorkflowOutcome]],
    *,
    dry_run: bool = False,
) -> None:
    if dry_run:
        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")
    try:
        outcome = asyncio.run(_run_engine(cfg, label, start, dry_run=dry_run))
    except SiteGenError as exc:
        console.print(f"[red]{label} rejected:[/] {exc}")
        raise typer.Exit(code=1)

    if outcome.kind == OutcomeKind.CANCELLED:
        console.print(f"[yellow]{label} cancelled.[/]")
        if outcome.pages_updated:
            console.print(f"  Kept {outcome.pages_updated} page(s) finished before cancelling.")
        raise typer.Exit(code=EXIT_CANCELLED)
    if outcome.kind == OutcomeKind.FAILED:
        kind = outcome.error_kind.value if outcome.error_kind else "error"
        console.print(f"[red]{label} failed ({kind}):[/] {outcome.error}")
        if outcome.pages_updated:
            console.print(f"  Kept {outcome.pages_updated} page(s) finished before the failure.")
        raise typer.Exit(code=1)
    console.print(f"[green]{label} complete[/] ({outcome.pages_updated} page(s))")


@app.command()
def build(
    intent: str = typer.Argument(
        None, help="What the site is for, in your own words. Defaults to the stored opinion.",
    ),
    site_type: SiteType = typer.Option(
        None, "--site-type", case_sensitive=False, help="Defaults to the stored site type.",
    ),
    tone: SiteTone = typer.Option(None, "--tone", case_sensitive=False),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Derive an identity and strategy from INTENT and generate every page.

    The intent used is stored as the project opinion for the next build.
    """
    _setup_logging(verbose)
    cfg = _load(config)
    _execute(cfg, "Build", lambda engine: engine.build(intent, site_type, tone), dry_run=dry_run)


@app.command("import")
def import_(
    repo: str = typer.Argument(..., help="Repository in owner/repo form."),
    token: str = typer.Option("", "--token", envvar="GITHUB_TOKEN", help="GitHub access token."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Rebuild the project from an existing site in a GitHub repository."""
    _setup_logging(verbose)
    cfg = _load(config)
    _execute(
        cfg, "Import", lambda engine: engine.import_repository(repo, token), dry_run=dry_run,
    )


@app.command()
def tune(
    instruction: str = typer.Argument(..., help="Design change to apply, e.g. 'increase padding'."),
    target: str = typer.Option("all", "--target", "-t", help="'all' or a page id (see `sitegen status`)."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Apply one design instruction to a page or to the whole site."""
    _setup_logging(verbose)
    cfg = _load(config)
    _execute(cfg, "Tune", lambda engine: engine.tune(instruction, target), dry_run=dry_run)


@app.command("add-article")
def add_article(
    material: str = typer.Argument(..., help="Notes or description of the project to showcase."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Write a showcase article from project material and file it under a section."""
    _setup_logging(verbose)
    cfg = _load(config)
    _execute(cfg, "Add article", lambda engine: engine.add_article(material), dry_run=dry_run)


@app.command()
def publish(
    token: str = typer.Option("", "--token", envvar="GITHUB_TOKEN", help="Overrides the stored token."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Push the site to the configured repository and enable GitHub Pages."""
    _setup_logging(verbose)
    cfg = _load(config)
    _execute(cfg, "Publish", lambda engine: engine.publish(token))


@app.command()
def export(
    output: Path = typer.Argument(..., help="Directory to write the site into."),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Write the publishable site to a local directory."""
    _setup_logging(verbose)
    cfg = _load(config)
    try:
        written = export_site(_store(cfg), output)
    except SiteGenError as exc:
        console.print(f"[red]Cannot export:[/] {exc}")
        raise typer.Exit(code=1)
    console.print(f"[green]Exported {len(written)} file(s) to:[/] {output}")


@app.command()
def configure(
    repo: str = typer.Option(None, "--repo", help="Target repository, owner/repo."),
    token: str = typer.Option(None, "--token", help="GitHub token to store with the project."),
    branch: str = typer.Option(None, "--branch"),
    path: str = typer.Option(None, "--path", help="Directory inside the repo: '' or 'docs'."),
    gtm_id: str = typer.Option(None, "--gtm-id"),
    adsense_id: str = typer.Option(None, "--adsense-id"),
    opinion: str = typer.Option(None, "--opinion"),
    site_type: SiteType = typer.Option(None, "--site-type", case_sensitive=False),
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Update the publish target, tracking ids and project settings."""
    _setup_logging(verbose)
    cfg = _load(config)
    try:
        state = configure_project(
            _store(cfg),
            repo=repo, token=token, branch=branch, path=path, gtm_id=gtm_id,
            adsense_id=adsense_id, opinion=opinion, site_type=site_type,
        )
    except SiteGenError as exc:
        console.print(f"[red]Cannot configure:[/] {exc}")
        raise typer.Exit(code=1)

    gh = state.github_config
    console.print("[green]Project settings saved.[/]\n")
    console.print(f"  Repository:  {gh.repo or '(none)'}")
    console.print(f"  Branch/path: {gh.branch} / {gh.path or '(root)'}")
    console.print(f"  Token:       {'set' if gh.token else '(none)'}")
    console.print(f"  GTM:         {state.gtm_id or '(none)'}")
    console.print(f"  AdSense:     {state.adsense_id or '(none)'}")
    console.print(f"  Site type:   {state.site_type.value}")


@app.command()
def status(
    config: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show the project summary, every page and its id."""
    _setup_logging(verbose)
    cfg = _load(config)
    state = _store(cfg).snapshot()

    console.print(f"[bold]Status:[/] {state.status.value}")
    if state.identity is None:
        console.print("No site yet. Run [bold]sitegen build[/] or [bold]sitegen import[/].")
        return

    identity = state.identity
    console.print(f"[bold]Site:[/]   {identity.site_name} ({state.site_type.value})")
    console.print(f"[bold]Mission:[/] {identity.mission}")
    if identity.tone:
        console.print(f"[bold]Tone:[/]   {identity.tone.value}")
    if state.strategy_rationale:
        console.print(f"[bold]Strategy:[/] {state.strategy_rationale}")

    table = Table(title="Pages")
    table.add_column("Id", style="dim")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Slug")
    for hub in state.hubs:
        table.add_row(hub.id, "home" if hub.is_home else "section", hub.title, hub.slug)
    hubs = {h.id: h for h in state.hubs}
    for article in state.articles:
        parent = hubs.get(article.hub_id)
        table.add_row(
            article.id, "article", article.title,
            f"{parent.slug}/{article.slug}" if parent else article.slug,
        )
    console.print(table)
