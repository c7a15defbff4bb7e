"""
Main CLI application for RegWatch.

Provides the command-line job submission surface:
- Submitting crawl jobs for single URLs, URL lists and catalog sources
- Draining the job queue through the ingestion pipeline
- Inspecting queue state and metrics
- Searching ingested regulations
"""

import asyncio
from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from regwatch import __version__
from regwatch.config import Settings, load_config
from regwatch.utils.logging import get_logger, setup_logging
from regwatch.utils.metrics import Metrics

app = typer.Typer(
    name="regwatch",
    help="RegWatch - Polite crawling and retrieval of regulatory documents",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]RegWatch[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """
    RegWatch - Crawl regulatory sources and search what was collected.

    Use 'regwatch --help' for command list.
    """
    ctx.obj = {"config_file": config_file, "verbose": verbose}


def _settings(ctx: typer.Context) -> Settings:
    """Load settings for this invocation and configure logging once."""
    obj = ctx.obj or {}
    settings = load_config(obj.get("config_file"))
    log_settings = settings.logging
    if obj.get("verbose"):
        log_settings = log_settings.model_copy(update={"level": "DEBUG"})
    setup_logging(log_settings)
    return settings


def _open_scheduler(settings: Settings, pipeline=None):
    from regwatch.scheduler import JobScheduler
    from regwatch.storage import Database, JobRepository

    db = Database.from_settings(settings)
    return db, JobScheduler.from_settings(settings.scheduler, JobRepository(db), pipeline)


def _fail(message: str, error: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    logger.exception(message)
    raise typer.Exit(1)


# =============================================================================
# Job submission
# =============================================================================


@app.command()
def submit(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL to fetch"),
    source: str = typer.Option(..., "--source", "-s", help="Source id the URL belongs to"),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher runs first"),
    max_retries: Optional[int] = typer.Option(
        None,
        "--max-retries",
        help="Retry budget (defaults to configuration)",
        min=0,
    ),
) -> None:
    """
    Submit a crawl job for one URL.

    Examples:
        regwatch submit https://www.ftc.gov/legal-library -s us-ftc -p 5
    """
    try:
        settings = _settings(ctx)
        db, scheduler = _open_scheduler(settings)
        try:
            job_id = scheduler.submit(source, url, priority=priority, max_retries=max_retries)
        finally:
            db.close()
    except Exception as e:
        _fail("Submit failed", e)

    console.print(f"[green]✓[/green] Submitted job [bold]{job_id}[/bold]")


@app.command("submit-bulk")
def submit_bulk(
    ctx: typer.Context,
    urls_file: Path = typer.Argument(
        ...,
        help="File with one URL per line ('#' starts a comment)",
        exists=True,
        dir_okay=False,
    ),
    source: str = typer.Option(..., "--source", "-s", help="Source id the URLs belong to"),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher runs first"),
) -> None:
    """Submit crawl jobs for every URL in a file."""
    urls = [
        line.strip()
        for line in urls_file.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    if not urls:
        console.print("[yellow]No URLs found in file[/yellow]")
        raise typer.Exit(0)

    try:
        settings = _settings(ctx)
        db, scheduler = _open_scheduler(settings)
        try:
            job_ids = scheduler.submit_many(source, urls, priority=priority)
        finally:
            db.close()
    except Exception as e:
        _fail("Bulk submit failed", e)

    console.print(f"[green]✓[/green] Submitted [bold]{len(job_ids)}[/bold] jobs")


@app.command()
def sources(
    ctx: typer.Context,
    jurisdiction: Optional[str] = typer.Option(
        None, "--jurisdiction", "-j", help="Only sources from this jurisdiction"
    ),
    category: Optional[str] = typer.Option(
        None, "--category", help="Only sources in this category"
    ),
    enqueue: bool = typer.Option(
        False, "--enqueue", help="Submit a job for each listed source"
    ),
    priority: int = typer.Option(0, "--priority", "-p", help="Priority for enqueued jobs"),
) -> None:
    """List the built-in regulatory source catalog."""
    from regwatch.sources import REGULATORY_SOURCES

    selected = [
        s
        for s in REGULATORY_SOURCES
        if (jurisdiction is None or s.jurisdiction == jurisdiction)
        and (category is None or s.category == category)
    ]

    table = Table(title="Regulatory Sources", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Jurisdiction")
    table.add_column("Category", style="dim")
    table.add_column("Rate limit", justify="right")

    for s in selected:
        limit = f"{s.rate_limit.requests_per_minute}/min" if s.rate_limit else "default"
        table.add_row(s.id, s.name, s.jurisdiction, s.category, limit)

    console.print(table)

    if not enqueue or not selected:
        return

    try:
        settings = _settings(ctx)
        db, scheduler = _open_scheduler(settings)
        try:
            for s in selected:
                scheduler.submit_source(s, priority=priority)
        finally:
            db.close()
    except Exception as e:
        _fail("Enqueue failed", e)

    console.print(f"[green]✓[/green] Enqueued {len(selected)} sources")


# =============================================================================
# Queue processing
# =============================================================================


@app.command()
def drain(
    ctx: typer.Context,
    max_jobs: Optional[int] = typer.Option(
        None,
        "--max-jobs",
        "-n",
        help="Maximum jobs to process (defaults to configuration)",
        min=1,
    ),
    process: bool = typer.Option(
        True,
        "--process/--no-process",
        help="Run structured extraction with the local LLM",
    ),
    embed: bool = typer.Option(
        True,
        "--embed/--no-embed",
        help="Chunk and embed fetched content",
    ),
) -> None:
    """
    Process due jobs through the ingestion pipeline.

    Examples:
        regwatch drain -n 20
        regwatch drain --no-process
    """
    try:
        settings = _settings(ctx)
        processed, counts = asyncio.run(_drain_async(settings, max_jobs, process, embed))
    except KeyboardInterrupt:
        console.print("\n[yellow]Drain interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        _fail("Drain failed", e)

    console.print(Panel(
        f"[green]✓ Drain complete[/green]\n\n"
        f"Jobs processed: [bold]{processed}[/bold]\n"
        + "\n".join(f"{status}: {n}" for status, n in counts.items()),
        title="Summary",
        border_style="green",
    ))
    console.print(Metrics.get().summary(), style="dim")


async def _drain_async(
    settings: Settings,
    max_jobs: Optional[int],
    process: bool,
    embed: bool,
) -> tuple[int, dict[str, int]]:
    """Async drain implementation."""
    from regwatch.crawler import CrawlExecutor, RateLimitConfig
    from regwatch.pipeline import IngestionPipeline
    from regwatch.sources import rate_limit_overrides

    extractor = None
    if process and settings.pipeline.auto_process and settings.local_llm.enabled:
        from regwatch.llm.local_llm import LocalLLM
        from regwatch.processing import LLMStructuredExtractor

        extractor = LLMStructuredExtractor(LocalLLM.from_settings(settings))

    embedder = None
    if embed and settings.pipeline.auto_embed:
        from regwatch.embeddings.embedder import Embedder

        embedder = Embedder.from_settings(settings)

    limits = settings.rate_limit
    overrides = rate_limit_overrides(
        RateLimitConfig(
            requests_per_minute=limits.requests_per_minute,
            min_delay_seconds=limits.min_delay_seconds,
            max_delay_seconds=limits.max_delay_seconds,
        ),
        settings.sources,
    )

    async with CrawlExecutor.from_settings(settings, rate_limit_overrides=overrides) as executor:
        db, scheduler = _open_scheduler(settings)
        try:
            scheduler.pipeline = IngestionPipeline.from_database(
                db, executor, extractor, embedder, settings.pipeline
            )
            with console.status("[cyan]Draining job queue..."):
                processed = await scheduler.drain_queue(max_jobs)
            return processed, scheduler.stats()
        finally:
            db.close()


@app.command("requeue-stale")
def requeue_stale(
    ctx: typer.Context,
    older_than_minutes: Optional[float] = typer.Option(
        None,
        "--older-than",
        help="Minutes a job may stay running (defaults to configuration)",
        min=1,
    ),
) -> None:
    """Return abandoned running jobs to the queue."""
    try:
        settings = _settings(ctx)
        db, scheduler = _open_scheduler(settings)
        try:
            older_than = (
                timedelta(minutes=older_than_minutes)
                if older_than_minutes is not None
                else None
            )
            count = scheduler.requeue_stale(older_than)
        finally:
            db.close()
    except Exception as e:
        _fail("Requeue failed", e)

    console.print(f"[green]✓[/green] Requeued {count} jobs")


# =============================================================================
# Inspection
# =============================================================================


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show job counts per status."""
    try:
        settings = _settings(ctx)
        db, scheduler = _open_scheduler(settings)
        try:
            counts = scheduler.stats()
        finally:
            db.close()
    except Exception as e:
        _fail("Stats failed", e)

    table = Table(title="Jobs", show_header=False, box=None)
    table.add_column("Status", style="dim")
    table.add_column("Count", style="bold", justify="right")
    for status, n in counts.items():
        table.add_row(status, str(n))
    table.add_row("total", str(sum(counts.values())))

    console.print(table)
    console.print(f"[dim]Database: {settings.storage.database_path}[/dim]")


@app.command()
def job(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Job id"),
) -> None:
    """Show the current state of one job."""
    from regwatch.core.exceptions import JobNotFoundError

    try:
        settings = _settings(ctx)
        db, scheduler = _open_scheduler(settings)
        try:
            record = scheduler.get_job(job_id)
        finally:
            db.close()
    except JobNotFoundError:
        console.print(f"[yellow]No job with id {job_id}[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        _fail("Job lookup failed", e)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    for key, value in record.to_dict().items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search query"),
    hybrid: bool = typer.Option(
        True,
        "--hybrid/--semantic",
        help="Merge title matches into semantic results",
    ),
    jurisdiction: Optional[list[str]] = typer.Option(
        None, "--jurisdiction", "-j", help="Filter by jurisdiction (repeatable)"
    ),
    category: Optional[list[str]] = typer.Option(
        None, "--category", help="Filter by category (repeatable)"
    ),
    priority: Optional[list[str]] = typer.Option(
        None, "--priority", "-p", help="Filter by priority (repeatable)"
    ),
    date_from: Optional[str] = typer.Option(
        None, "--from", help="Earliest effective date (YYYY-MM-DD)"
    ),
    date_to: Optional[str] = typer.Option(
        None, "--to", help="Latest effective date (YYYY-MM-DD)"
    ),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum results", min=1, max=100),
) -> None:
    """
    Search ingested regulations.

    Examples:
        regwatch search "breach notification" -j EU -p critical
        regwatch search "emissions reporting" --semantic --from 2024-01-01
    """
    from regwatch.retrieval import SearchFilter

    filters = SearchFilter(
        jurisdiction=jurisdiction or [],
        category=category or [],
        priority=priority or [],
        date_from=date_from,
        date_to=date_to,
    )

    try:
        settings = _settings(ctx)
        results = asyncio.run(_search_async(settings, query, filters, limit, hybrid))
    except Exception as e:
        _fail("Search failed", e)

    console.print(f"\n[bold]Searching:[/bold] {query}\n")
    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    table = Table(title=f"Results ({len(results)})", show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Score", justify="right", width=6)
    table.add_column("Title", style="cyan")
    table.add_column("Jurisdiction")
    table.add_column("Priority")
    table.add_column("URL", style="dim")

    for i, r in enumerate(results, 1):
        table.add_row(
            str(i),
            f"{r.similarity:.2f}",
            r.title,
            r.jurisdiction or "",
            r.priority or "",
            r.url,
        )
    console.print(table)


async def _search_async(settings: Settings, query: str, filters, limit: int, hybrid: bool):
    """Async search implementation."""
    from regwatch.embeddings.embedder import Embedder
    from regwatch.retrieval import RetrievalEngine
    from regwatch.storage import Database

    db = Database.from_settings(settings)
    try:
        engine = RetrievalEngine.from_database(
            db, Embedder.from_settings(settings), settings.retrieval
        )
        if hybrid:
            return await engine.hybrid_search(query, filters, limit)
        return await engine.semantic_search(query, filters, limit)
    finally:
        db.close()


if __name__ == "__main__":
    app()
