"""
Command-line interface for the news ingestion pipeline.

Usage:
    python -m news_ingest run              # Run one ingestion cycle
    python -m news_ingest schedule         # Run cycles on the configured interval
    python -m news_ingest serve            # Start the health server
    python -m news_ingest preview URL      # Fetch and normalize a feed without saving
    python -m news_ingest stats            # Show catalog statistics
    python -m news_ingest sources          # List configured feeds and topics
    python -m news_ingest config           # Show current configuration
"""

import asyncio
import json

import click
import httpx
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from .config import get_settings
from .errors import IngestionError
from .logging_conf import setup_logging, get_logger
from .db import get_database
from .main import run_ingestion
from .sources import SyndicationSource, get_source_registry

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """News ingestion pipeline CLI."""
    settings = get_settings()
    level = "DEBUG" if debug else settings.log_level
    setup_logging(level=level, json_output=settings.log_json)


@cli.command()
def run():
    """
    Run one ingestion cycle (fetch, normalize, upsert).

    Examples:
      python -m news_ingest run
      python -m news_ingest --debug run
    """
    console.print(Panel("[bold green]Starting Ingestion Run[/bold green]"))

    stats = asyncio.run(run_ingestion())
    if stats is None:
        console.print("[yellow]An ingestion run is already in progress[/yellow]")
        return

    table = Table(title="Run Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    for key in (
        "run_id",
        "status",
        "sources_total",
        "sources_failed",
        "entries_seen",
        "entries_dropped",
        "entries_failed",
        "articles_created",
        "articles_updated",
        "articles_unchanged",
    ):
        table.add_row(key, str(stats.get(key, "")))

    console.print(table)

    if stats.get("skipped_sources"):
        console.print("[yellow]Skipped:[/yellow]")
        for skipped in stats["skipped_sources"]:
            console.print(f"  - {skipped}")

    if stats.get("errors"):
        console.print("[red]Errors:[/red]")
        for error in stats["errors"]:
            console.print(f"  - {error}")

    if stats.get("status") == "SUCCESS":
        console.print("\n[bold green]Run completed successfully![/bold green]")
    elif stats.get("status") == "PARTIAL":
        console.print("\n[bold yellow]Run completed with source errors[/bold yellow]")
    else:
        console.print("\n[bold red]Run failed[/bold red]")


@cli.command()
def schedule():
    """Run ingestion on the configured interval until interrupted."""
    from .scheduler import run_scheduler_sync

    settings = get_settings()
    console.print(Panel(
        f"[bold blue]Scheduler started[/bold blue]\n"
        f"Interval: {settings.ingestion_interval_ms} ms"
    ))
    run_scheduler_sync()


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", "-p", type=int, help="Port to bind to")
@click.option("--with-scheduler", is_flag=True, help="Enable built-in scheduler")
def serve(host: str, port: int, with_scheduler: bool):
    """Start the health check server."""
    from .server import run_server

    console.print(Panel("[bold blue]Starting Server[/bold blue]"))

    port = port or get_settings().port

    console.print(f"Host: {host}")
    console.print(f"Port: {port}")
    console.print(f"Scheduler: {'Enabled' if with_scheduler else 'Disabled'}")
    console.print()

    run_server(host=host, port=port, with_scheduler=with_scheduler)


@cli.command()
@click.argument("url")
@click.option("--json-output", "-j", is_flag=True, help="Output drafts as JSON")
@click.option("--insecure", is_flag=True, help="Skip TLS certificate verification")
def preview(url: str, json_output: bool, insecure: bool):
    """
    Fetch and normalize one feed without writing to the catalog.

    Examples:
      python -m news_ingest preview https://feeds.bbci.co.uk/news/rss.xml
      python -m news_ingest preview https://example.com/feed --json-output
    """
    settings = get_settings()
    source = SyndicationSource(
        url=url,
        verify_tls=not insecure,
        max_attempts=settings.fetch_max_attempts,
        placeholder_image_url=settings.placeholder_image_url,
        placeholder_domains=settings.placeholder_domain_list,
    )

    async def _preview():
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.fetch_timeout, connect=settings.fetch_connect_timeout),
            verify=source.verify_tls,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        ) as client:
            payload = await source.fetch(client)
        return source.normalize(payload)

    try:
        harvest = asyncio.run(_preview())
    except IngestionError as e:
        console.print(f"[bold red]{type(e).__name__}: {e}[/bold red]")
        raise click.Abort()

    if json_output:
        console.print(json.dumps(
            [{"source": item.source.name, **item.draft.to_dict()} for item in harvest.items],
            indent=2,
        ))
        return

    table = Table(title=f"Preview: {url}")
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Published", style="green")
    table.add_column("Category")
    table.add_column("Image", max_width=40)

    for item in harvest.items:
        draft = item.draft
        published = draft.published_date.isoformat()
        if draft.date_is_fallback:
            published += " (fallback)"
        table.add_row(draft.title, published, draft.category, draft.image_url)

    console.print(table)
    console.print(f"\nEntries: {harvest.entries_seen} | Accepted: {len(harvest.items)} | Dropped: {harvest.entries_dropped}")


@cli.command()
def stats():
    """Show catalog statistics."""
    db = get_database()
    session = db.get_session()

    try:
        db_stats = db.get_stats(session)

        table = Table(title="Catalog Statistics")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Total Sources", str(db_stats["total_sources"]))
        table.add_row("Total Articles", str(db_stats["total_articles"]))
        table.add_row("Total Runs", str(db_stats["total_runs"]))
        table.add_row("Successful Runs", str(db_stats["successful_runs"]))

        console.print(table)

        per_source = db.get_articles_per_source(session)
        if per_source:
            by_source = Table(title="Articles per Source")
            by_source.add_column("Source", style="cyan")
            by_source.add_column("Articles", style="green")
            for name, count in per_source:
                by_source.add_row(name, str(count))
            console.print(by_source)

        latest = db.get_latest_run(session)
        if latest:
            console.print(
                f"\nLatest run: {latest.run_id} [{latest.status}] "
                f"created={latest.articles_created} updated={latest.articles_updated}"
            )

    finally:
        session.close()


@cli.command()
def sources():
    """List configured feeds and API topics."""
    registry = get_source_registry()
    plan = registry.plan()

    table = Table(title="Configured Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("TLS verified", style="green")

    for source in plan.sources:
        verified = "[green]Yes[/green]" if source.verify_tls else "[red]No[/red]"
        table.add_row(source.label, source.kind, verified)

    console.print(table)

    if plan.api_disabled_reason:
        console.print(f"[yellow]News API disabled: {plan.api_disabled_reason}[/yellow]")

    stats = registry.get_stats()
    console.print(f"\nFeeds: {stats['feeds']} | Topics: {len(stats['topics'])} | API enabled: {stats['api_enabled']}")


@cli.command()
def config():
    """Show current configuration (excluding secrets)."""
    settings = get_settings()

    console.print(Panel("[bold blue]Current Configuration[/bold blue]"))

    console.print("\n[cyan]Feeds:[/cyan]")
    for url in settings.feed_url_list:
        marker = " (insecure)" if url in settings.insecure_feed_set else ""
        console.print(f"  {url}{marker}")

    console.print("\n[cyan]News API:[/cyan]")
    console.print(f"  base_url:  {settings.news_api_base_url}")
    console.print(f"  topics:    {', '.join(settings.topic_list)}")
    console.print(f"  key set:   {settings.has_api_key}")

    console.print("\n[cyan]Fetching:[/cyan]")
    console.print(f"  timeout:         {settings.fetch_timeout}s (connect {settings.fetch_connect_timeout}s)")
    console.print(f"  max_attempts:    {settings.fetch_max_attempts}")
    console.print(f"  user_agent:      {settings.user_agent}")

    console.print("\n[cyan]Images:[/cyan]")
    console.print(f"  placeholder:     {settings.placeholder_image_url}")
    console.print(f"  filler domains:  {', '.join(settings.placeholder_domain_list)}")

    console.print("\n[cyan]Scheduler:[/cyan]")
    console.print(f"  enable_scheduler:      {settings.enable_scheduler}")
    console.print(f"  ingestion_interval_ms: {settings.ingestion_interval_ms}")

    console.print("\n[cyan]Database:[/cyan]")
    console.print(f"  backend: {'postgres' if settings.is_postgres else 'sqlite'}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
