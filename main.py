#!/usr/bin/env python3
"""
FeedReader - Feed Ingestion and Refresh Pipeline
================================================

Main application entry point with CLI interface for managing subscriptions
and running refreshes.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py validate URL              # Find and describe the feed behind a URL
    python main.py subscribe URL             # Subscribe to a feed
    python main.py refresh                   # Run one refresh cycle
    python main.py run                       # Refresh on a schedule until interrupted
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedreader.config.settings import FeedReaderSettings, get_settings
from feedreader.database.schema import DatabaseSchema
from feedreader.scheduler.refresh_scheduler import RefreshResult, RefreshScheduler
from feedreader.services.subscription_service import SubscriptionService
from feedreader.storage.store import SQLiteFeedStore
from feedreader.utils.exceptions import FeedReaderError
from feedreader.utils.logging import configure_application_logging
from feedreader.worker.client import FeedWorkerClient

console = Console()


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """FeedReader - RSS, Atom and JSON Feed reader backend."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _load(ctx) -> FeedReaderSettings:
    """Settings plus logging setup shared by all commands."""
    try:
        settings = get_settings()
    except FeedReaderError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _open_store(settings: FeedReaderSettings) -> SQLiteFeedStore:
    return SQLiteFeedStore.open(settings.database.path, pool_size=settings.database.pool_size)


def _truncate(text: Optional[str], width: int) -> str:
    text = text or ""
    return text[:width - 3] + "..." if len(text) > width else text


def _print_refresh_results(results: List[RefreshResult]) -> None:
    if not results:
        console.print("[yellow]⚠️ Refresh skipped (no feeds, throttled, or already running)[/yellow]")
        return

    table = Table(title="Refresh Results")
    table.add_column("Status")
    table.add_column("Feed", style="cyan")
    table.add_column("New", style="green", justify="right")
    table.add_column("Error", style="red")

    for result in results:
        table.add_row(
            "✅" if result.success else "❌",
            _truncate(result.feed_title, 40),
            str(result.new_articles),
            _truncate(result.error, 60),
        )

    console.print(table)


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FeedReader Configuration[/bold blue]")

    settings = _load(ctx)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Details")

    table.add_row("Database", f"Path: {settings.database.path}, pool: {settings.database.pool_size}")
    table.add_row(
        "Fetch",
        f"Timeout: {settings.fetch.request_timeout}s, max articles: "
        f"{settings.fetch.max_articles_per_feed}, proxy: {settings.fetch.cors_proxy_url or 'none'}",
    )
    table.add_row(
        "Refresh",
        f"Initial delay: {settings.refresh.initial_delay_seconds}s, interval: "
        f"{settings.refresh.interval_seconds}s, minimum: {settings.refresh.min_interval_seconds}s",
    )
    table.add_row("Logging", f"Level: {settings.get_effective_log_level()}, file: {settings.logging.file_path}")
    table.add_row("User-Agent", settings.user_agent)

    console.print(table)
    console.print("[bold green]✅ Configuration is valid[/bold green]")


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing FeedReader Database[/bold blue]")
    settings = _load(ctx)

    try:
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        store = _open_store(settings)
        try:
            info = store.db.get_database_info()
        finally:
            store.close()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")
        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(f"{table_name} rows", str(count))

        console.print("[bold green]✅ Database initialized successfully![/bold green]")
        console.print(info_table)

    except FeedReaderError as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('url')
@click.pass_context
def validate(ctx, url):
    """Find the feed for URL and show its details."""
    console.print(f"[bold blue]🔍 Validating {url}[/bold blue]")
    settings = _load(ctx)

    async def run_validate():
        client = FeedWorkerClient(settings)
        try:
            return await client.validate_feed(url)
        finally:
            client.terminate()

    result = asyncio.run(run_validate())

    if not result.get('success'):
        console.print(f"[bold red]❌ {result.get('error')} ({result.get('errorType')})[/bold red]")
        sys.exit(1)

    feed = result['feed']
    info_table = Table(title="Feed Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Title", feed.get('title') or "Unknown")
    info_table.add_row("Feed URL", result['feedUrl'])
    info_table.add_row("Site URL", feed.get('siteUrl') or "")
    info_table.add_row("Description", _truncate(feed.get('description'), 100) or "None")
    info_table.add_row("Articles Found", str(result.get('articleCount', 0)))
    console.print(info_table)


@cli.command()
@click.argument('url')
@click.option('--folder', help='Folder name to place the feed in')
@click.pass_context
def subscribe(ctx, url, folder):
    """Subscribe to the feed at or behind URL."""
    settings = _load(ctx)

    async def run_subscribe():
        store = _open_store(settings)
        client = FeedWorkerClient(settings)
        try:
            folder_id = store.ensure_folder(folder).id if folder else None
            service = SubscriptionService(client, store)
            return await service.subscribe(url, folder_id=folder_id)
        finally:
            client.terminate()
            store.close()

    result = asyncio.run(run_subscribe())

    if not result.success:
        console.print(f"[bold red]❌ {result.error}[/bold red]")
        sys.exit(1)

    console.print(
        f"[bold green]✅ Subscribed to {result.feed.title}[/bold green] "
        f"({result.feed.id}, {result.new_articles} articles)"
    )


@cli.command()
@click.argument('feed_id')
@click.pass_context
def unsubscribe(ctx, feed_id):
    """Remove a feed and its articles."""
    settings = _load(ctx)
    store = _open_store(settings)
    try:
        removed = SubscriptionService(FeedWorkerClient(settings), store).unsubscribe(feed_id)
    finally:
        store.close()

    if not removed:
        console.print(f"[yellow]⚠️ No feed with id {feed_id}[/yellow]")
        sys.exit(1)
    console.print(f"[bold green]✅ Unsubscribed from {feed_id}[/bold green]")


@cli.command()
@click.pass_context
def feeds(ctx):
    """Show all subscribed feeds."""
    settings = _load(ctx)
    store = _open_store(settings)
    try:
        all_feeds = store.get_all_feeds()
        counts = {feed.id: store.count_articles(feed.id) for feed in all_feeds}
    finally:
        store.close()

    if not all_feeds:
        console.print("[yellow]⚠️ No feeds found in database[/yellow]")
        return

    feeds_table = Table(title="Feeds")
    feeds_table.add_column("ID", style="magenta")
    feeds_table.add_column("Title", style="cyan")
    feeds_table.add_column("URL", style="blue")
    feeds_table.add_column("Folder", style="yellow")
    feeds_table.add_column("Articles", justify="right")
    feeds_table.add_column("Last Fetched")

    for feed in all_feeds:
        feeds_table.add_row(
            feed.id,
            _truncate(feed.title, 30),
            _truncate(feed.feed_url, 40),
            feed.folder_id or "",
            str(counts[feed.id]),
            feed.last_fetched_at.strftime("%Y-%m-%d %H:%M") if feed.last_fetched_at else "Never",
        )

    console.print(feeds_table)


@cli.command()
@click.option('--feed', 'feed_id', help='Only show articles of this feed')
@click.option('--limit', default=20, show_default=True, help='Number of articles to show')
@click.pass_context
def articles(ctx, feed_id, limit):
    """Show the newest articles."""
    settings = _load(ctx)
    store = _open_store(settings)
    try:
        items = store.list_articles(feed_id=feed_id, limit=limit)
    finally:
        store.close()

    if not items:
        console.print("[yellow]⚠️ No articles found[/yellow]")
        return

    for i, article in enumerate(items, 1):
        marker = "⭐ " if article.is_starred else ""
        console.print(f"\n{i}. {marker}[bold]{article.title}[/bold]")
        console.print(f"   📅 Published: {article.published_at:%Y-%m-%d %H:%M}")
        console.print(f"   🔗 Link: {article.url}")
        if article.preview:
            console.print(f"   📝 {article.preview}")


@cli.command()
@click.pass_context
def refresh(ctx):
    """Run one refresh cycle over all feeds."""
    console.print("[bold blue]🔄 Refreshing feeds[/bold blue]")
    settings = _load(ctx)

    async def run_refresh():
        store = _open_store(settings)
        client = FeedWorkerClient(settings)
        try:
            return await RefreshScheduler(client, store, settings).refresh_all()
        finally:
            client.terminate()
            store.close()

    _print_refresh_results(asyncio.run(run_refresh()))


@cli.command()
@click.pass_context
def run(ctx):
    """Refresh feeds on a schedule until interrupted."""
    settings = _load(ctx)

    async def run_scheduler():
        store = _open_store(settings)
        client = FeedWorkerClient(settings)
        scheduler = RefreshScheduler(client, store, settings)
        scheduler.start(on_complete=_print_refresh_results)
        console.print(
            f"[bold blue]⏰ Scheduler running, every {settings.refresh.interval_seconds}s "
            f"(Ctrl+C to stop)[/bold blue]"
        )
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()
            client.terminate()
            store.close()

    try:
        asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Scheduler stopped[/yellow]")


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedReader interrupted by user[/yellow]")
        sys.exit(130)
