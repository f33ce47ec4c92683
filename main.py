#!/usr/bin/env python3
"""
Feedo - Feed Notifications for Telegram
=======================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                          # Show all commands
    python main.py check-config                    # Validate configuration
    python main.py init-db                         # Initialize database
    python main.py ingest                          # Run one ingestion cycle
    python main.py notify                          # Run one notification cycle
    python main.py subscribe CHAT_ID URL           # Subscribe a chat to a feed
    python main.py unsubscribe CHAT_ID URL         # Unsubscribe a chat from a feed
    python main.py list-feeds [--chat-id CHAT_ID]  # List feeds
    python main.py run                             # Run both cycles until interrupted
"""

import sys
import asyncio

import click
from rich.console import Console
from rich.table import Table

from feedo.config.settings import get_settings
from feedo.database.schema import DatabaseSchema
from feedo.database.connection import get_db_manager
from feedo.database.models import ChatType
from feedo.scheduler.service import FeedoService
from feedo.utils.logging import configure_logging_from_settings
from feedo.utils.exceptions import FeedoError
from feedo.utils.validators import ChatValidator

console = Console()


def _setup_logging(debug: bool) -> None:
    configure_logging_from_settings(get_settings(), debug=debug)


def _fail(message: str) -> None:
    console.print(f"[bold red]❌ {message}[/bold red]")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """Feedo - RSS and Atom feed notifications for Telegram."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate environment variables and .env configuration."""
    console.print("[bold blue]🔧 Checking Feedo Configuration[/bold blue]")

    try:
        settings = get_settings()
    except FeedoError as e:
        _fail(f"Configuration error: {e}")

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Details")

    ingestion = settings.ingestion
    notification = settings.notification
    table.add_row("Database", f"{settings.database.path} (pool {settings.database.pool_size})")
    table.add_row("Logging", f"{settings.get_effective_log_level()}, file {settings.logging.file_path or 'disabled'}")
    table.add_row("Telegram Bot", f"token ...{settings.telegram.bot_token[-4:]}")
    table.add_row(
        "Ingestion",
        f"every {ingestion.interval_seconds}s, {ingestion.max_concurrent_fetches} parallel, "
        f"timeout {ingestion.fetch_timeout}s",
    )
    table.add_row(
        "Notification",
        f"every {notification.interval_seconds}s, lookback {notification.lookback_hours}h, "
        f"stagger {notification.stagger_seconds}s, timeout {notification.send_timeout}s",
    )

    console.print(table)
    console.print("[bold green]✅ Configuration is valid[/bold green]")


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing Feedo Database[/bold blue]")

    try:
        settings = get_settings()
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            _fail("Database schema verification failed")

        db_manager = get_db_manager(settings.database.path, settings.database.pool_size)
        info = db_manager.get_database_info()
        db_manager.close_all_connections()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")
        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(f"Rows in {table_name}", str(count))

        console.print("[bold green]✅ Database initialized successfully![/bold green]")
        console.print(info_table)

    except FeedoError as e:
        _fail(f"Database initialization error: {e}")


@cli.command()
@click.pass_context
def ingest(ctx):
    """Run one ingestion cycle over every registered feed."""
    _setup_logging(ctx.obj['debug'])

    async def run_ingest():
        async with FeedoService() as service:
            return await service.run_ingestion_once()

    stats = asyncio.run(run_ingest())

    table = Table(title="Ingestion Cycle")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Feeds polled", str(stats.feeds_polled))
    table.add_row("Feeds failed", str(stats.feeds_failed))
    table.add_row("Items created", str(stats.items_created))
    table.add_row("Items updated", str(stats.items_updated))
    table.add_row("Items skipped", str(stats.items_skipped))
    console.print(table)


@cli.command()
@click.pass_context
def notify(ctx):
    """Run one notification cycle, delivering unseen items."""
    _setup_logging(ctx.obj['debug'])

    async def run_notify():
        async with FeedoService() as service:
            return await service.run_notification_once()

    stats = asyncio.run(run_notify())

    table = Table(title="Notification Cycle")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Feeds scanned", str(stats.feeds_scanned))
    table.add_row("Subscribers scanned", str(stats.subscribers_scanned))
    table.add_row("Subscribers notified", str(stats.subscribers_notified))
    table.add_row("Items delivered", str(stats.items_delivered))
    table.add_row("Deliveries failed", str(stats.deliveries_failed))
    console.print(table)


@cli.command()
@click.argument('chat_id')
@click.argument('url')
@click.option('--title', default=None, help='Chat title to record')
@click.option('--type', 'chat_type', type=click.Choice([t.value for t in ChatType]),
              default=ChatType.PRIVATE.value, show_default=True, help='Telegram chat type')
@click.pass_context
def subscribe(ctx, chat_id, url, title, chat_type):
    """Subscribe a Telegram chat to a feed."""
    _setup_logging(ctx.obj['debug'])

    async def run_subscribe():
        async with FeedoService() as service:
            return await service.subscription_service.subscribe(
                ChatValidator.validate_chat_id(chat_id), url,
                chat_title=title, chat_type=ChatType(chat_type),
            )

    try:
        result = asyncio.run(run_subscribe())
    except FeedoError as e:
        _fail(str(e))

    if result.already_subscribed:
        console.print(f"[yellow]Chat {chat_id} is already subscribed to {result.feed.title}[/yellow]")
    else:
        console.print(f"[bold green]✅ Chat {chat_id} subscribed to {result.feed.title} (feed {result.feed.id})[/bold green]")


@cli.command()
@click.argument('chat_id')
@click.argument('url')
@click.pass_context
def unsubscribe(ctx, chat_id, url):
    """Unsubscribe a Telegram chat from a feed."""
    _setup_logging(ctx.obj['debug'])

    async def run_unsubscribe():
        async with FeedoService() as service:
            return service.subscription_service.unsubscribe(ChatValidator.validate_chat_id(chat_id), url)

    try:
        feed = asyncio.run(run_unsubscribe())
    except FeedoError as e:
        _fail(str(e))

    if feed is None:
        console.print(f"[yellow]Chat {chat_id} is not subscribed to {url}[/yellow]")
    else:
        console.print(f"[bold green]✅ Chat {chat_id} unsubscribed from {feed.title}[/bold green]")


@cli.command()
@click.option('--chat-id', default=None, help='Only feeds this chat is subscribed to')
@click.pass_context
def list_feeds(ctx, chat_id):
    """List registered feeds."""
    _setup_logging(ctx.obj['debug'])

    async def run_list():
        async with FeedoService() as service:
            if chat_id is not None:
                feeds = [feed for _, feed in service.subscription_service.list_subscriptions(
                    ChatValidator.validate_chat_id(chat_id)
                )]
            else:
                feeds = service.feed_repository.list_feeds()
            return [(feed, service.item_repository.count_items(feed.id)) for feed in feeds]

    try:
        rows = asyncio.run(run_list())
    except FeedoError as e:
        _fail(str(e))

    if not rows:
        console.print("[yellow]No feeds registered[/yellow]")
        return

    table = Table(title="Feeds")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Link")
    table.add_column("Items", style="green")
    for feed, item_count in rows:
        table.add_row(str(feed.id), feed.title, feed.link, str(item_count))
    console.print(table)


@cli.command()
@click.pass_context
def run(ctx):
    """Run ingestion and notification cycles until interrupted."""
    _setup_logging(ctx.obj['debug'])
    console.print("[bold blue]📡 Feedo scheduler running, press Ctrl+C to stop[/bold blue]")

    async def run_forever():
        service = FeedoService()
        await service.start()
        try:
            await asyncio.Event().wait()
        finally:
            await service.stop(timeout=service.settings.notification.send_timeout)

    asyncio.run(run_forever())


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Feedo interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
