#!/usr/bin/env python3
"""
Zen Bridge - RSS to Yandex Zen Republisher
==========================================

Main application entry point with CLI interface for management and operation.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database and default config
    python main.py sync                      # Run one ingestion cycle
    python main.py watch                     # Run cycles every check interval
    python main.py generate-feed -o feed.xml # Write the Zen feed
    python main.py reprocess ARTICLE_ID      # Re-run processing for one article
    python main.py show-article ARTICLE_ID   # Inspect one article
"""

import sys
import json
import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from zenbridge.config.settings import get_settings, ZenBridgeSettings
from zenbridge.database.schema import DatabaseSchema
from zenbridge.database.models import RssConfig, ArticleStatus
from zenbridge.storage.store import Store
from zenbridge.processing.pipeline import IngestionPipeline, CycleResult
from zenbridge.delivery.feed_generator import FeedGenerator, FEED_PATH
from zenbridge.utils.logging import (
    configure_application_logging,
    get_logger_for_component,
    get_recent_logs,
    clear_recent_logs,
)
from zenbridge.utils.process_lock import sync_lock_for
from zenbridge.utils.exceptions import (
    ZenBridgeError,
    ArticleNotFoundError,
    ConfigMissingError,
    get_user_friendly_message,
)

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--db-path', help='SQLite database path (overrides ZENBRIDGE_DATABASE__PATH)')
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, db_path, debug):
    """Zen Bridge - RSS to Yandex Zen republishing service."""
    ctx.ensure_object(dict)
    ctx.obj['db_path'] = db_path
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _load_settings(ctx) -> ZenBridgeSettings:
    settings = get_settings()
    if ctx.obj.get('db_path'):
        settings = settings.model_copy(deep=True)
        settings.database.path = ctx.obj['db_path']
    return settings


def _configure_logging(ctx, settings: ZenBridgeSettings) -> None:
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path or None,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
    )


@contextmanager
def _open_store(ctx):
    """Settings, logging and a store whose connections are closed on exit."""
    settings = _load_settings(ctx)
    _configure_logging(ctx, settings)
    store = Store.open(settings)
    try:
        yield settings, store
    finally:
        store.close()


def _fail(message: str) -> None:
    console.print(f"[bold red]❌ {message}[/bold red]")
    sys.exit(1)


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate environment configuration."""
    console.print("[bold blue]🔧 Checking Zen Bridge Configuration[/bold blue]")

    try:
        settings = _load_settings(ctx)
    except ZenBridgeError as e:
        _fail(f"Configuration error: {e}")

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Database", _check_database_config),
        ("Logging", _check_logging_config),
        ("Processing", _check_processing_config),
        ("Source Feed", _check_feed_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        all_passed = all_passed and status

    console.print(table)

    if not all_passed:
        _fail("Configuration validation failed")
    console.print("[bold green]✅ All configuration checks passed![/bold green]")


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database schema and seed the default RSS configuration."""
    console.print("[bold blue]🗄️ Initializing Zen Bridge Database[/bold blue]")

    try:
        with _open_store(ctx) as (settings, store):
            if not DatabaseSchema(settings.database.path).verify_schema():
                _fail("Database schema verification failed")

            config = store.get_rss_config()
            if config is None:
                seed = settings.feed
                config = store.create_rss_config(RssConfig(
                    source_url=seed.source_url,
                    title=seed.title,
                    description=seed.description,
                    site_link=seed.site_link,
                    language=seed.language,
                    check_interval=seed.check_interval,
                ))
                console.print("✅ Default RSS configuration created")

            info = store.db.get_database_info()

            info_table = Table(title="Database Information")
            info_table.add_column("Property", style="cyan")
            info_table.add_column("Value", style="green")
            info_table.add_row("Database Path", settings.database.path)
            info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
            info_table.add_row("Articles", str(info['table_counts']['articles']))
            info_table.add_row("Source Feed", config.source_url)
            console.print(info_table)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

    except ZenBridgeError as e:
        _fail(f"Database initialization error: {e}")


@cli.command()
@click.pass_context
def sync(ctx):
    """Fetch the source feed once and process new items."""
    console.print("[bold blue]🔄 Running ingestion cycle[/bold blue]")

    try:
        with _open_store(ctx) as (settings, store):
            config = store.get_rss_config()
            if config is None:
                raise ConfigMissingError()

            pipeline = IngestionPipeline(store, settings=settings)
            with sync_lock_for(config.id):
                clear_recent_logs()
                result = asyncio.run(pipeline.sync())

        _print_cycle_result(result)
        _print_cycle_log()

    except ZenBridgeError as e:
        _fail(get_user_friendly_message(e) + f" ({e})")


@cli.command()
@click.option('--interval', type=int, help='Minutes between cycles (default: stored check interval)')
@click.option('--max-cycles', type=int, help='Stop after this many cycles')
@click.pass_context
def watch(ctx, interval, max_cycles):
    """Run ingestion cycles until interrupted."""
    try:
        with _open_store(ctx) as (settings, store):
            config = store.get_rss_config()
            if config is None:
                raise ConfigMissingError()

            minutes = interval or settings.processing.watch_interval_minutes or config.check_interval
            pipeline = IngestionPipeline(store, settings=settings)
            watch_logger = get_logger_for_component("watch", feed_url=config.source_url)

            console.print(
                f"[bold blue]👀 Watching {config.source_url} every {minutes} min[/bold blue]"
            )

            async def run_watch():
                cycles = 0
                while max_cycles is None or cycles < max_cycles:
                    cycles += 1
                    try:
                        result = await pipeline.sync()
                        _print_cycle_result(result)
                    except ZenBridgeError as e:
                        # Retry happens at the next trigger
                        watch_logger.error(f"Cycle {cycles} failed: {e}")
                        console.print(f"[red]❌ Cycle {cycles} failed: {get_user_friendly_message(e)}[/red]")
                    if max_cycles is None or cycles < max_cycles:
                        await asyncio.sleep(minutes * 60)

            with sync_lock_for(config.id):
                asyncio.run(run_watch())

    except ZenBridgeError as e:
        _fail(get_user_friendly_message(e) + f" ({e})")


@cli.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False), help=f'Write the feed here instead of stdout (served as {FEED_PATH})')
@click.pass_context
def generate_feed(ctx, output):
    """Render the Zen RSS feed."""
    with _open_store(ctx) as (settings, store):
        response = FeedGenerator(store).render_response()

    if response.status_code != 200:
        _fail(response.body)

    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(response.body, encoding="utf-8")
        console.print(f"[bold green]✅ Feed written to {output}[/bold green]")
    else:
        click.echo(response.body, nl=False)


@cli.command()
@click.pass_context
def stats(ctx):
    """Show processing statistics."""
    with _open_store(ctx) as (settings, store):
        processing_stats = FeedGenerator(store).get_stats()

    table = Table(title="Processing Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total articles", str(processing_stats.total_articles))
    table.add_row("Processed", str(processing_stats.processed_articles))
    table.add_row("Zen compliant", str(processing_stats.zen_compliant_articles))
    table.add_row("Errors", str(processing_stats.error_count))
    table.add_row("Compliance rate", f"{processing_stats.compliance_rate:.1f}%")
    table.add_row("Last updated", _format_dt(processing_stats.last_updated))
    console.print(table)


@cli.command()
@click.pass_context
def status(ctx):
    """Show whether a cycle is running and the latest articles."""
    with _open_store(ctx) as (settings, store):
        config = store.get_rss_config()
        holder_pid = sync_lock_for(config.id).get_holder_pid() if config else None
        processing_status = FeedGenerator(store).get_processing_status(
            is_processing=holder_pid is not None,
            current_step=f"sync running (PID {holder_pid})" if holder_pid else "idle",
        )
        by_status = store.articles.count_by_status()

    console.print(
        f"[bold blue]Processing:[/bold blue] {'yes' if processing_status['is_processing'] else 'no'}"
        f" - {processing_status['current_step']}"
    )
    if by_status:
        console.print(
            "[bold blue]Articles:[/bold blue] "
            + ", ".join(f"{name} {count}" for name, count in sorted(by_status.items()))
        )

    table = Table(title="Recent Articles")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Processed At")
    for article in processing_status['recent_articles']:
        table.add_row(
            article['id'], _truncate(article['title'], 50), article['status'],
            _format_dt(article['processed_at'])
        )
    console.print(table)


@cli.command()
@click.option('--limit', default=20, show_default=True, help='Number of articles to show')
@click.option('--status', 'status_filter', type=click.Choice([s.value for s in ArticleStatus]), help='Only show this status')
@click.pass_context
def list_articles(ctx, limit, status_filter):
    """List stored articles, newest first."""
    with _open_store(ctx) as (settings, store):
        articles = store.get_articles()
        total = store.articles.get_article_count()

    if status_filter:
        articles = [a for a in articles if a.status.value == status_filter]
    articles = articles[:limit]

    if not articles:
        console.print("[yellow]⚠️ No articles found[/yellow]")
        return

    table = Table(title=f"Articles ({len(articles)} of {total})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Zen", style="yellow")
    table.add_column("Categories")
    table.add_column("Error", style="red")
    for article in articles:
        table.add_row(
            article.id,
            _truncate(article.title, 40),
            article.status.value,
            "✅" if article.zen_compliant else "—",
            ", ".join(article.category),
            _truncate(article.error_message or "", 40),
        )
    console.print(table)


@cli.command()
@click.argument('article_id')
@click.pass_context
def reprocess(ctx, article_id):
    """Reset an article to pending and process it again."""
    try:
        with _open_store(ctx) as (settings, store):
            pipeline = IngestionPipeline(store, settings=settings)
            article = asyncio.run(pipeline.reprocess_article(article_id))
    except ArticleNotFoundError as e:
        _fail(f"Article not found: {e.article_id}")
    except ZenBridgeError as e:
        _fail(f"Reprocessing error: {e}")

    if article is None:
        _fail(f"Article {article_id} could not be processed")

    console.print(
        f"[bold green]✅ Article reprocessed:[/bold green] {article.status.value}, "
        f"zen compliant: {article.zen_compliant}"
    )
    if article.error_message:
        console.print(f"   {article.error_message}")


@cli.command()
@click.argument('article_id')
@click.pass_context
def show_article(ctx, article_id):
    """Show one stored article with its sanitized content."""
    with _open_store(ctx) as (settings, store):
        article = store.get_article(article_id)

    if article is None:
        _fail(f"Article not found: {article_id}")

    table = Table(title="Article")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("ID", article.id)
    table.add_row("Title", escape(article.title))
    table.add_row("Link", article.link)
    table.add_row("Author", escape(article.author))
    table.add_row("Published", _format_dt(article.pub_date))
    table.add_row("Status", article.status.value)
    table.add_row("Zen Compliant", "✅" if article.zen_compliant else "❌")
    table.add_row("Error", escape(article.error_message or "-"))
    table.add_row("Categories", escape(", ".join(article.category)) or "-")
    table.add_row("Images", "\n".join(article.images) or "-")
    table.add_row("Description", escape(article.description) or "-")
    table.add_row("Processed At", _format_dt(article.processed_at))
    console.print(table)

    console.print("[bold blue]Content:[/bold blue]")
    console.print(article.content or "(empty)", markup=False, highlight=False)


@cli.command()
@click.pass_context
def show_config(ctx):
    """Show the RSS configuration in use."""
    with _open_store(ctx) as (settings, store):
        config = store.get_rss_config()

    if config is None:
        _fail("RSS configuration not found - run init-db first")

    table = Table(title="RSS Configuration")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("ID", config.id)
    table.add_row("Source URL", config.source_url)
    table.add_row("Title", config.title)
    table.add_row("Description", config.description)
    table.add_row("Site Link", config.site_link)
    table.add_row("Language", config.language)
    table.add_row("Check Interval", f"{config.check_interval} min")
    table.add_row("Active", "✅" if config.is_active else "❌")
    table.add_row("Last Checked", _format_dt(config.last_checked))
    console.print(table)


@cli.command()
@click.option('--source-url', help='Source RSS/Atom feed URL')
@click.option('--title', help='Output feed title')
@click.option('--description', help='Output feed description')
@click.option('--site-link', help='Output feed site link')
@click.option('--language', help='Output feed language')
@click.option('--check-interval', type=click.IntRange(min=1), help='Minutes between cycles')
@click.option('--active/--inactive', default=None, help='Enable or disable syncing')
@click.pass_context
def update_config(ctx, source_url, title, description, site_link, language, check_interval, active):
    """Update fields of the RSS configuration."""
    updates = {
        key: value for key, value in {
            'source_url': source_url,
            'title': title,
            'description': description,
            'site_link': site_link,
            'language': language,
            'check_interval': check_interval,
            'is_active': active,
        }.items() if value is not None
    }
    if not updates:
        _fail("Nothing to update")

    try:
        with _open_store(ctx) as (settings, store):
            config = store.get_rss_config()
            if config is None:
                raise ConfigMissingError()
            store.update_rss_config(config.id, **updates)
    except ZenBridgeError as e:
        _fail(get_user_friendly_message(e))
    except ValueError as e:
        _fail(f"Invalid configuration value: {e}")

    console.print(f"[bold green]✅ Updated: {', '.join(sorted(updates))}[/bold green]")


@cli.command()
@click.option('--lines', '-n', default=50, show_default=True, help='Number of entries to show')
@click.pass_context
def logs(ctx, lines):
    """Show the latest entries of the structured log file."""
    settings = _load_settings(ctx)
    if not settings.logging.file_path or not Path(settings.logging.file_path).exists():
        _fail("No log file available")

    entries = Path(settings.logging.file_path).read_text(encoding="utf-8").splitlines()[-lines:]

    table = Table(title="Recent Logs")
    table.add_column("Time", style="dim")
    table.add_column("Level")
    table.add_column("Component", style="cyan")
    table.add_column("Message")
    for raw in entries:
        try:
            entry = json.loads(raw)
        except json.JSONDecodeError:
            continue
        table.add_row(
            entry.get("timestamp", ""),
            entry.get("level", ""),
            entry.get("component", entry.get("logger", "")),
            entry.get("message", ""),
        )
    console.print(table)


def _print_cycle_result(result: CycleResult) -> None:
    table = Table(title=f"Cycle Result - {result.source_url}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Items in feed", str(result.items_seen))
    table.add_row("Articles created", str(result.articles_created))
    table.add_row("Zen compliant", str(result.compliant))
    table.add_row("Duplicates skipped", str(result.skipped_duplicates))
    table.add_row("Incomplete skipped", str(result.skipped_missing_fields))
    table.add_row("Failed", str(result.failed))
    table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(table)

    for error in result.errors:
        console.print(f"  [red]• {error}[/red]")


def _print_cycle_log() -> None:
    """Warnings and errors captured while the cycle ran."""
    notable = [e for e in get_recent_logs() if e["level"] in ("warning", "error", "critical")]
    if not notable:
        return
    console.print("[bold yellow]⚠️ Cycle warnings[/bold yellow]")
    for entry in notable:
        console.print(
            f"  {entry['level'].upper()} {escape(entry['component'])}: {escape(entry['message'])}"
        )


def _format_dt(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip() if value else "Never"


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


# Helper functions for configuration checks
def _check_database_config(settings) -> tuple[bool, str]:
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}, Pool: {settings.database.pool_size}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    try:
        if settings.logging.file_path:
            Path(settings.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_processing_config(settings) -> tuple[bool, str]:
    return True, (
        f"Compliance delay: {settings.processing.compliance_delay_seconds}s, "
        f"Timeout: {settings.limits.request_timeout}s"
    )


def _check_feed_config(settings) -> tuple[bool, str]:
    return True, f"Seed source: {settings.feed.source_url}"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Zen Bridge interrupted by user[/yellow]")
        sys.exit(130)
