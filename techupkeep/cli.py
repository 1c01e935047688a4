"""
Command-line interface for techupkeep.

Provides commands to run an aggregation, initialize the database,
seed sources and check feed and service health.

Usage:
    techupkeep aggregate        # Run one aggregation
    techupkeep init-db          # Create tables and seed categories
    techupkeep seed-sources     # Load sources from JSON
    techupkeep diagnose-feeds   # Check every feed source once
    techupkeep health           # Check service health
"""

import asyncio
import json
import os
import sys
from pathlib import Path

import click

from techupkeep.config.settings import get_settings
from techupkeep.observability.logging import setup_logging
from techupkeep.observability.metrics import get_metrics

FEED_KINDS = ("blog", "rss", "substack", "podcast")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """TechUpkeep - technical content aggregation."""
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


def _print_stats(stats: dict) -> None:
    click.echo("\nAggregation Results:")
    click.echo("-" * 40)
    click.echo(f"  Batch ID:                {stats['batch_id']}")
    click.echo(f"  Fetched:                 {stats['total_fetched']}")
    click.echo(f"  After time filter:       {stats['after_time_filter']}")
    click.echo(f"  After popularity filter: {stats['after_popularity_filter']}")
    click.echo(f"  After deduplication:     {stats['after_deduplication']}")
    click.echo(f"  After quality filter:    {stats['after_quality_filter']}")
    click.echo(click.style(f"  Saved:                   {stats['saved']}", fg="green"))
    for source_type, count in sorted(stats["by_source"].items()):
        click.echo(f"    {source_type}: {count}")
    click.echo(f"  Skipped (duplicate):     {stats['duplicates_skipped']}")
    click.echo(f"  Skipped (in newsletter): {stats['already_in_newsletter_skipped']}")
    click.echo(f"  Skipped (similar title): {stats['similar_title_skipped']}")
    click.echo(f"  Skipped (low quality):   {stats['low_quality_skipped']}")
    click.echo(f"  YouTube quota used:      {stats['api_quota_used']}")
    if stats["fetch_failures"]:
        click.echo(click.style(f"  Fetch failures:          {stats['fetch_failures']}", fg="yellow"))
    if stats["errors"]:
        click.echo(click.style(f"  Save errors:             {stats['errors']}", fg="red"))
    click.echo("-" * 40)


@main.command()
@click.option("--max-age-hours", default=None, type=float, help="Oldest item age to keep")
@click.option("--min-quality", default=None, type=int, help="Minimum quality score to save")
@click.option("--json", "as_json", is_flag=True, help="Print statistics as JSON")
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def aggregate(
    max_age_hours: float | None,
    min_quality: int | None,
    as_json: bool,
    metrics: bool,
) -> None:
    """Run one content aggregation."""
    from techupkeep.services.aggregation_service import ContentAggregator
    from techupkeep.sources.service import SourcesService
    from techupkeep.storage.database import Database

    async def run() -> dict:
        collector = None
        if metrics:
            collector = get_metrics()
            collector.start_server()

        db = Database()
        await db.connect()
        try:
            sources = SourcesService(db)
            await sources.ensure_seeded()

            aggregator = ContentAggregator(
                db,
                max_age_hours=max_age_hours,
                min_quality=min_quality,
                sources_service=sources,
                metrics=collector,
            )
            stats = await aggregator.aggregate_all()
        finally:
            await db.close()
        return stats.to_dict()

    stats = asyncio.run(run())

    if as_json:
        click.echo(json.dumps(stats, indent=2, default=str))
    else:
        _print_stats(stats)


@main.command("init-db")
def init_db() -> None:
    """Create tables and seed categories."""
    from techupkeep.processing.categorizer import default_keyword_table
    from techupkeep.sources.repository import SourcesRepository
    from techupkeep.storage.database import Database
    from techupkeep.storage.repository import CategoryRepository, create_tables
    from techupkeep.storage.schemas import Category

    async def run() -> int:
        db = Database()
        await db.connect()
        try:
            await SourcesRepository(db).create_table()
            await create_tables(db)

            repo = CategoryRepository(db)
            table = default_keyword_table()
            for rule in table.categories:
                await repo.upsert(
                    Category(slug=rule.slug, name=rule.name, description=rule.description)
                )
            return len(table.categories)
        finally:
            await db.close()

    count = asyncio.run(run())
    click.echo(f"Database initialized successfully ({count} categories)")


@main.command("seed-sources")
@click.option(
    "--path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file of sources (packaged defaults if omitted)",
)
def seed_sources(path: Path | None) -> None:
    """Upsert sources from a JSON file."""
    from techupkeep.sources.service import SourcesService
    from techupkeep.storage.database import Database

    async def run() -> int:
        db = Database()
        await db.connect()
        try:
            service = SourcesService(db)
            await service.repository.create_table()
            return await service.seed_from_json(path)
        finally:
            await db.close()

    count = asyncio.run(run())
    click.echo(f"Seeded {count} sources")


@main.command("diagnose-feeds")
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(FEED_KINDS),
    help="Source kind to check (can repeat; default blog and rss)",
)
def diagnose_feeds(kinds: tuple[str, ...]) -> None:
    """Fetch each active feed source once and report failures."""
    from techupkeep.ingestion.diagnostics import FeedDiagnostics
    from techupkeep.ingestion.http_client import HTTPClient
    from techupkeep.sources.service import SourcesService
    from techupkeep.storage.database import Database

    selected = kinds or ("blog", "rss")

    async def run():
        db = Database()
        await db.connect()
        try:
            grouped = await SourcesService(db).get_active_sources_by_kind()
        finally:
            await db.close()

        feeds = [s for kind in selected for s in grouped.get(kind, [])]
        async with HTTPClient() as client:
            return await FeedDiagnostics(client).diagnose_all(feeds)

    results = asyncio.run(run())

    click.echo(f"\nChecked {len(results)} feeds ({', '.join(selected)})")
    click.echo("-" * 60)
    for result in results:
        if result.ok:
            click.echo(
                click.style(
                    f"  ✓ {result.name}: {result.item_count} items, {result.response_time_ms}ms",
                    fg="green",
                )
            )
        else:
            click.echo(click.style(f"  ✗ {result.name}: {result.error}", fg="red"))
            click.echo(f"      {result.url}")
    click.echo("-" * 60)

    failed = sum(1 for r in results if not r.ok)
    click.echo(f"Success: {len(results) - failed}  Errors: {failed}")
    if failed:
        sys.exit(1)


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            from techupkeep.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["youtube_configured"] = settings.youtube_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
