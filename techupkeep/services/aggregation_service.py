"""
Aggregation service - one end-to-end content aggregation run.

Flow:
    open batch -> load active sources (one query) -> run the six fetchers
    concurrently -> time filter -> popularity filter -> per item, in order:
    dedup -> quality score -> threshold -> categorize -> persist + tags
    -> close batch -> return AggregationStats

Items are processed one at a time after the fan-in so every duplicate
check sees everything saved earlier in the same run.
"""

import asyncio
import time
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from techupkeep.config.settings import get_settings
from techupkeep.ingestion.base_fetcher import BaseFetcher, FetchResult
from techupkeep.ingestion.feed_fetcher import NewsletterFetcher, PodcastFetcher, WebFeedFetcher
from techupkeep.ingestion.github_fetcher import GitHubTrendingFetcher
from techupkeep.ingestion.http_client import HTTPClient
from techupkeep.ingestion.reddit_fetcher import RedditFetcher
from techupkeep.ingestion.schemas import AggregatedItem, SourceKind
from techupkeep.ingestion.youtube_fetcher import YouTubeFetcher
from techupkeep.observability.logging import bind_context, clear_context
from techupkeep.observability.metrics import MetricsCollector
from techupkeep.processing.categorizer import Categorizer
from techupkeep.processing.deduplication import (
    Deduplicator,
    DuplicateReason,
    generate_content_hash,
    normalize_url,
)
from techupkeep.processing.filters import apply_popularity_filter, apply_time_filter
from techupkeep.processing.quality import (
    QualityMetrics,
    calculate_quality_score,
    meets_quality_threshold,
)
from techupkeep.sources.schemas import Source
from techupkeep.sources.service import SourcesService
from techupkeep.storage.database import Database
from techupkeep.storage.repository import (
    BatchRepository,
    CategoryRepository,
    ContentRepository,
    TagRepository,
)
from techupkeep.storage.schemas import ContentRecord

logger = structlog.get_logger(__name__)

# Fetcher key -> Source kinds it consumes. Order is the concatenation order.
FETCHER_SOURCE_KINDS: dict[str, tuple[str, ...]] = {
    "rss": tuple(kind.value for kind in SourceKind.web_feed_kinds()),
    "substack": (SourceKind.SUBSTACK.value,),
    "podcast": (SourceKind.PODCAST.value,),
    "reddit": (SourceKind.REDDIT.value,),
    "youtube": (SourceKind.YOUTUBE.value,),
    "github": (),
}


def batch_name(started_at: datetime) -> str:
    """Human-readable batch label, e.g. "Scrape Jan 15, 2025 10:30 AM"."""
    hour = started_at.hour % 12 or 12
    return f"Scrape {started_at:%b} {started_at.day}, {started_at.year} {hour}:{started_at:%M %p}"


@dataclass
class AggregationStats:
    """Counters for one aggregation run."""

    total_fetched: int = 0
    after_time_filter: int = 0
    after_popularity_filter: int = 0
    after_deduplication: int = 0
    after_quality_filter: int = 0
    saved: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    api_quota_used: int = 0
    duplicates_skipped: int = 0
    already_in_newsletter_skipped: int = 0
    similar_title_skipped: int = 0
    low_quality_skipped: int = 0
    removed_by_time_filter: int = 0
    removed_by_popularity_filter: int = 0
    errors: int = 0
    fetch_failures: dict[str, int] = field(default_factory=dict)
    batch_id: int | None = None
    elapsed_seconds: float = 0.0

    def record_duplicate(self, reason: DuplicateReason | None) -> None:
        if reason == DuplicateReason.ALREADY_IN_NEWSLETTER:
            self.already_in_newsletter_skipped += 1
        elif reason == DuplicateReason.SIMILAR_TITLE:
            self.similar_title_skipped += 1
        else:
            self.duplicates_skipped += 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ContentAggregator:
    """
    Coordinates one aggregation run against the shared store.

    Usage:
        async with Database() as db:
            stats = await ContentAggregator(db).aggregate_all()
    """

    def __init__(
        self,
        database: Database,
        max_age_hours: float | None = None,
        min_quality: int | None = None,
        client: HTTPClient | None = None,
        fetchers: dict[str, BaseFetcher] | None = None,
        sources_service: SourcesService | None = None,
        metrics: MetricsCollector | None = None,
        batch_repo: BatchRepository | None = None,
        content_repo: ContentRepository | None = None,
        tag_repo: TagRepository | None = None,
        category_repo: CategoryRepository | None = None,
    ):
        """
        Initialize aggregator.

        Args:
            database: Connected Database instance
            max_age_hours: Oldest publication age kept (default from settings)
            min_quality: Minimum quality score persisted (default from settings)
            client: Open HTTP client; one is created per run if omitted
            fetchers: Fetchers keyed as in FETCHER_SOURCE_KINDS (built from
                the client if omitted)
            sources_service: Source loader (built from the database if omitted)
            metrics: Optional Prometheus collector
            batch_repo, content_repo, tag_repo, category_repo: Repository
                overrides (built from the database if omitted)
        """
        settings = get_settings()

        self._max_age_hours = max_age_hours if max_age_hours is not None else settings.max_age_hours
        self._min_quality = min_quality if min_quality is not None else settings.min_quality_score
        self._client = client
        self._fetchers = fetchers
        self._metrics = metrics
        self._database = database

        self._sources = sources_service or SourcesService(database)
        self._batches = batch_repo or BatchRepository(database)
        self._content = content_repo or ContentRepository(database)
        self._tags = tag_repo or TagRepository(database)
        self._deduplicator = Deduplicator(self._content)
        self._categorizer = Categorizer(category_repo or CategoryRepository(database))

    def _build_fetchers(self, client: HTTPClient) -> dict[str, BaseFetcher]:
        return {
            "rss": WebFeedFetcher(client),
            "substack": NewsletterFetcher(client),
            "podcast": PodcastFetcher(client),
            "reddit": RedditFetcher(client),
            "youtube": YouTubeFetcher(client),
            "github": GitHubTrendingFetcher(client),
        }

    async def aggregate_all(self, now: datetime | None = None) -> AggregationStats:
        """
        Run a complete aggregation.

        Args:
            now: Reference time for the batch name and filters (default: now)

        Returns:
            Statistics of this run

        Raises:
            asyncpg.PostgresError: If the batch or sources cannot be loaded
        """
        started = time.monotonic()
        now = now or datetime.now(timezone.utc)
        stats = AggregationStats()

        batch = await self._batches.create(batch_name(now.astimezone()))
        stats.batch_id = batch.id
        bind_context(batch_id=batch.id)
        logger.info("Aggregation started", batch_name=batch.name)

        try:
            await self._run(batch.id, stats, now)

            stats.elapsed_seconds = time.monotonic() - started
            self._record_run_metrics(stats)

            logger.info(
                "Aggregation complete",
                saved=stats.saved,
                by_source=stats.by_source,
                duplicates_skipped=stats.duplicates_skipped,
                already_in_newsletter_skipped=stats.already_in_newsletter_skipped,
                similar_title_skipped=stats.similar_title_skipped,
                low_quality_skipped=stats.low_quality_skipped,
                errors=stats.errors,
                elapsed=round(stats.elapsed_seconds, 2),
            )
        finally:
            clear_context()
        return stats

    async def _run(self, batch_id: int, stats: AggregationStats, now: datetime) -> None:
        """Fetch, filter and process every item of one batch."""
        grouped = await self._sources.get_active_sources_by_kind()

        if self._client is not None:
            items = await self._fetch_all(self._client, grouped, stats)
        else:
            async with HTTPClient() as client:
                items = await self._fetch_all(client, grouped, stats)

        stats.total_fetched = len(items)
        logger.info(
            "Fetch complete",
            total_fetched=stats.total_fetched,
            by_type=dict(Counter(i.source_type.value for i in items)),
            api_quota_used=stats.api_quota_used,
        )

        items, stats.removed_by_time_filter = apply_time_filter(items, self._max_age_hours, now)
        stats.after_time_filter = len(items)

        items, stats.removed_by_popularity_filter = apply_popularity_filter(items)
        stats.after_popularity_filter = len(items)

        logger.info(
            "Filters applied",
            after_time_filter=stats.after_time_filter,
            removed_by_time_filter=stats.removed_by_time_filter,
            after_popularity_filter=stats.after_popularity_filter,
            removed_by_popularity_filter=stats.removed_by_popularity_filter,
        )

        for item in items:
            try:
                saved = await self._process_item(item, batch_id, stats, now)
            except Exception as e:
                stats.errors += 1
                logger.error("Failed to save item", title=item.title[:80], error=str(e), exc_info=True)
                if self._metrics:
                    self._metrics.record_skip("error")
                continue

            if saved:
                stats.saved += 1
                key = item.source_type.value
                stats.by_source[key] = stats.by_source.get(key, 0) + 1
                if self._metrics:
                    self._metrics.record_saved(key)

        await self._batches.set_total_items(batch_id, stats.saved)

    async def _fetch_all(
        self,
        client: HTTPClient,
        grouped: dict[str, list[Source]],
        stats: AggregationStats,
    ) -> list[AggregatedItem]:
        """Run every fetcher concurrently and concatenate their items."""
        fetchers = self._fetchers or self._build_fetchers(client)
        keys = [k for k in FETCHER_SOURCE_KINDS if k in fetchers]

        results = await asyncio.gather(
            *(
                fetchers[key].fetch(
                    [s for kind in FETCHER_SOURCE_KINDS[key] for s in grouped.get(kind, [])]
                )
                for key in keys
            ),
            return_exceptions=True,
        )

        items: list[AggregatedItem] = []
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                logger.error("Fetcher crashed", fetcher=key, error=str(result))
                stats.fetch_failures[key] = stats.fetch_failures.get(key, 0) + 1
                if self._metrics:
                    self._metrics.record_fetch(key, failures=1)
                continue

            self._merge_fetch_result(key, result, stats)
            items.extend(result.items)

        return items

    def _merge_fetch_result(self, key: str, result: FetchResult, stats: AggregationStats) -> None:
        stats.api_quota_used += result.api_quota_used
        if result.failure_count:
            stats.fetch_failures[key] = stats.fetch_failures.get(key, 0) + result.failure_count
        if self._metrics:
            self._metrics.record_fetch(
                key,
                count=len(result.items),
                failures=result.failure_count,
                latency=result.elapsed_seconds,
            )

    async def _process_item(
        self,
        item: AggregatedItem,
        batch_id: int,
        stats: AggregationStats,
        now: datetime,
    ) -> bool:
        """Dedup, score, categorize and persist one item. Returns True if saved."""
        check = await self._deduplicator.check(item)
        if check.is_duplicate:
            stats.record_duplicate(check.reason)
            if self._metrics:
                self._metrics.record_skip(check.reason.value if check.reason else "duplicate")
            return False
        stats.after_deduplication += 1

        quality_score = calculate_quality_score(QualityMetrics.from_item(item), now)
        if not meets_quality_threshold(quality_score, self._min_quality):
            stats.low_quality_skipped += 1
            if self._metrics:
                self._metrics.record_skip("low_quality")
            return False
        stats.after_quality_filter += 1

        category_id, tag_names = await self._categorizer.categorize(item.title, item.summary)

        record = ContentRecord(
            title=item.title,
            summary=item.summary,
            link=item.link,
            source_type=item.source_type.value,
            source_name=item.source_name,
            thumbnail_url=item.thumbnail_url,
            published_at=item.published_at,
            engagement_score=item.engagement_score,
            normalized_url=normalize_url(item.link),
            content_hash=generate_content_hash(item.title, item.summary),
            quality_score=quality_score,
            category_id=category_id,
            batch_id=batch_id,
        )

        # A record is only kept together with its tags
        async with self._database.transaction() as conn:
            content_id = await self._content.insert(record, conn=conn)
            for tag_name in tag_names:
                tag = await self._tags.find_or_create(tag_name, conn=conn)
                await self._content.attach_tag(content_id, tag.id, conn=conn)

        return True

    def _record_run_metrics(self, stats: AggregationStats) -> None:
        if not self._metrics:
            return
        self._metrics.record_skip("time", stats.removed_by_time_filter)
        self._metrics.record_skip("popularity", stats.removed_by_popularity_filter)
        self._metrics.record_run_complete(stats.api_quota_used)
