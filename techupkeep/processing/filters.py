"""
Recency and popularity filters applied to the fetched item list.

Both filters are pure and return the surviving items plus the number
removed so the run can record them.
"""

from datetime import datetime, timezone

from techupkeep.ingestion.schemas import AggregatedItem, ContentType

DEFAULT_MAX_AGE_HOURS = 120.0
MIN_REDDIT_ENGAGEMENT = 100
MIN_HACKER_NEWS_ENGAGEMENT = 30


def age_hours(published_at: datetime, now: datetime | None = None) -> float:
    """Hours elapsed since publication."""
    now = now or datetime.now(timezone.utc)
    return (now - published_at).total_seconds() / 3600


def is_recent_enough(
    published_at: datetime,
    max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
    now: datetime | None = None,
) -> bool:
    """True when the item is at most max_age_hours old (boundary included)."""
    return age_hours(published_at, now) <= max_age_hours


def apply_time_filter(
    items: list[AggregatedItem],
    max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
    now: datetime | None = None,
) -> tuple[list[AggregatedItem], int]:
    """Drop items older than max_age_hours. Returns (kept, removed_count)."""
    now = now or datetime.now(timezone.utc)
    kept = [i for i in items if is_recent_enough(i.published_at, max_age_hours, now)]
    return kept, len(items) - len(kept)


def passes_popularity(item: AggregatedItem) -> bool:
    """
    Engagement gate per content type.

    Reddit posts need 100 upvotes and Hacker News articles 30 points;
    every other item passes because its source exposes no usable metric.
    """
    if item.source_type == ContentType.REDDIT:
        return item.engagement_score >= MIN_REDDIT_ENGAGEMENT
    if item.source_type == ContentType.ARTICLE and item.is_hacker_news:
        return item.engagement_score >= MIN_HACKER_NEWS_ENGAGEMENT
    return True


def apply_popularity_filter(items: list[AggregatedItem]) -> tuple[list[AggregatedItem], int]:
    """Drop items failing the engagement gate. Returns (kept, removed_count)."""
    kept = [i for i in items if passes_popularity(i)]
    return kept, len(items) - len(kept)
