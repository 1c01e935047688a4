"""
Quality scoring for aggregated items.

The score is the sum of four capped components:
- source reputation (0-30)
- normalized engagement (0-40)
- recency (0-20)
- keyword relevance (0-10)

Rounded half up and capped at 100. Items below the run's minimum quality
are not persisted.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from techupkeep.ingestion.schemas import HACKER_NEWS, AggregatedItem, ContentType

DEFAULT_MIN_QUALITY = 50

SOURCE_REPUTATION: dict[str, int] = {
    # News and tech press
    "TechCrunch": 30,
    "The Verge": 30,
    "Ars Technica": 30,
    "WIRED": 30,
    "Hacker News": 28,
    "The Guardian Tech": 28,
    "Engadget": 25,
    "ZDNet": 25,
    "The Next Web": 25,
    # Developer publications
    "DEV Community": 25,
    "CSS-Tricks": 25,
    "Smashing Magazine": 28,
    # Newsletters
    "Stratechery": 30,
    "Pragmatic Engineer": 30,
    "Lenny's Newsletter": 28,
    "Platformer": 28,
    "The Generalist": 28,
    "Not Boring": 28,
    "Exponential View": 25,
    # Podcasts
    "Acquired": 28,
    "Lex Fridman": 30,
    "All-In": 28,
    "Lenny's Podcast": 28,
    "20VC": 25,
    "My First Million": 25,
    # Subreddits
    "r/programming": 22,
    "r/technology": 20,
    "r/MachineLearning": 25,
    "r/webdev": 22,
    "r/artificial": 22,
    "r/datascience": 22,
}

TYPE_REPUTATION_DEFAULTS: dict[str, int] = {
    ContentType.ARTICLE.value: 20,
    ContentType.YOUTUBE.value: 18,
    ContentType.REDDIT.value: 15,
    ContentType.SUBSTACK.value: 22,
    ContentType.PODCAST.value: 20,
}

FALLBACK_REPUTATION = 15

# (max age in hours, points); anything older earns the floor
RECENCY_BUCKETS: tuple[tuple[float, int], ...] = (
    (6, 20),
    (12, 18),
    (24, 15),
    (48, 10),
    (72, 5),
)
RECENCY_FLOOR = 2

HIGH_VALUE_KEYWORDS: tuple[str, ...] = (
    "ai",
    "artificial intelligence",
    "machine learning",
    "deep learning",
    "startup",
    "funding",
    "ipo",
    "acquisition",
    "breakthrough",
    "innovation",
    "release",
    "launch",
    "security breach",
    "vulnerability",
    "hack",
    "developer",
    "programming",
    "code",
    "framework",
    "open source",
    "github",
    "api",
    "react",
    "typescript",
    "python",
    "javascript",
    "rust",
    "go",
)


@dataclass
class QualityMetrics:
    """Inputs to the quality score."""

    source_type: str
    source_name: str
    engagement_score: int
    published_at: datetime
    title: str
    summary: str = ""

    @classmethod
    def from_item(cls, item: AggregatedItem) -> "QualityMetrics":
        return cls(
            source_type=item.source_type.value,
            source_name=item.source_name,
            engagement_score=item.engagement_score,
            published_at=item.published_at,
            title=item.title,
            summary=item.summary,
        )


def reputation_points(source_type: str, source_name: str) -> int:
    """Exact source name first, then the content type default."""
    if source_name in SOURCE_REPUTATION:
        return SOURCE_REPUTATION[source_name]
    return TYPE_REPUTATION_DEFAULTS.get(source_type, FALLBACK_REPUTATION)


def engagement_points(source_type: str, source_name: str, engagement: int) -> float:
    """Engagement normalized per content type onto 0-40."""
    if source_type == ContentType.REDDIT.value:
        return min(engagement / 500 * 40, 40)
    if source_type == ContentType.YOUTUBE.value:
        return min(engagement / 100_000 * 40, 40)
    if source_type == ContentType.ARTICLE.value:
        if source_name == HACKER_NEWS and engagement > 0:
            return min(engagement / 100 * 40, 40)
        return 20
    if source_type in (ContentType.SUBSTACK.value, ContentType.PODCAST.value):
        return 25
    return 15


def recency_points(published_at: datetime, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    hours = (now - published_at).total_seconds() / 3600
    for limit, points in RECENCY_BUCKETS:
        if hours < limit:
            return points
    return RECENCY_FLOOR


def relevance_points(title: str, summary: str) -> int:
    """Two points per distinct high-value keyword, capped at 10."""
    text = f"{title} {summary}".lower()
    matches = sum(1 for keyword in HIGH_VALUE_KEYWORDS if keyword in text)
    return min(matches * 2, 10)


def calculate_quality_score(metrics: QualityMetrics, now: datetime | None = None) -> int:
    """Composite quality score in [0, 100]."""
    score = (
        reputation_points(metrics.source_type, metrics.source_name)
        + engagement_points(metrics.source_type, metrics.source_name, metrics.engagement_score)
        + recency_points(metrics.published_at, now)
        + relevance_points(metrics.title, metrics.summary)
    )
    return max(0, min(math.floor(score + 0.5), 100))


def meets_quality_threshold(score: int, minimum: int = DEFAULT_MIN_QUALITY) -> bool:
    return score >= minimum
