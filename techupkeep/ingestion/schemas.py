"""
Canonical item schema for the aggregation pipeline.

Every fetcher MUST output AggregatedItem instances. Filters, the
deduplicator, the quality scorer and the categorizer all depend on these
field names, so do not rename them without updating all downstream stages.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Source name of the one aggregator whose feed items get a secondary score
# lookup and a stricter popularity gate.
HACKER_NEWS = "Hacker News"

# Source name attached to every code-host trending item.
GITHUB_TRENDING = "GitHub Trending"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class SourceKind(str, Enum):
    """Kinds of configured Source rows."""

    BLOG = "blog"
    RSS = "rss"
    SUBSTACK = "substack"
    PODCAST = "podcast"
    REDDIT = "reddit"
    YOUTUBE = "youtube"

    @classmethod
    def web_feed_kinds(cls) -> tuple["SourceKind", ...]:
        """Kinds handled by the general web-feed fetcher."""
        return (cls.BLOG, cls.RSS)


class ContentType(str, Enum):
    """
    Source type attached to an aggregated item.

    MEDIUM is the personal-publishing-platform variant of ARTICLE; both
    can come from web feeds or from social posts that link off-site.
    """

    ARTICLE = "article"
    MEDIUM = "medium"
    SUBSTACK = "substack"
    PODCAST = "podcast"
    REDDIT = "reddit"
    YOUTUBE = "youtube"
    GITHUB = "github"


class ContentStatus(str, Enum):
    """Review lifecycle status of a persisted content record."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DISCARDED = "discarded"
    SAVED_FOR_NEXT = "saved-for-next"


def is_personal_publishing_link(link: str) -> bool:
    """Check whether a link points at a Medium-style personal publishing page."""
    return "medium.com" in link or "/@" in link


class AggregatedItem(BaseModel):
    """
    AGGREGATED ITEM SCHEMA

    Transient value produced by fetchers. Has no identity beyond its link
    until it is persisted as a content record.
    """

    title: str = Field(..., min_length=1, description="Item headline")
    summary: str = Field(default="", description="Plain-text summary or snippet")
    link: str = Field(..., min_length=1, description="Canonical link to the item")
    source_type: ContentType = Field(..., description="Kind of content")
    source_name: str = Field(..., description="Display name of the origin")
    thumbnail_url: str | None = Field(default=None, description="Optional artwork URL")
    published_at: datetime = Field(..., description="UTC publication timestamp")
    engagement_score: int = Field(
        default=0,
        ge=0,
        description="Raw popularity: upvotes, views or stars depending on source_type",
    )
    fetched_at: datetime = Field(default_factory=_utc_now)

    @field_validator("title")
    @classmethod
    def normalize_title(cls, v: str) -> str:
        """Collapse whitespace in titles."""
        return " ".join(v.split())

    @field_validator("published_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def is_hacker_news(self) -> bool:
        return self.source_name == HACKER_NEWS
