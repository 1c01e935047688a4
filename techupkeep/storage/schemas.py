"""Persisted record types returned by the storage repositories."""

from dataclasses import dataclass
from datetime import datetime

from techupkeep.ingestion.schemas import ContentStatus

# Persisted summaries are cut to this many characters.
MAX_STORED_SUMMARY_LENGTH = 500


@dataclass
class ContentRecord:
    """A persisted content item awaiting review."""

    title: str
    summary: str
    link: str
    source_type: str
    source_name: str
    published_at: datetime
    normalized_url: str
    content_hash: str
    quality_score: int
    thumbnail_url: str | None = None
    engagement_score: int = 0
    category_id: int | None = None
    batch_id: int | None = None
    status: str = ContentStatus.PENDING.value
    featured_order: int | None = None
    newsletter_draft_id: int | None = None
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class ScrapeBatch:
    """One aggregation run."""

    name: str
    status: str = "pending"
    total_items: int = 0
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class Category:
    slug: str
    name: str
    description: str = ""
    id: int | None = None


@dataclass
class Tag:
    name: str
    slug: str
    id: int | None = None


@dataclass
class ExistingContent:
    """Minimal view of a stored record used by duplicate checks."""

    id: int
    title: str = ""
    newsletter_draft_id: int | None = None
    created_at: datetime | None = None
