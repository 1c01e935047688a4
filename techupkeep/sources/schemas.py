"""Data models for the sources module."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Source:
    """A configured ingestion source (blog feed, subreddit, YouTube channel...).

    ``kind`` holds a SourceKind value. ``metadata`` carries kind-specific
    identifiers such as ``subreddit`` or ``channelId``.
    """

    name: str
    slug: str
    kind: str
    url: str
    is_active: bool = True
    metadata: dict = field(default_factory=dict)
    description: str = ""
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
