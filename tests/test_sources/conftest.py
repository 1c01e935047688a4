"""Shared fixtures for sources tests."""

from datetime import datetime, timezone

import pytest

from techupkeep.sources.schemas import Source


@pytest.fixture
def sample_source() -> Source:
    """A sample Source for testing."""
    return Source(
        name="r/programming",
        slug="r-programming",
        kind="reddit",
        url="https://www.reddit.com/r/programming",
        description="Programming discussion",
        metadata={"subreddit": "programming"},
    )


def _row(id: int, name: str, slug: str, kind: str, url: str, metadata) -> dict:
    return {
        "id": id,
        "name": name,
        "slug": slug,
        "kind": kind,
        "url": url,
        "is_active": True,
        "metadata": metadata,
        "description": "",
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def sample_db_row() -> dict:
    """A dict mimicking an asyncpg Record for a subreddit source."""
    return _row(
        10,
        "r/programming",
        "r-programming",
        "reddit",
        "https://www.reddit.com/r/programming",
        {"subreddit": "programming"},
    )


@pytest.fixture
def sample_blog_row() -> dict:
    """A dict mimicking an asyncpg Record for a blog feed."""
    return _row(1, "Netflix Tech Blog", "netflix-tech-blog", "blog", "https://netflixtechblog.com/feed", {})


@pytest.fixture
def sample_youtube_row() -> dict:
    """A YouTube channel row whose metadata arrives as raw JSON text."""
    return _row(
        20,
        "Fireship",
        "fireship",
        "youtube",
        "https://www.youtube.com/@Fireship",
        '{"channelId": "UCsBjURrPoezykLs9EqgamOA"}',
    )
