"""
Reddit fetcher using the public JSON listing API.

Fetches the hot listing of each configured subreddit and keeps only posts
with real traction. Link posts that point off-site are re-attributed to
the linked domain so they compete with regular articles.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from techupkeep.config.settings import get_settings
from techupkeep.ingestion.base_fetcher import BaseFetcher, FetchResult, truncate
from techupkeep.ingestion.http_client import HTTPClient
from techupkeep.ingestion.schemas import (
    AggregatedItem,
    ContentType,
    SourceKind,
    is_personal_publishing_link,
)
from techupkeep.sources.schemas import Source

logger = logging.getLogger(__name__)

REDDIT_HOT_URL = "https://www.reddit.com/r/{subreddit}/hot.json"
LISTING_LIMIT = 25
MAX_SELFTEXT_LENGTH = 500


def subreddit_for(source: Source) -> str:
    """Community name from metadata, falling back to the source name."""
    return source.metadata.get("subreddit") or source.name.replace("r/", "")


def passes_reddit_thresholds(
    post: dict[str, Any],
    min_score: int = 100,
    min_upvote_ratio: float = 0.8,
) -> bool:
    """Keep a post only if it is not stickied and clears both thresholds."""
    if post.get("stickied"):
        return False
    if (post.get("score") or 0) < min_score:
        return False
    return (post.get("upvote_ratio") or 0.0) >= min_upvote_ratio


def resolve_post_link(post: dict[str, Any]) -> str:
    """External URL for link posts, permalink for self posts."""
    url = post.get("url") or ""
    if url.startswith("http"):
        return url
    return f"https://reddit.com{post.get('permalink', '')}"


def _is_reddit_link(link: str) -> bool:
    return "reddit.com" in link or "redd.it" in link


def _host_of(link: str) -> str:
    host = urlparse(link).hostname or ""
    if not host:
        parts = link.split("/")
        host = parts[2] if len(parts) > 2 else ""
    return host.replace("www.", "")


class RedditFetcher(BaseFetcher):
    """
    Fetches hot posts from configured subreddits.

    Filtering:
        - stickied posts are dropped
        - score >= min_score AND upvote_ratio >= min_upvote_ratio
    """

    def __init__(
        self,
        client: HTTPClient,
        min_score: int | None = None,
        min_upvote_ratio: float | None = None,
    ):
        """
        Initialize Reddit fetcher.

        Args:
            client: Shared HTTP client
            min_score: Minimum post score (default from settings)
            min_upvote_ratio: Minimum upvote ratio (default from settings)
        """
        super().__init__(client)
        settings = get_settings()
        self._min_score = min_score if min_score is not None else settings.min_reddit_score
        self._min_upvote_ratio = (
            min_upvote_ratio
            if min_upvote_ratio is not None
            else settings.min_reddit_upvote_ratio
        )

    @property
    def kind(self) -> str:
        return SourceKind.REDDIT.value

    async def _fetch_source(self, source: Source, result: FetchResult) -> list[AggregatedItem]:
        subreddit = subreddit_for(source)
        data = await self._client.get_json(
            REDDIT_HOT_URL.format(subreddit=subreddit),
            params={"limit": LISTING_LIMIT},
        )

        children = (data.get("data") or {}).get("children") or []
        items: list[AggregatedItem] = []
        for child in children:
            post = child.get("data") or {}
            if not passes_reddit_thresholds(post, self._min_score, self._min_upvote_ratio):
                continue
            item = self._transform(post, source)
            if item is not None:
                items.append(item)

        logger.debug(f"r/{subreddit}: kept {len(items)} of {len(children)} posts")
        return items

    def _transform(self, post: dict[str, Any], source: Source) -> AggregatedItem | None:
        title = (post.get("title") or "").strip()
        if not title:
            return None

        link = resolve_post_link(post)
        source_name = source.name
        source_type = ContentType.REDDIT

        if not _is_reddit_link(link):
            source_name = _host_of(link) or source.name
            if "medium.com" in source_name or is_personal_publishing_link(link):
                source_type = ContentType.MEDIUM
            else:
                source_type = ContentType.ARTICLE

        thumbnail = post.get("thumbnail") or ""
        selftext = post.get("selftext") or ""

        return AggregatedItem(
            title=title,
            summary=truncate(selftext, MAX_SELFTEXT_LENGTH) or title,
            link=link,
            source_type=source_type,
            source_name=source_name,
            thumbnail_url=thumbnail if thumbnail.startswith("http") else None,
            published_at=datetime.fromtimestamp(
                float(post.get("created_utc") or 0), tz=timezone.utc
            ),
            engagement_score=int(post.get("score") or 0),
        )
