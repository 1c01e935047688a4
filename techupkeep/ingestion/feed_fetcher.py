"""
Syndication feed fetchers for blogs, newsletters and podcasts.

All three read RSS/Atom documents through feedparser after sanitizing the
raw XML. They differ in how many entries they keep per source, the content
type they assign and where thumbnails come from:

- WebFeedFetcher (blog, rss): 10 entries, article/medium, Hacker News
  scores looked up afterwards
- NewsletterFetcher (substack): 5 entries
- PodcastFetcher (podcast): 3 entries, episode or program artwork
"""

import calendar
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import feedparser

from techupkeep.ingestion.base_fetcher import BaseFetcher, FetchResult, clean_html
from techupkeep.ingestion.engagement import HackerNewsEnhancer
from techupkeep.ingestion.feed_sanitizer import sanitize_xml
from techupkeep.ingestion.http_client import HTTPClient, HTTPClientError
from techupkeep.ingestion.schemas import (
    AggregatedItem,
    ContentType,
    SourceKind,
    is_personal_publishing_link,
)
from techupkeep.sources.schemas import Source

logger = logging.getLogger(__name__)

# Parsed date fields in order of preference
_PARSED_DATE_FIELDS = ("published_parsed", "updated_parsed", "created_parsed")
_RAW_DATE_FIELDS = ("published", "updated", "created")


class FeedParseError(HTTPClientError):
    """Raised when a feed body cannot be parsed into any entries."""


def parse_feed(xml: str) -> Any:
    """
    Sanitize and parse a feed document.

    feedparser is lenient and sets ``bozo`` on recoverable problems, so a
    document is only rejected when it is malformed and yields no entries.

    Raises:
        FeedParseError: If the document cannot be parsed
    """
    parsed = feedparser.parse(sanitize_xml(xml))
    if parsed.get("bozo") and not parsed.get("entries"):
        reason = parsed.get("bozo_exception")
        raise FeedParseError(f"Unparseable feed: {reason}")
    return parsed


def parse_entry_date(entry: Any) -> datetime | None:
    """Return the first usable publication date of an entry, or None."""
    for field in _PARSED_DATE_FIELDS:
        value = entry.get(field)
        if value:
            return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)

    for field in _RAW_DATE_FIELDS:
        raw = entry.get(field)
        if not raw:
            continue
        try:
            return parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            pass
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            pass

    return None


def entry_summary(entry: Any, title: str) -> str:
    """Plain-text snippet of an entry: content, then summary, then title."""
    content = entry.get("content") or []
    if content:
        text = clean_html(content[0].get("value", ""))
        if text:
            return text

    text = clean_html(entry.get("summary", ""))
    return text or title


class FeedFetcher(BaseFetcher):
    """
    Shared RSS/Atom fetching for feed-backed source kinds.

    Subclasses set ``max_items`` and implement ``_content_type``.
    """

    max_items: int = 10

    async def _fetch_source(self, source: Source, result: FetchResult) -> list[AggregatedItem]:
        xml = await self._client.fetch_text(source.url)
        parsed = parse_feed(xml)

        items: list[AggregatedItem] = []
        for entry in parsed.entries[: self.max_items]:
            item = self._transform(entry, parsed.feed, source)
            if item is not None:
                items.append(item)
        return items

    def _transform(self, entry: Any, feed: Any, source: Source) -> AggregatedItem | None:
        """Convert one feed entry to an AggregatedItem, or None to skip it."""
        link = (entry.get("link") or "").strip()
        title = (entry.get("title") or "").strip()
        if not link or not title:
            return None

        published_at = parse_entry_date(entry)
        if published_at is None:
            logger.warning(f"No date found for entry from {source.name}: {title[:50]}")
            published_at = datetime.now(timezone.utc)

        return AggregatedItem(
            title=title,
            summary=entry_summary(entry, title),
            link=link,
            source_type=self._content_type(link),
            source_name=source.name,
            thumbnail_url=self._thumbnail(entry, feed),
            published_at=published_at,
            engagement_score=0,
        )

    def _content_type(self, link: str) -> ContentType:
        raise NotImplementedError

    def _thumbnail(self, entry: Any, feed: Any) -> str | None:
        return None


class WebFeedFetcher(FeedFetcher):
    """Blog and news feeds, with Hacker News scores looked up afterwards."""

    max_items = 10

    def __init__(self, client: HTTPClient, enhancer: HackerNewsEnhancer | None = None):
        super().__init__(client)
        self._enhancer = enhancer or HackerNewsEnhancer(client)

    @property
    def kind(self) -> str:
        return "rss"

    def _content_type(self, link: str) -> ContentType:
        if is_personal_publishing_link(link):
            return ContentType.MEDIUM
        return ContentType.ARTICLE

    async def _after_fetch(self, result: FetchResult) -> None:
        await self._enhancer.enhance(result.items)


class NewsletterFetcher(FeedFetcher):
    """Newsletter feeds (Substack and similar)."""

    max_items = 5

    @property
    def kind(self) -> str:
        return SourceKind.SUBSTACK.value

    def _content_type(self, link: str) -> ContentType:
        return ContentType.SUBSTACK


class PodcastFetcher(FeedFetcher):
    """Podcast feeds. Episode artwork wins over program artwork."""

    max_items = 3

    @property
    def kind(self) -> str:
        return SourceKind.PODCAST.value

    def _content_type(self, link: str) -> ContentType:
        return ContentType.PODCAST

    def _thumbnail(self, entry: Any, feed: Any) -> str | None:
        for container in (entry, feed):
            image = container.get("image")
            if isinstance(image, dict) and image.get("href"):
                return image["href"]
        return None
