"""In-memory stand-ins for the store and fetchers used by aggregation tests."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from itertools import count
from unittest.mock import MagicMock

import pytest

from techupkeep.ingestion.base_fetcher import FetchResult, SourceFailure
from techupkeep.ingestion.schemas import AggregatedItem, ContentType
from techupkeep.processing.categorizer import default_keyword_table
from techupkeep.services.aggregation_service import ContentAggregator
from techupkeep.sources.schemas import Source
from techupkeep.storage.schemas import Category, ContentRecord, ExistingContent, ScrapeBatch, Tag

NOW = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


class FakeContentRepository:
    def __init__(self, fail_on: str | None = None, fail_tagging: bool = False):
        self.records: list[ContentRecord] = []
        self.tags: list[tuple[int, int]] = []
        self._ids = count(1)
        self._fail_on = fail_on
        self._fail_tagging = fail_tagging

    async def insert(self, record: ContentRecord, conn=None) -> int:
        if self._fail_on and self._fail_on in record.link:
            raise RuntimeError("insert failed")
        if any(r.link == record.link for r in self.records):
            raise RuntimeError("duplicate link")
        record.id = next(self._ids)
        self.records.append(record)
        return record.id

    async def find_existing(self, link, normalized_url, content_hash):
        for r in self.records:
            if r.link == link or r.normalized_url == normalized_url or r.content_hash == content_hash:
                return ExistingContent(id=r.id, title=r.title, newsletter_draft_id=r.newsletter_draft_id)
        return None

    async def recent(self, limit: int = 100):
        newest_first = list(reversed(self.records))[:limit]
        return [ExistingContent(id=r.id, title=r.title) for r in newest_first]

    async def attach_tag(self, content_id: int, tag_id: int, conn=None) -> None:
        if self._fail_tagging:
            raise RuntimeError("tag link failed")
        self.tags.append((content_id, tag_id))


class FakeBatchRepository:
    def __init__(self):
        self.batches: list[ScrapeBatch] = []

    async def create(self, name: str) -> ScrapeBatch:
        batch = ScrapeBatch(name=name, id=len(self.batches) + 1)
        self.batches.append(batch)
        return batch

    async def set_total_items(self, batch_id: int, total_items: int) -> None:
        self.batches[batch_id - 1].total_items = total_items


class FakeTagRepository:
    def __init__(self):
        self.tags: dict[str, Tag] = {}

    async def find_or_create(self, name: str, conn=None) -> Tag:
        if name not in self.tags:
            self.tags[name] = Tag(id=len(self.tags) + 1, name=name, slug=name.lower())
        return self.tags[name]


class FakeDatabase:
    """Rolls the in-memory stores back when a transaction body raises."""

    def __init__(self, content_repo: FakeContentRepository, tag_repo: FakeTagRepository):
        self._content = content_repo
        self._tags = tag_repo

    @asynccontextmanager
    async def transaction(self):
        records = list(self._content.records)
        links = list(self._content.tags)
        tags = dict(self._tags.tags)
        try:
            yield MagicMock()
        except Exception:
            self._content.records[:] = records
            self._content.tags[:] = links
            self._tags.tags = tags
            raise


class FakeCategoryRepository:
    def __init__(self):
        self.categories = [
            Category(id=i, slug=rule.slug, name=rule.name)
            for i, rule in enumerate(default_keyword_table().categories, start=1)
        ]

    async def list_all(self):
        return list(self.categories)


class FakeSourcesService:
    def __init__(self, grouped: dict[str, list[Source]]):
        self.grouped = grouped

    async def get_active_sources_by_kind(self):
        return self.grouped


class FakeFetcher:
    """Returns canned items and records the sources it was given."""

    def __init__(self, kind, items=(), failures=(), quota=0, error=None):
        self.kind = kind
        self.items = list(items)
        self.failures = list(failures)
        self.quota = quota
        self.error = error
        self.received: list[list[Source]] = []

    async def fetch(self, sources):
        self.received.append(list(sources))
        if self.error:
            raise self.error
        return FetchResult(
            kind=self.kind,
            items=[i.model_copy() for i in self.items],
            sources_attempted=len(sources),
            failures=list(self.failures),
            api_quota_used=self.quota,
        )


def _item(title, link, source_type, source_name, hours_old, engagement=0, summary=""):
    return AggregatedItem(
        title=title,
        summary=summary,
        link=link,
        source_type=source_type,
        source_name=source_name,
        published_at=NOW - timedelta(hours=hours_old),
        engagement_score=engagement,
    )


@pytest.fixture
def grouped_sources() -> dict[str, list[Source]]:
    def src(name, kind):
        return Source(name=name, slug=name.lower().replace(" ", "-"), kind=kind, url=f"https://{kind}.example.com")

    return {
        "rss": [src("TechCrunch", "rss")],
        "blog": [src("Netflix Tech Blog", "blog")],
        "substack": [src("Pragmatic Engineer", "substack")],
        "podcast": [src("Acquired", "podcast")],
        "reddit": [src("r/rust", "reddit")],
        "youtube": [src("Some Channel", "youtube")],
    }


@pytest.fixture
def fetchers() -> dict[str, FakeFetcher]:
    return {
        "rss": FakeFetcher(
            "rss",
            items=[
                _item(
                    "OpenAI launches new developer API for Python",
                    "https://techcrunch.com/2025/01/15/openai-api/?utm_source=rss",
                    ContentType.ARTICLE,
                    "TechCrunch",
                    2,
                    summary="The release brings a framework for building AI agents.",
                ),
                _item("An article from last month", "https://blog.example.com/old", ContentType.ARTICLE, "Netflix Tech Blog", 240),
                _item("Show HN: my weekend project", "https://news.ycombinator.com/item?id=1", ContentType.ARTICLE, "Hacker News", 1, engagement=10),
            ],
            failures=[SourceFailure(source_name="Broken Blog", error="HTTP 500")],
        ),
        "substack": FakeFetcher(
            "substack",
            items=[
                _item(
                    "Newsletter roundup: what shipped this week",
                    "https://techcrunch.com/2025/01/15/openai-api/",
                    ContentType.SUBSTACK,
                    "Pragmatic Engineer",
                    1,
                )
            ],
        ),
        "podcast": FakeFetcher(
            "podcast",
            items=[_item("The Nvidia story", "https://acquired.fm/episodes/nvidia", ContentType.PODCAST, "Acquired", 5)],
        ),
        "reddit": FakeFetcher(
            "reddit",
            items=[
                _item("Barely upvoted meme", "https://www.reddit.com/r/rust/comments/1/", ContentType.REDDIT, "r/rust", 1, engagement=40),
                _item(
                    "Rust async runtime internals explained",
                    "https://www.reddit.com/r/rust/comments/2/",
                    ContentType.REDDIT,
                    "r/rust",
                    3,
                    engagement=600,
                ),
            ],
        ),
        "youtube": FakeFetcher(
            "youtube",
            items=[_item("Weekly vlog", "https://www.youtube.com/watch?v=abc", ContentType.YOUTUBE, "Some Channel", 1)],
            quota=101,
        ),
        "github": FakeFetcher(
            "github",
            items=[
                _item(
                    "acme/rocket: A rocket",
                    "https://github.com/acme/rocket",
                    ContentType.GITHUB,
                    "GitHub Trending",
                    3,
                    engagement=900,
                    summary="Written in Go.",
                )
            ],
        ),
    }


@pytest.fixture
def content_repo() -> FakeContentRepository:
    return FakeContentRepository()


@pytest.fixture
def batch_repo() -> FakeBatchRepository:
    return FakeBatchRepository()


@pytest.fixture
def tag_repo() -> FakeTagRepository:
    return FakeTagRepository()


@pytest.fixture
def make_aggregator(fetchers, grouped_sources, content_repo, batch_repo, tag_repo):
    """Build a ContentAggregator wired to the in-memory fakes."""

    def _make(metrics=None) -> ContentAggregator:
        return ContentAggregator(
            FakeDatabase(content_repo, tag_repo),
            max_age_hours=120,
            min_quality=50,
            client=MagicMock(),
            fetchers=fetchers,
            sources_service=FakeSourcesService(grouped_sources),
            metrics=metrics,
            batch_repo=batch_repo,
            content_repo=content_repo,
            tag_repo=tag_repo,
            category_repo=FakeCategoryRepository(),
        )

    return _make
