"""
GitHub trending fetcher.

GitHub has no trending API, so "trending" means the most-starred
repositories created in the last seven days, via the repository search
endpoint. No Source rows are involved; the query is global.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from techupkeep.ingestion.base_fetcher import BaseFetcher, FetchResult
from techupkeep.ingestion.http_client import HTTPClient
from techupkeep.ingestion.schemas import GITHUB_TRENDING, AggregatedItem, ContentType
from techupkeep.sources.schemas import Source

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.github.com/search/repositories"
LOOKBACK_DAYS = 7
RESULTS_PER_QUERY = 10
MIN_STARS = 50

_GITHUB_SOURCE = Source(
    name=GITHUB_TRENDING,
    slug="github-trending",
    kind="github",
    url=SEARCH_URL,
)


def trending_query(now: datetime | None = None) -> str:
    """Search qualifier for repositories created in the lookback window."""
    now = now or datetime.now(timezone.utc)
    since = (now - timedelta(days=LOOKBACK_DAYS)).date()
    return f"created:>{since.isoformat()}"


def repo_summary(repo: dict[str, Any]) -> str:
    """One-paragraph description with language and star/fork counts."""
    parts = [f"{repo.get('description') or 'No description provided'}."]
    if repo.get("language"):
        parts.append(f"Written in {repo['language']}.")
    stars = repo.get("stargazers_count") or 0
    forks = repo.get("forks_count") or 0
    parts.append(f"{stars:,} stars, {forks:,} forks.")
    return " ".join(parts)


class GitHubTrendingFetcher(BaseFetcher):
    """Fetches newly created repositories sorted by stars."""

    def __init__(self, client: HTTPClient, now: datetime | None = None):
        """
        Initialize GitHub fetcher.

        Args:
            client: Shared HTTP client
            now: Fixed reference time, mainly for tests
        """
        super().__init__(client)
        self._now = now

    @property
    def kind(self) -> str:
        return ContentType.GITHUB.value

    async def fetch(self, sources: list[Source] | None = None) -> FetchResult:
        """Run the single global query. ``sources`` is ignored."""
        return await super().fetch([_GITHUB_SOURCE])

    async def _fetch_source(self, source: Source, result: FetchResult) -> list[AggregatedItem]:
        data = await self._client.get_json(
            SEARCH_URL,
            params={
                "q": trending_query(self._now),
                "sort": "stars",
                "order": "desc",
                "per_page": RESULTS_PER_QUERY,
            },
            headers={"Accept": "application/vnd.github.v3+json"},
        )

        items: list[AggregatedItem] = []
        for repo in data.get("items") or []:
            if (repo.get("stargazers_count") or 0) < MIN_STARS:
                continue
            item = self._transform(repo)
            if item is not None:
                items.append(item)
        return items

    def _transform(self, repo: dict[str, Any]) -> AggregatedItem | None:
        full_name = repo.get("full_name")
        link = repo.get("html_url")
        if not full_name or not link:
            return None

        created_at = repo.get("created_at")
        published_at = (
            datetime.fromisoformat(created_at.replace("Z", "+00:00"))
            if created_at
            else datetime.now(timezone.utc)
        )

        return AggregatedItem(
            title=f"{full_name}: {repo.get('description') or repo.get('name') or full_name}",
            summary=repo_summary(repo),
            link=link,
            source_type=ContentType.GITHUB,
            source_name=GITHUB_TRENDING,
            published_at=published_at,
            engagement_score=int(repo.get("stargazers_count") or 0),
        )
