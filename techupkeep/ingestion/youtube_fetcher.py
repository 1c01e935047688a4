"""
YouTube fetcher using the Data API v3.

Each configured channel costs one search call (100 quota units) plus one
statistics call per returned video (1 unit each). Without an API key the
fetcher is a no-op.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from techupkeep.config.settings import get_settings
from techupkeep.ingestion.base_fetcher import BaseFetcher, FetchResult, truncate
from techupkeep.ingestion.http_client import APIKeyRotator, HTTPClient, HTTPClientError
from techupkeep.ingestion.schemas import AggregatedItem, ContentType, SourceKind
from techupkeep.sources.schemas import Source

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

SEARCH_QUOTA_COST = 100
STATISTICS_QUOTA_COST = 1
VIDEOS_PER_CHANNEL = 3
MAX_DESCRIPTION_LENGTH = 500


class MissingChannelIdError(HTTPClientError):
    """Raised when a YouTube source has no channelId in its metadata."""


def _parse_published(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class YouTubeFetcher(BaseFetcher):
    """
    Fetches the latest videos of configured channels.

    API keys may be given comma-separated to spread quota across projects.
    """

    def __init__(self, client: HTTPClient, api_key: str | None = None):
        """
        Initialize YouTube fetcher.

        Args:
            client: Shared HTTP client
            api_key: API key(s); falls back to YOUTUBE_API_KEY from settings
        """
        super().__init__(client)
        key_value = api_key if api_key is not None else get_settings().youtube_api_key
        self._rotator = APIKeyRotator.from_env_var(key_value)

    @property
    def kind(self) -> str:
        return SourceKind.YOUTUBE.value

    @property
    def is_configured(self) -> bool:
        return self._rotator is not None

    async def fetch(self, sources: list[Source]) -> FetchResult:
        if not self.is_configured:
            logger.info("YouTube API key not configured, skipping")
            return FetchResult(kind=self.kind)
        return await super().fetch(sources)

    async def _fetch_source(self, source: Source, result: FetchResult) -> list[AggregatedItem]:
        channel_id = source.metadata.get("channelId")
        if not channel_id:
            raise MissingChannelIdError(f"No channelId in metadata for {source.name}")

        search = await self._client.get_json(
            SEARCH_URL,
            params={
                "channelId": channel_id,
                "part": "snippet",
                "order": "date",
                "maxResults": VIDEOS_PER_CHANNEL,
                "type": "video",
            },
            api_key_rotator=self._rotator,
            api_key_param="key",
        )
        result.api_quota_used += SEARCH_QUOTA_COST

        items: list[AggregatedItem] = []
        for video in search.get("items") or []:
            video_id = (video.get("id") or {}).get("videoId")
            if not video_id:
                continue

            view_count = await self._view_count(video_id)
            result.api_quota_used += STATISTICS_QUOTA_COST

            item = self._transform(video, video_id, view_count, source)
            if item is not None:
                items.append(item)

        return items

    async def _view_count(self, video_id: str) -> int:
        data = await self._client.get_json(
            VIDEOS_URL,
            params={"id": video_id, "part": "statistics"},
            api_key_rotator=self._rotator,
            api_key_param="key",
        )
        videos = data.get("items") or []
        if not videos:
            return 0
        statistics = videos[0].get("statistics") or {}
        try:
            return int(statistics.get("viewCount", 0))
        except (TypeError, ValueError):
            return 0

    def _transform(
        self,
        video: dict[str, Any],
        video_id: str,
        view_count: int,
        source: Source,
    ) -> AggregatedItem | None:
        snippet = video.get("snippet") or {}
        title = (snippet.get("title") or "").strip()
        if not title:
            return None

        thumbnail = ((snippet.get("thumbnails") or {}).get("medium") or {}).get("url")

        return AggregatedItem(
            title=title,
            summary=truncate(snippet.get("description") or "", MAX_DESCRIPTION_LENGTH),
            link=WATCH_URL.format(video_id=video_id),
            source_type=ContentType.YOUTUBE,
            source_name=source.name,
            thumbnail_url=thumbnail,
            published_at=_parse_published(snippet.get("publishedAt")),
            engagement_score=view_count,
        )
