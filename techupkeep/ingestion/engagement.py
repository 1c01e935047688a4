"""
Secondary popularity lookup for Hacker News feed items.

The Hacker News front-page feed carries no score, so each item's score is
read from the public Firebase API. Lookups are best-effort: any failure
leaves the item's engagement at its current value.
"""

import logging
import re

from techupkeep.ingestion.http_client import HTTPClient, HTTPClientError
from techupkeep.ingestion.schemas import AggregatedItem

logger = logging.getLogger(__name__)

HN_ITEM_URL = "https://hacker-news.firebaseio.com/v0/item/{item_id}.json"

_ITEM_ID_PATTERN = re.compile(r"id=(\d+)")


def extract_item_id(link: str) -> str | None:
    """Return the numeric item id from a Hacker News discussion link."""
    match = _ITEM_ID_PATTERN.search(link)
    return match.group(1) if match else None


class HackerNewsEnhancer:
    """Overwrites engagement of Hacker News items with their live score."""

    def __init__(self, client: HTTPClient):
        self._client = client

    async def enhance(self, items: list[AggregatedItem]) -> int:
        """
        Look up scores for every Hacker News item in place.

        Args:
            items: Web-feed items; non Hacker News items are ignored

        Returns:
            Number of items whose engagement was updated
        """
        updated = 0
        for item in items:
            if not item.is_hacker_news:
                continue

            item_id = extract_item_id(item.link)
            if item_id is None:
                continue

            try:
                data = await self._client.get_json(
                    HN_ITEM_URL.format(item_id=item_id),
                    max_retries=0,
                )
            except HTTPClientError as e:
                logger.debug(f"Hacker News score lookup failed for {item_id}: {e}")
                continue

            score = data.get("score") if isinstance(data, dict) else None
            if score:
                item.engagement_score = int(score)
                updated += 1

        if updated:
            logger.debug(f"Enhanced {updated} Hacker News items with live scores")
        return updated
