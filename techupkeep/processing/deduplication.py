"""
Content deduplication against the persistent store.

An incoming item is a duplicate when any of these hold:
- its raw link, normalized URL or content hash matches a stored record
- its title is within edit-distance similarity of one of the most
  recently stored records

Only the boolean outcome drives the pipeline; the reason is recorded for
logging and run statistics.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from rapidfuzz.distance import Levenshtein

from techupkeep.config.settings import get_settings
from techupkeep.ingestion.schemas import AggregatedItem
from techupkeep.storage.repository import ContentRepository

logger = logging.getLogger(__name__)

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_content",
        "utm_term",
        "ref",
        "source",
        "fbclid",
        "gclid",
        "mc_cid",
        "mc_eid",
    }
)

_WHITESPACE = re.compile(r"\s+")


class DuplicateReason(str, Enum):
    DUPLICATE = "duplicate"
    ALREADY_IN_NEWSLETTER = "already_in_newsletter"
    SIMILAR_TITLE = "similar_title"


@dataclass
class DuplicateCheck:
    """Result of duplicate detection."""

    is_duplicate: bool
    reason: DuplicateReason | None = None
    existing_id: int | None = None
    similarity: float | None = None


def _strip_url_fallback(url: str) -> str:
    base = re.split(r"[?#]", url, maxsplit=1)[0]
    if base.endswith("/"):
        base = base[:-1]
    return base.lower()


def normalize_url(url: str) -> str:
    """
    Canonical form of a link used as a soft duplicate key.

    Tracking parameters and the fragment are removed, one trailing slash is
    dropped and the result is lower-cased. Links that do not parse as
    absolute URLs lose their query and fragment wholesale.
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return _strip_url_fallback(url.strip())

    if not parts.scheme or not parts.netloc:
        return _strip_url_fallback(url.strip())

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in TRACKING_PARAMS
    ]
    normalized = urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(query), "")
    )
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized.lower()


def generate_content_hash(title: str, summary: str) -> str:
    """MD5 digest of the normalized ``title|summary`` text."""
    text = _WHITESPACE.sub(" ", f"{title}|{summary}".lower()).strip()
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def title_similarity(a: str, b: str) -> float:
    """
    Normalized Levenshtein similarity of two titles in [0, 1].

    Titles are compared lower-cased and stripped; equal titles (including
    two empty ones) score 1.0.
    """
    a = a.lower().strip()
    b = b.lower().strip()
    if a == b:
        return 1.0
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / max_len


def is_similar_title(a: str, b: str, threshold: float = 0.85) -> bool:
    return title_similarity(a, b) >= threshold


class Deduplicator:
    """
    Checks candidate items against stored content.

    Must be called sequentially within a run so that each check sees the
    records saved earlier in the same run.
    """

    def __init__(
        self,
        content_repo: ContentRepository,
        similarity_threshold: float | None = None,
        window_size: int | None = None,
    ):
        """
        Initialize deduplicator.

        Args:
            content_repo: Repository used for key and title lookups
            similarity_threshold: Title similarity at which items collide
            window_size: Number of most recent records compared by title
        """
        settings = get_settings()
        self._repo = content_repo
        self._threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else settings.similar_title_threshold
        )
        self._window_size = window_size if window_size is not None else settings.recent_window_size

    async def check(self, item: AggregatedItem) -> DuplicateCheck:
        """Return whether the item duplicates stored content, and why."""
        existing = await self._repo.find_existing(
            item.link,
            normalize_url(item.link),
            generate_content_hash(item.title, item.summary),
        )
        if existing is not None:
            reason = (
                DuplicateReason.ALREADY_IN_NEWSLETTER
                if existing.newsletter_draft_id is not None
                else DuplicateReason.DUPLICATE
            )
            logger.debug(f"Skipping ({reason.value}): {item.title[:60]}")
            return DuplicateCheck(is_duplicate=True, reason=reason, existing_id=existing.id)

        if self._window_size <= 0:
            return DuplicateCheck(is_duplicate=False)

        for record in await self._repo.recent(self._window_size):
            similarity = title_similarity(item.title, record.title)
            if similarity >= self._threshold:
                logger.debug(
                    f"Skipping (similar title {similarity:.2f} to #{record.id}): "
                    f"{item.title[:60]}"
                )
                return DuplicateCheck(
                    is_duplicate=True,
                    reason=DuplicateReason.SIMILAR_TITLE,
                    existing_id=record.id,
                    similarity=similarity,
                )

        return DuplicateCheck(is_duplicate=False)

    async def is_duplicate(self, item: AggregatedItem) -> bool:
        return (await self.check(item)).is_duplicate
