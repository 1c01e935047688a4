"""
Base fetcher interface and shared functionality for source fetchers.

Each fetcher receives the active sources of its kind, pulls items from the
network and returns a FetchResult. The base class provides:
- Per-source error isolation (one broken source never sinks the fetcher)
- Timing and result bookkeeping
- Common text cleaning utilities
"""

import html
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from techupkeep.ingestion.http_client import HTTPClient, HTTPClientError
from techupkeep.ingestion.schemas import AggregatedItem
from techupkeep.sources.schemas import Source

logger = logging.getLogger(__name__)


@dataclass
class SourceFailure:
    """A source that could not be fetched in this run."""

    source_name: str
    error: str


@dataclass
class FetchResult:
    """Items and bookkeeping returned by one fetcher run."""

    kind: str
    items: list[AggregatedItem] = field(default_factory=list)
    sources_attempted: int = 0
    failures: list[SourceFailure] = field(default_factory=list)
    api_quota_used: int = 0
    start_time: float = field(default_factory=time.monotonic, repr=False)
    elapsed_seconds: float = 0.0

    @property
    def failure_count(self) -> int:
        return len(self.failures)


class BaseFetcher(ABC):
    """
    Abstract base class for source fetchers.

    Subclasses must implement:
        - kind: source kind label used in stats and metrics
        - _fetch_source(): fetch and transform the items of one source

    Fetchers that do not consume Source rows (code-host trending) override
    fetch() directly.
    """

    def __init__(self, client: HTTPClient):
        """
        Initialize fetcher.

        Args:
            client: Open HTTPClient shared by every fetcher of the run
        """
        self._client = client

    @property
    @abstractmethod
    def kind(self) -> str:
        """Return the source kind this fetcher handles."""
        ...

    @property
    def name(self) -> str:
        """Human-readable fetcher name."""
        return f"{self.kind}_fetcher"

    @abstractmethod
    async def _fetch_source(self, source: Source, result: FetchResult) -> list[AggregatedItem]:
        """
        Fetch and transform the items of one source.

        Raise HTTPClientError (or a subclass) when the source cannot be
        fetched. Any exception is logged by the base class and recorded as
        a SourceFailure; the remaining sources still run. Quota usage is added
        to ``result.api_quota_used`` directly.
        """
        ...

    async def fetch(self, sources: list[Source]) -> FetchResult:
        """
        Fetch every source sequentially and collect the results.

        Args:
            sources: Active sources of this fetcher's kind

        Returns:
            FetchResult with items and per-source failures
        """
        result = FetchResult(kind=self.kind)

        logger.info(f"Starting fetch for {self.name} ({len(sources)} sources)")

        for source in sources:
            result.sources_attempted += 1
            try:
                items = await self._fetch_source(source, result)
            except HTTPClientError as e:
                logger.error(f"Error fetching {self.kind} source {source.name}: {e}")
                result.failures.append(SourceFailure(source_name=source.name, error=str(e)))
                continue
            except Exception as e:
                logger.error(
                    f"Unexpected response from {self.kind} source {source.name}: {e}",
                    exc_info=True,
                )
                result.failures.append(
                    SourceFailure(source_name=source.name, error=f"{type(e).__name__}: {e}")
                )
                continue

            result.items.extend(items)
            logger.debug(f"Fetched {len(items)} items from {source.name}")

        await self._after_fetch(result)
        self._finish(result)
        return result

    async def _after_fetch(self, result: FetchResult) -> None:
        """Hook run after all sources are fetched. No-op by default."""
        return None

    def _finish(self, result: FetchResult) -> None:
        result.elapsed_seconds = time.monotonic() - result.start_time
        logger.info(
            f"{self.name} completed: "
            f"items={len(result.items)}, "
            f"sources={result.sources_attempted}, "
            f"failures={result.failure_count}, "
            f"quota={result.api_quota_used}, "
            f"elapsed={result.elapsed_seconds:.2f}s"
        )


# Common text utilities used across fetchers

def clean_html(html_content: str | None) -> str:
    """
    Extract clean text from an HTML fragment.

    Args:
        html_content: Raw HTML string

    Returns:
        Plain text with entities decoded and whitespace collapsed
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def truncate(text: str, max_length: int) -> str:
    """Cut text to at most max_length characters."""
    return text[:max_length] if len(text) > max_length else text
