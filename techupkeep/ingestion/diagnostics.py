"""
Feed diagnostics: check each feed source once and report what went wrong.

Unlike the fetchers, diagnostics never retry, so a slow or broken feed
shows up exactly as an aggregation run would first see it.
"""

import logging
import time
from dataclasses import asdict, dataclass

import httpx

from techupkeep.ingestion.feed_fetcher import FeedParseError, parse_feed
from techupkeep.ingestion.http_client import FetchError, HTTPClient, HTTPClientError
from techupkeep.sources.schemas import Source

logger = logging.getLogger(__name__)

_DNS_MARKERS = ("name or service not known", "nodename nor servname", "getaddrinfo")


@dataclass
class DiagnosticResult:
    """Outcome of checking one feed."""

    name: str
    url: str
    status: str  # "success" or "error"
    error: str | None = None
    item_count: int | None = None
    response_time_ms: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        return asdict(self)


def describe_error(error: Exception, timeout: float) -> str:
    """Turn a fetch or parse failure into a short human-readable reason."""
    if isinstance(error, FeedParseError):
        return f"Parse error: {error}"

    if isinstance(error, FetchError) and error.status_code is not None:
        return f"HTTP {error.status_code}"

    cause = error.__cause__
    if isinstance(cause, httpx.TimeoutException):
        return f"Timeout (>{timeout:g}s)"
    if isinstance(cause, httpx.ConnectError):
        message = str(cause).lower()
        if any(marker in message for marker in _DNS_MARKERS):
            return "DNS resolution failed"
        if "certificate" in message or "ssl" in message:
            return "SSL certificate error"
        return "Connection failed"

    return str(error) or type(error).__name__


class FeedDiagnostics:
    """Checks feed sources with a single attempt each."""

    def __init__(self, client: HTTPClient, timeout: float = 15.0):
        self._client = client
        self._timeout = timeout

    async def diagnose(self, source: Source) -> DiagnosticResult:
        """Fetch and parse one feed, timing the request."""
        start = time.monotonic()
        try:
            xml = await self._client.fetch_text(
                source.url,
                timeout=self._timeout,
                max_retries=0,
            )
            parsed = parse_feed(xml)
        except HTTPClientError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            reason = describe_error(e, self._timeout)
            logger.debug(f"Diagnostics failed for {source.name}: {reason}")
            return DiagnosticResult(
                name=source.name,
                url=source.url,
                status="error",
                error=reason,
                response_time_ms=elapsed_ms,
            )

        return DiagnosticResult(
            name=source.name,
            url=source.url,
            status="success",
            item_count=len(parsed.entries),
            response_time_ms=int((time.monotonic() - start) * 1000),
        )

    async def diagnose_all(self, sources: list[Source]) -> list[DiagnosticResult]:
        """Check every source sequentially."""
        results = []
        for source in sources:
            results.append(await self.diagnose(source))
        return results
