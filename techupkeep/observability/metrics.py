"""
Prometheus metrics for monitoring the aggregation job.

Defines and exposes metrics for:
- Items fetched and fetch failures per source kind
- Fetch latency
- Items skipped per pipeline reason
- Items saved per content type
- YouTube quota usage and last run time

Metrics can be exposed via HTTP endpoint for Prometheus scraping.
"""

import logging
import time

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from techupkeep.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for fetch latency histograms (in seconds)
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the techupkeep aggregation job.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_fetch("rss", count=12, latency=1.4)
        metrics.record_skip("similar_title")
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize Prometheus metrics.

        Args:
            registry: Registry to register on (the global one by default)
        """
        self._registry = registry or REGISTRY

        self.items_fetched = Counter(
            "techupkeep_items_fetched_total",
            "Total number of items returned by fetchers",
            ["source_kind"],
            registry=self._registry,
        )

        self.fetch_failures = Counter(
            "techupkeep_fetch_failures_total",
            "Total number of sources that failed to fetch",
            ["source_kind"],
            registry=self._registry,
        )

        self.fetch_latency = Histogram(
            "techupkeep_fetch_latency_seconds",
            "Time for one fetcher to process all of its sources",
            ["source_kind"],
            buckets=LATENCY_BUCKETS,
            registry=self._registry,
        )

        self.items_skipped = Counter(
            "techupkeep_items_skipped_total",
            "Total items dropped by the pipeline",
            ["reason"],  # time, popularity, duplicate, similar_title, low_quality, error
            registry=self._registry,
        )

        self.items_saved = Counter(
            "techupkeep_items_saved_total",
            "Total items persisted for review",
            ["content_type"],
            registry=self._registry,
        )

        self.youtube_quota_used = Gauge(
            "techupkeep_youtube_quota_units",
            "YouTube Data API quota units used by the last run",
            registry=self._registry,
        )

        self.last_run_timestamp = Gauge(
            "techupkeep_last_run_timestamp_seconds",
            "Unix time at which the last aggregation run finished",
            registry=self._registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=self._registry)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_fetch(
        self,
        source_kind: str,
        count: int = 0,
        failures: int = 0,
        latency: float | None = None,
    ) -> None:
        """
        Record the outcome of one fetcher.

        Args:
            source_kind: Fetcher kind (rss, reddit, github, ...)
            count: Number of items returned
            failures: Number of sources that failed
            latency: Optional fetch duration in seconds
        """
        self.items_fetched.labels(source_kind=source_kind).inc(count)
        if failures:
            self.fetch_failures.labels(source_kind=source_kind).inc(failures)
        if latency is not None:
            self.fetch_latency.labels(source_kind=source_kind).observe(latency)

    def record_skip(self, reason: str, count: int = 1) -> None:
        if count:
            self.items_skipped.labels(reason=reason).inc(count)

    def record_saved(self, content_type: str) -> None:
        self.items_saved.labels(content_type=content_type).inc()

    def record_run_complete(self, api_quota_used: int) -> None:
        """Record quota usage and completion time of a run."""
        self.youtube_quota_used.set(api_quota_used)
        self.last_run_timestamp.set(time.time())


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
