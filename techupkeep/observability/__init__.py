"""Observability layer - logging and metrics."""

from techupkeep.observability.logging import setup_logging
from techupkeep.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
