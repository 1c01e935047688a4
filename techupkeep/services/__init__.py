"""Services - aggregation run orchestration."""

from techupkeep.services.aggregation_service import AggregationStats, ContentAggregator

__all__ = ["AggregationStats", "ContentAggregator"]
