"""Content ingestion - fetchers, schemas, and HTTP infrastructure."""

from techupkeep.ingestion.schemas import (
    AggregatedItem,
    ContentStatus,
    ContentType,
    SourceKind,
)

__all__ = [
    "AggregatedItem",
    "ContentStatus",
    "ContentType",
    "SourceKind",
]
