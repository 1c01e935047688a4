"""Processing pipeline - filters, deduplication, scoring and categorization."""

from techupkeep.processing.categorizer import Categorizer, load_keyword_table
from techupkeep.processing.deduplication import (
    Deduplicator,
    DuplicateCheck,
    DuplicateReason,
    generate_content_hash,
    normalize_url,
)
from techupkeep.processing.filters import apply_popularity_filter, apply_time_filter
from techupkeep.processing.quality import (
    QualityMetrics,
    calculate_quality_score,
    meets_quality_threshold,
)

__all__ = [
    "Categorizer",
    "load_keyword_table",
    "Deduplicator",
    "DuplicateCheck",
    "DuplicateReason",
    "generate_content_hash",
    "normalize_url",
    "apply_popularity_filter",
    "apply_time_filter",
    "QualityMetrics",
    "calculate_quality_score",
    "meets_quality_threshold",
]
