"""techupkeep - technical content aggregation, scoring and curation pipeline."""

__version__ = "0.1.0"
