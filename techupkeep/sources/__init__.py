"""Sources: database-backed ingestion source management."""

from techupkeep.sources.config import SourcesConfig
from techupkeep.sources.repository import SourcesRepository
from techupkeep.sources.schemas import Source
from techupkeep.sources.service import SourcesService

__all__ = [
    "Source",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
]
