"""Sources service with caching and seed support."""

import json
import logging
import time
from pathlib import Path

from techupkeep.sources.config import SourcesConfig
from techupkeep.sources.repository import SourcesRepository
from techupkeep.sources.schemas import Source
from techupkeep.storage.database import Database

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_sources.json"


def _parse_seed_entry(entry: dict) -> Source:
    """Convert a JSON seed entry to a Source dataclass."""
    return Source(
        name=entry["name"],
        slug=entry["slug"],
        kind=entry["kind"],
        url=entry["url"],
        is_active=entry.get("is_active", True),
        metadata=entry.get("metadata", {}),
        description=entry.get("description", ""),
    )


class SourcesService:
    """Cached access to sources with seed support.

    Wraps SourcesRepository with a TTL-based in-memory cache of the active
    sources grouped by kind, so a run issues a single store query no
    matter how many fetchers consume sources.
    """

    def __init__(
        self,
        database: Database,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)

        self._grouped_cache: dict[str, list[Source]] | None = None
        self._grouped_cached_at: float = 0.0

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    async def get_active_sources_by_kind(self) -> dict[str, list[Source]]:
        """Get active sources grouped by kind (cached)."""
        now = time.monotonic()
        ttl = self._config.cache_ttl_seconds
        if self._grouped_cache is not None and (now - self._grouped_cached_at) < ttl:
            return self._grouped_cache

        grouped = await self._repo.get_active_grouped_by_kind()
        self._grouped_cache = grouped
        self._grouped_cached_at = now
        logger.debug(
            "Loaded active sources: %s",
            {kind: len(sources) for kind, sources in grouped.items()},
        )
        return grouped

    def invalidate_cache(self) -> None:
        """Force-clear the cache so next access hits the DB."""
        self._grouped_cache = None
        self._grouped_cached_at = 0.0

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Load sources from a JSON file into the database.

        Returns the number of sources upserted.
        """
        seed_path = path or _SEED_FILE
        with open(seed_path, encoding="utf-8") as f:
            entries = json.load(f)

        sources = [_parse_seed_entry(e) for e in entries]
        count = await self._repo.bulk_upsert(sources)
        self.invalidate_cache()
        logger.info("Seeded %d sources from %s", count, seed_path)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from default JSON if the table is empty and seed_on_init is True."""
        if not self._config.seed_on_init:
            return

        existing = await self._repo.count()
        if existing > 0:
            logger.debug("Sources table has %d rows, skipping seed", existing)
            return

        logger.info("Sources table empty, seeding from default JSON")
        await self.seed_from_json()
