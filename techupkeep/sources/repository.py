"""Database repository for the sources table."""

import json
import logging
from collections import defaultdict

from techupkeep.sources.schemas import Source
from techupkeep.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id           SERIAL PRIMARY KEY,
    name         TEXT NOT NULL UNIQUE,
    slug         TEXT NOT NULL UNIQUE,
    kind         TEXT NOT NULL,
    url          TEXT NOT NULL,
    is_active    BOOLEAN NOT NULL DEFAULT TRUE,
    metadata     JSONB NOT NULL DEFAULT '{}',
    description  TEXT NOT NULL DEFAULT '',
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sources_kind_active
    ON sources(kind, is_active) WHERE is_active = TRUE;
"""

_UPSERT_SQL = """
INSERT INTO sources (name, slug, kind, url, is_active, metadata, description)
VALUES ($1, $2, $3, $4, $5, $6, $7)
ON CONFLICT (slug) DO UPDATE SET
    name = EXCLUDED.name,
    kind = EXCLUDED.kind,
    url = EXCLUDED.url,
    is_active = EXCLUDED.is_active,
    metadata = EXCLUDED.metadata,
    description = EXCLUDED.description,
    updated_at = NOW()
RETURNING id
"""

_BULK_UPSERT_SQL = """
INSERT INTO sources (name, slug, kind, url, is_active, metadata, description)
SELECT * FROM unnest(
    $1::text[], $2::text[], $3::text[], $4::text[], $5::boolean[], $6::jsonb[], $7::text[]
)
ON CONFLICT (slug) DO UPDATE SET
    name = EXCLUDED.name,
    kind = EXCLUDED.kind,
    url = EXCLUDED.url,
    is_active = EXCLUDED.is_active,
    metadata = EXCLUDED.metadata,
    description = EXCLUDED.description,
    updated_at = NOW()
"""


def _parse_metadata(value) -> dict:
    """Decode metadata from a connection without the JSON codec registered."""
    if not value:
        return {}
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed source metadata: %r", value[:100])
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return dict(value)


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        id=record["id"],
        name=record["name"],
        slug=record["slug"],
        kind=record["kind"],
        url=record["url"],
        is_active=record["is_active"],
        metadata=_parse_metadata(record["metadata"]),
        description=record["description"] or "",
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class SourcesRepository:
    """CRUD operations for the sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Sources table ensured")

    async def upsert(self, source: Source) -> int:
        """Insert or update a single source. Returns its id."""
        return await self._db.fetchval(
            _UPSERT_SQL,
            source.name,
            source.slug,
            source.kind,
            source.url,
            source.is_active,
            source.metadata,
            source.description,
        )

    async def bulk_upsert(self, sources: list[Source]) -> int:
        """Insert or update multiple sources in one statement.

        Returns the number of sources processed.
        """
        if not sources:
            return 0

        await self._db.execute(
            _BULK_UPSERT_SQL,
            [s.name for s in sources],
            [s.slug for s in sources],
            [s.kind for s in sources],
            [s.url for s in sources],
            [s.is_active for s in sources],
            [s.metadata for s in sources],
            [s.description for s in sources],
        )
        logger.info("Bulk upserted %d sources", len(sources))
        return len(sources)

    async def get_active_grouped_by_kind(self) -> dict[str, list[Source]]:
        """Fetch every active source in one round-trip, grouped by kind."""
        rows = await self._db.fetch(
            "SELECT * FROM sources WHERE is_active = TRUE ORDER BY kind, id"
        )
        grouped: dict[str, list[Source]] = defaultdict(list)
        for row in rows:
            source = _record_to_source(row)
            grouped[source.kind].append(source)
        return dict(grouped)

    async def count(self) -> int:
        """Count total sources in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM sources")
