"""
Content, batch, category and tag repositories.

Provides the persistence operations the aggregation run needs:
- scrape_batches: one row per run, total_items set at the end
- content: reviewable items with link as the hard unique key and
  normalized_url / content_hash as indexed soft keys
- categories and tags with a content_tags join table
"""

import logging
import re

import asyncpg

from techupkeep.storage.database import Database
from techupkeep.storage.schemas import (
    MAX_STORED_SUMMARY_LENGTH,
    Category,
    ContentRecord,
    ExistingContent,
    ScrapeBatch,
    Tag,
)

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id           SERIAL PRIMARY KEY,
    slug         TEXT NOT NULL UNIQUE,
    name         TEXT NOT NULL,
    description  TEXT NOT NULL DEFAULT '',
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS tags (
    id          SERIAL PRIMARY KEY,
    name        TEXT NOT NULL,
    slug        TEXT NOT NULL UNIQUE,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS scrape_batches (
    id           SERIAL PRIMARY KEY,
    name         TEXT NOT NULL,
    status       TEXT NOT NULL DEFAULT 'pending',
    total_items  INTEGER NOT NULL DEFAULT 0,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS content (
    id                   SERIAL PRIMARY KEY,
    title                TEXT NOT NULL,
    summary              TEXT NOT NULL DEFAULT '',
    link                 TEXT NOT NULL UNIQUE,
    normalized_url       TEXT NOT NULL,
    content_hash         TEXT NOT NULL,
    source_type          TEXT NOT NULL,
    source_name          TEXT NOT NULL,
    thumbnail_url        TEXT,
    published_at         TIMESTAMPTZ NOT NULL,
    engagement_score     INTEGER NOT NULL DEFAULT 0,
    quality_score        INTEGER NOT NULL DEFAULT 0,
    category_id          INTEGER REFERENCES categories(id),
    batch_id             INTEGER REFERENCES scrape_batches(id),
    status               TEXT NOT NULL DEFAULT 'pending',
    featured_order       INTEGER,
    newsletter_draft_id  INTEGER,
    created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_content_normalized_url
    ON content(normalized_url);
CREATE INDEX IF NOT EXISTS idx_content_content_hash
    ON content(content_hash);
CREATE INDEX IF NOT EXISTS idx_content_created_at
    ON content(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_content_status
    ON content(status);

CREATE TABLE IF NOT EXISTS content_tags (
    content_id  INTEGER NOT NULL REFERENCES content(id) ON DELETE CASCADE,
    tag_id      INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (content_id, tag_id)
);
"""

_INSERT_CONTENT_SQL = """
INSERT INTO content (
    title, summary, link, normalized_url, content_hash,
    source_type, source_name, thumbnail_url, published_at,
    engagement_score, quality_score, category_id, batch_id, status
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
RETURNING id
"""

_FIND_EXISTING_SQL = """
SELECT id, title, newsletter_draft_id, created_at
FROM content
WHERE link = $1 OR normalized_url = $2 OR content_hash = $3
LIMIT 1
"""

_RECENT_SQL = """
SELECT id, title, newsletter_draft_id, created_at
FROM content
ORDER BY created_at DESC
LIMIT $1
"""

_UPSERT_CATEGORY_SQL = """
INSERT INTO categories (slug, name, description)
VALUES ($1, $2, $3)
ON CONFLICT (slug) DO UPDATE SET
    name = EXCLUDED.name,
    description = EXCLUDED.description
RETURNING id
"""

_FIND_OR_CREATE_TAG_SQL = """
INSERT INTO tags (name, slug)
VALUES ($1, $2)
ON CONFLICT (slug) DO UPDATE SET slug = EXCLUDED.slug
RETURNING id, name, slug
"""


def slugify(name: str) -> str:
    """Lower-case a display name and join its words with hyphens."""
    return re.sub(r"\s+", "-", name.strip().lower())


def _row_to_existing(row: asyncpg.Record) -> ExistingContent:
    return ExistingContent(
        id=row["id"],
        title=row["title"] or "",
        newsletter_draft_id=row["newsletter_draft_id"],
        created_at=row["created_at"],
    )


async def create_tables(database: Database) -> None:
    """Create every table the aggregation run writes to (idempotent)."""
    await database.execute(_CREATE_TABLES_SQL)
    logger.info("Content tables ensured")


class ContentRepository:
    """
    Repository for reviewable content records.

    Only the aggregation run inserts; review tooling owns status changes.
    """

    def __init__(self, database: Database):
        """
        Initialize repository.

        Args:
            database: Connected Database instance
        """
        self._db = database

    async def insert(self, record: ContentRecord, conn: asyncpg.Connection | None = None) -> int:
        """
        Insert a content record and return its id.

        The summary is truncated to the stored maximum. Pass ``conn`` to run
        inside an open transaction.

        Raises:
            asyncpg.UniqueViolationError: If the link is already stored
        """
        return await (conn or self._db).fetchval(
            _INSERT_CONTENT_SQL,
            record.title,
            record.summary[:MAX_STORED_SUMMARY_LENGTH],
            record.link,
            record.normalized_url,
            record.content_hash,
            record.source_type,
            record.source_name,
            record.thumbnail_url,
            record.published_at,
            record.engagement_score,
            record.quality_score,
            record.category_id,
            record.batch_id,
            record.status,
        )

    async def find_existing(
        self,
        link: str,
        normalized_url: str,
        content_hash: str,
    ) -> ExistingContent | None:
        """Find any record matching the exact link, normalized URL or content hash."""
        row = await self._db.fetchrow(_FIND_EXISTING_SQL, link, normalized_url, content_hash)
        return _row_to_existing(row) if row else None

    async def recent(self, limit: int = 100) -> list[ExistingContent]:
        """Return the most recently created records, newest first."""
        rows = await self._db.fetch(_RECENT_SQL, limit)
        return [_row_to_existing(r) for r in rows]

    async def attach_tag(
        self,
        content_id: int,
        tag_id: int,
        conn: asyncpg.Connection | None = None,
    ) -> None:
        """Link a tag to a content record. Re-linking is a no-op."""
        await (conn or self._db).execute(
            """
            INSERT INTO content_tags (content_id, tag_id)
            VALUES ($1, $2)
            ON CONFLICT DO NOTHING
            """,
            content_id,
            tag_id,
        )


class BatchRepository:
    """Records one scrape_batches row per aggregation run."""

    def __init__(self, database: Database):
        self._db = database

    async def create(self, name: str) -> ScrapeBatch:
        """Insert a pending batch and return it with its id."""
        row = await self._db.fetchrow(
            """
            INSERT INTO scrape_batches (name, status, total_items)
            VALUES ($1, 'pending', 0)
            RETURNING id, name, status, total_items, created_at
            """,
            name,
        )
        return ScrapeBatch(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            total_items=row["total_items"],
            created_at=row["created_at"],
        )

    async def set_total_items(self, batch_id: int, total_items: int) -> None:
        """Record the final saved count. Status is left untouched."""
        await self._db.execute(
            """
            UPDATE scrape_batches
            SET total_items = $2, updated_at = NOW()
            WHERE id = $1
            """,
            batch_id,
            total_items,
        )

    async def get(self, batch_id: int) -> ScrapeBatch | None:
        row = await self._db.fetchrow(
            "SELECT id, name, status, total_items, created_at FROM scrape_batches WHERE id = $1",
            batch_id,
        )
        if row is None:
            return None
        return ScrapeBatch(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            total_items=row["total_items"],
            created_at=row["created_at"],
        )


class CategoryRepository:
    """Lookup and seeding of topic categories."""

    def __init__(self, database: Database):
        self._db = database

    async def list_all(self) -> list[Category]:
        rows = await self._db.fetch(
            "SELECT id, slug, name, description FROM categories ORDER BY id"
        )
        return [
            Category(
                id=r["id"],
                slug=r["slug"],
                name=r["name"],
                description=r["description"] or "",
            )
            for r in rows
        ]

    async def upsert(self, category: Category) -> int:
        """Insert or update a category by slug. Returns its id."""
        return await self._db.fetchval(
            _UPSERT_CATEGORY_SQL,
            category.slug,
            category.name,
            category.description,
        )


class TagRepository:
    """Find-or-create access to tags keyed by slug."""

    def __init__(self, database: Database):
        self._db = database

    async def find_or_create(self, name: str, conn: asyncpg.Connection | None = None) -> Tag:
        """Return the tag with this name's slug, creating it if needed."""
        row = await (conn or self._db).fetchrow(_FIND_OR_CREATE_TAG_SQL, name, slugify(name))
        return Tag(id=row["id"], name=row["name"], slug=row["slug"])
