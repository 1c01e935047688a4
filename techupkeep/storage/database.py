"""
PostgreSQL pool shared by the repositories of one aggregation run.

Source metadata lives in a JSONB column, so every pooled connection gets
json/jsonb codecs and repositories read it back as plain dicts.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from techupkeep.config.settings import get_settings

logger = logging.getLogger(__name__)

# Scrape runs issue short statements; anything slower is a stuck server
COMMAND_TIMEOUT_SECONDS = 60


async def _init_connection(conn: asyncpg.Connection) -> None:
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class Database:
    """
    Thin asyncpg pool owner.

    The CLI opens one Database per command and hands it to every
    repository; repositories only use the query helpers below.

        async with Database() as db:
            stats = await ContentAggregator(db).aggregate_all()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        settings = get_settings()
        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=COMMAND_TIMEOUT_SECONDS,
                init=_init_connection,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Could not open content store pool: {e}")
            raise
        logger.info(f"Content store connected (pool {self._min_size}-{self._max_size})")

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Content store connection closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Start a transaction; everything on ``conn`` rolls back if the body raises.

        Usage:
            async with db.transaction() as conn:
                content_id = await content_repo.insert(record, conn=conn)
                await content_repo.attach_tag(content_id, tag.id, conn=conn)
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement; returns the status tag, e.g. ``UPDATE 1``."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True when the pool answers ``SELECT 1``; False if unreachable or never connected."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError, RuntimeError):
            return False
