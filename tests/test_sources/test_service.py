"""Tests for SourcesService."""

import json
import time
from unittest.mock import AsyncMock

import pytest

from techupkeep.sources.config import SourcesConfig
from techupkeep.sources.service import SourcesService


@pytest.fixture
def config() -> SourcesConfig:
    return SourcesConfig(cache_ttl_seconds=60)


@pytest.fixture
def service(mock_database: AsyncMock, config: SourcesConfig) -> SourcesService:
    return SourcesService(mock_database, config)


class TestActiveSourcesByKind:
    """Tests for the cached grouped lookup."""

    @pytest.mark.asyncio
    async def test_fetches_from_db_on_first_call(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]

        result = await service.get_active_sources_by_kind()

        assert [s.name for s in result["reddit"]] == ["r/programming"]

    @pytest.mark.asyncio
    async def test_returns_cached_on_second_call(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]

        first = await service.get_active_sources_by_kind()
        service.repository._db.fetch.return_value = []
        second = await service.get_active_sources_by_kind()

        assert first is second
        assert service.repository._db.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]
        await service.get_active_sources_by_kind()

        service._grouped_cached_at = time.monotonic() - 120
        service.repository._db.fetch.return_value = []
        result = await service.get_active_sources_by_kind()

        assert result == {}

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_cache(self, mock_database: AsyncMock) -> None:
        service = SourcesService(mock_database, SourcesConfig(cache_ttl_seconds=0))

        await service.get_active_sources_by_kind()
        await service.get_active_sources_by_kind()

        assert mock_database.fetch.await_count == 2


class TestSeeding:
    @pytest.mark.asyncio
    async def test_seed_from_json(self, service: SourcesService, tmp_path) -> None:
        path = tmp_path / "seed.json"
        path.write_text(
            json.dumps(
                [
                    {"name": "Fireship", "slug": "fireship", "kind": "youtube", "url": "u",
                     "metadata": {"channelId": "abc"}},
                    {"name": "Old Blog", "slug": "old-blog", "kind": "blog", "url": "v",
                     "is_active": False},
                ]
            )
        )

        count = await service.seed_from_json(path)

        assert count == 2
        args = service.repository._db.execute.call_args[0]
        assert args[1] == ["Fireship", "Old Blog"]
        assert args[5] == [True, False]
        assert args[6] == [{"channelId": "abc"}, {}]

    @pytest.mark.asyncio
    async def test_packaged_seed_file_covers_every_kind(self, service: SourcesService) -> None:
        count = await service.seed_from_json()

        args = service.repository._db.execute.call_args[0]
        assert count == len(args[1])
        assert {"rss", "blog", "substack", "podcast", "reddit", "youtube"} <= set(args[3])

    @pytest.mark.asyncio
    async def test_seed_invalidates_cache(self, service: SourcesService, tmp_path) -> None:
        path = tmp_path / "seed.json"
        path.write_text("[]")
        service._grouped_cache = {"blog": []}

        await service.seed_from_json(path)

        assert service._grouped_cache is None

    @pytest.mark.asyncio
    async def test_ensure_seeded_skips_non_empty(self, service: SourcesService) -> None:
        service.repository._db.fetchval.return_value = 12

        await service.ensure_seeded()

        service.repository._db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_seeded_seeds_empty_table(self, service: SourcesService) -> None:
        service.repository._db.fetchval.return_value = 0

        await service.ensure_seeded()

        service.repository._db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ensure_seeded_disabled(self, mock_database: AsyncMock) -> None:
        service = SourcesService(mock_database, SourcesConfig(seed_on_init=False))

        await service.ensure_seeded()

        mock_database.fetchval.assert_not_called()
