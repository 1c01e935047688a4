"""Tests for keyword categorization."""

import json
from unittest.mock import AsyncMock

import pytest

from techupkeep.processing.categorizer import (
    CategoryRule,
    Categorizer,
    KeywordTable,
    default_keyword_table,
    load_keyword_table,
    score_category,
)
from techupkeep.storage.schemas import Category


@pytest.fixture
def small_table() -> KeywordTable:
    return KeywordTable(
        version=1,
        default_slug="general",
        min_score=2,
        categories=[
            CategoryRule(slug="databases", name="Databases", keywords=["postgres", "sql"]),
            CategoryRule(slug="languages", name="Languages", keywords=["rust", "sql"]),
            CategoryRule(slug="general", name="General", keywords=[]),
        ],
    )


def _category_repo(*categories: Category) -> AsyncMock:
    repo = AsyncMock()
    repo.list_all = AsyncMock(return_value=list(categories))
    return repo


class TestKeywordTable:
    def test_packaged_table_order(self):
        table = default_keyword_table()

        assert table.slugs == [
            "system-design-architecture",
            "frontend-engineering",
            "backend-apis",
            "cloud-devops",
            "ai-machine-learning",
            "security",
            "developer-tools",
            "career-leadership",
            "product",
            "opinions-general",
        ]
        assert table.default_slug == "backend-apis"
        assert table.min_score == 2

    def test_load_from_file_lowercases_keywords(self, tmp_path):
        path = tmp_path / "keywords.json"
        path.write_text(
            json.dumps(
                {
                    "version": 2,
                    "default_slug": "misc",
                    "categories": [{"slug": "misc", "name": "Misc", "keywords": ["GraphQL"]}],
                }
            )
        )

        table = load_keyword_table(path)

        assert table.version == 2
        assert table.min_score == 2
        assert table.categories[0].keywords == ["graphql"]


class TestScoring:
    def test_title_outweighs_summary(self):
        rule = CategoryRule(slug="x", name="X", keywords=["rust", "wasm"])

        assert score_category(rule, "rust in production", "rust in production and wasm") == 4

    def test_reference_headline(self):
        match = Categorizer().classify("New React Hook for State Management")

        assert match.slug == "frontend-engineering"
        assert match.score == 6
        assert not match.is_default

    def test_infrastructure_headline(self):
        assert Categorizer().classify("Kubernetes 1.32 released").slug == "cloud-devops"

    def test_first_category_wins_tie(self, small_table):
        match = Categorizer(table=small_table).classify("Why SQL still matters")

        assert match.slug == "databases"
        assert match.score == 3

    def test_weak_match_falls_back_to_default(self, small_table):
        match = Categorizer(table=small_table).classify("Weekly notes", "a bit about rust")

        assert match.slug == "general"
        assert match.score == 1
        assert match.is_default

    def test_no_match_falls_back_to_default(self, small_table):
        match = Categorizer(table=small_table).classify("Nothing relevant")

        assert match == match.__class__(slug="general", score=0, is_default=True)


class TestCategorize:
    @pytest.mark.asyncio
    async def test_returns_category_and_display_name_tag(self, small_table):
        repo = _category_repo(
            Category(id=1, slug="databases", name="Databases"),
            Category(id=9, slug="general", name="General"),
        )
        categorizer = Categorizer(repo, small_table)

        assert await categorizer.categorize("Postgres 17 is out") == (1, ["Databases"])
        assert await categorizer.categorize("Nothing relevant") == (9, ["General"])
        repo.list_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_category_uses_default(self, small_table):
        repo = _category_repo(Category(id=9, slug="general", name="General"))

        result = await Categorizer(repo, small_table).categorize("Rust 2.0")

        assert result == (9, ["General"])

    @pytest.mark.asyncio
    async def test_empty_store(self, small_table):
        result = await Categorizer(_category_repo(), small_table).categorize("Postgres")

        assert result == (None, [])
