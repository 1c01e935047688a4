"""
Keyword-based topic categorization.

Category rules live in ``data/category_keywords.json`` as an ordered list.
Each keyword found in the title scores 3, and one found only in the summary
scores 1. The highest total wins, with earlier categories winning ties.
Weak matches fall back to the table's default category.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from techupkeep.storage.repository import CategoryRepository
from techupkeep.storage.schemas import Category

logger = logging.getLogger(__name__)

KEYWORDS_FILE = Path(__file__).parent / "data" / "category_keywords.json"

TITLE_MATCH_WEIGHT = 3
SUMMARY_MATCH_WEIGHT = 1


@dataclass
class CategoryRule:
    slug: str
    name: str
    description: str = ""
    keywords: list[str] = field(default_factory=list)


@dataclass
class KeywordTable:
    """Versioned, ordered category keyword rules."""

    version: int
    default_slug: str
    min_score: int
    categories: list[CategoryRule]

    @property
    def slugs(self) -> list[str]:
        return [c.slug for c in self.categories]


@dataclass
class CategoryMatch:
    slug: str
    score: int
    is_default: bool = False


def load_keyword_table(path: Path | None = None) -> KeywordTable:
    """Load category rules from a JSON data file."""
    with open(path or KEYWORDS_FILE, encoding="utf-8") as f:
        raw = json.load(f)

    categories = [
        CategoryRule(
            slug=c["slug"],
            name=c["name"],
            description=c.get("description", ""),
            keywords=[k.lower() for k in c.get("keywords", [])],
        )
        for c in raw["categories"]
    ]
    return KeywordTable(
        version=raw["version"],
        default_slug=raw["default_slug"],
        min_score=raw.get("min_score", 2),
        categories=categories,
    )


@lru_cache
def default_keyword_table() -> KeywordTable:
    """The packaged keyword table, loaded once."""
    return load_keyword_table()


def score_category(rule: CategoryRule, title: str, text: str) -> int:
    """Weighted keyword score of one category for lower-cased inputs."""
    score = 0
    for keyword in rule.keywords:
        if keyword in title:
            score += TITLE_MATCH_WEIGHT
        elif keyword in text:
            score += SUMMARY_MATCH_WEIGHT
    return score


class Categorizer:
    """
    Assigns a category and tag names to content.

    Usage:
        categorizer = Categorizer(CategoryRepository(db))
        category_id, tag_names = await categorizer.categorize(title, summary)
    """

    def __init__(
        self,
        category_repo: CategoryRepository | None = None,
        table: KeywordTable | None = None,
    ):
        """
        Initialize categorizer.

        Args:
            category_repo: Repository used to resolve slugs to stored categories
            table: Keyword rules (the packaged table by default)
        """
        self._repo = category_repo
        self._table = table or default_keyword_table()
        self._categories: dict[str, Category] | None = None

    @property
    def table(self) -> KeywordTable:
        return self._table

    def classify(self, title: str, summary: str = "") -> CategoryMatch:
        """Pick the best matching category slug without touching the store."""
        lowered_title = title.lower()
        text = f"{title} {summary}".lower()

        best_slug: str | None = None
        best_score = 0
        for rule in self._table.categories:
            score = score_category(rule, lowered_title, text)
            if score > best_score:
                best_slug = rule.slug
                best_score = score

        if best_slug is None or best_score < self._table.min_score:
            return CategoryMatch(slug=self._table.default_slug, score=best_score, is_default=True)
        return CategoryMatch(slug=best_slug, score=best_score)

    async def _load_categories(self) -> dict[str, Category]:
        if self._categories is None:
            stored = await self._repo.list_all() if self._repo else []
            self._categories = {c.slug: c for c in stored}
        return self._categories

    async def categorize(self, title: str, summary: str = "") -> tuple[int | None, list[str]]:
        """
        Resolve the best category against the category store.

        Returns:
            (category_id, tag_names); the category's display name is the only tag
        """
        match = self.classify(title, summary)
        categories = await self._load_categories()

        category = categories.get(match.slug)
        if category is None:
            if not match.is_default:
                logger.warning(f"Category {match.slug} not in store, using default")
            category = categories.get(self._table.default_slug)

        if category is None:
            return None, []
        return category.id, [category.name]
