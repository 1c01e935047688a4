"""Storage layer for content persistence."""

from techupkeep.storage.database import Database
from techupkeep.storage.repository import (
    BatchRepository,
    CategoryRepository,
    ContentRepository,
    TagRepository,
    create_tables,
)
from techupkeep.storage.schemas import Category, ContentRecord, ScrapeBatch, Tag

__all__ = [
    "Database",
    "BatchRepository",
    "CategoryRepository",
    "ContentRepository",
    "TagRepository",
    "create_tables",
    "Category",
    "ContentRecord",
    "ScrapeBatch",
    "Tag",
]
