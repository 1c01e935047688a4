"""Tests for URL normalization, content hashing and the deduplicator."""

from unittest.mock import AsyncMock

import pytest

from techupkeep.processing.deduplication import (
    Deduplicator,
    DuplicateReason,
    generate_content_hash,
    is_similar_title,
    normalize_url,
    title_similarity,
)
from techupkeep.storage.schemas import ExistingContent


class TestNormalizeUrl:
    def test_strips_tracking_and_fragment(self):
        assert normalize_url("https://x.com/a?utm_source=y&ref=z#frag") == "https://x.com/a"

    def test_keeps_other_params(self):
        assert normalize_url("https://x.com/a?id=5&utm_medium=rss") == "https://x.com/a?id=5"

    def test_trailing_slash_and_case(self):
        assert normalize_url("HTTPS://Example.COM/Post/") == "https://example.com/post"

    def test_relative_link_falls_back(self):
        assert normalize_url("/r/programming/comments/abc/?sort=top") == "/r/programming/comments/abc"

    def test_tracking_variants_collide(self):
        a = normalize_url("https://blog.example.com/post?utm_source=twitter")
        b = normalize_url("https://blog.example.com/post/?fbclid=123")

        assert a == b


class TestContentHash:
    def test_deterministic(self):
        assert generate_content_hash("Title", "Body") == generate_content_hash("Title", "Body")

    def test_ignores_case_and_whitespace(self):
        assert generate_content_hash("Big  News", "Some\nbody") == generate_content_hash(
            "big news", "some body"
        )

    def test_is_md5_hex(self):
        digest = generate_content_hash("a", "b")

        assert len(digest) == 32
        int(digest, 16)

    def test_summary_matters(self):
        assert generate_content_hash("Title", "one") != generate_content_hash("Title", "two")


class TestTitleSimilarity:
    def test_identical_ignoring_case(self):
        assert title_similarity("Rust 2.0 Released", "rust 2.0 released ") == 1.0

    def test_small_edit_is_similar(self):
        a = "Announcing TypeScript 5.4 Beta"
        b = "Announcing TypeScript 5.4 RC"

        assert title_similarity(a, b) < 1.0
        assert is_similar_title(a, a + "!")

    def test_different_titles(self):
        assert not is_similar_title("Postgres 17 is out", "How we scaled our monolith")

    def test_empty_titles(self):
        assert title_similarity("", "") == 1.0


def _repo(existing=None, recent=None) -> AsyncMock:
    repo = AsyncMock()
    repo.find_existing = AsyncMock(return_value=existing)
    repo.recent = AsyncMock(return_value=recent or [])
    return repo


class TestDeduplicator:
    @pytest.mark.asyncio
    async def test_new_item(self, sample_item):
        repo = _repo()

        check = await Deduplicator(repo, 0.85, 100).check(sample_item)

        assert not check.is_duplicate
        repo.find_existing.assert_awaited_once_with(
            sample_item.link,
            "https://techcrunch.com/2025/01/15/openai-api",
            generate_content_hash(sample_item.title, sample_item.summary),
        )
        repo.recent.assert_awaited_once_with(100)

    @pytest.mark.asyncio
    async def test_key_match_is_duplicate(self, sample_item):
        repo = _repo(existing=ExistingContent(id=7, title="whatever"))

        check = await Deduplicator(repo, 0.85, 100).check(sample_item)

        assert check.is_duplicate
        assert check.reason == DuplicateReason.DUPLICATE
        assert check.existing_id == 7
        repo.recent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_newsletter_match(self, sample_item):
        repo = _repo(existing=ExistingContent(id=7, newsletter_draft_id=3))

        check = await Deduplicator(repo, 0.85, 100).check(sample_item)

        assert check.reason == DuplicateReason.ALREADY_IN_NEWSLETTER

    @pytest.mark.asyncio
    async def test_similar_recent_title(self, sample_item):
        recent = [
            ExistingContent(id=1, title="Something unrelated entirely"),
            ExistingContent(id=2, title="OpenAI launches new developer API for Python!"),
        ]
        repo = _repo(recent=recent)

        check = await Deduplicator(repo, 0.85, 100).check(sample_item)

        assert check.is_duplicate
        assert check.reason == DuplicateReason.SIMILAR_TITLE
        assert check.existing_id == 2
        assert check.similarity >= 0.85

    @pytest.mark.asyncio
    async def test_zero_window_skips_title_check(self, sample_item):
        repo = _repo(recent=[ExistingContent(id=1, title=sample_item.title)])

        assert not await Deduplicator(repo, 0.85, 0).is_duplicate(sample_item)
        repo.recent.assert_not_awaited()
