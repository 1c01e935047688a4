"""Tests for the recency and popularity filters."""

from datetime import timedelta

import pytest

from techupkeep.ingestion.schemas import ContentType
from techupkeep.processing.filters import (
    age_hours,
    apply_popularity_filter,
    apply_time_filter,
    is_recent_enough,
    passes_popularity,
)


class TestTimeFilter:
    def test_age_hours(self, now):
        assert age_hours(now - timedelta(hours=6), now) == pytest.approx(6.0)

    def test_boundary_is_kept(self, now):
        assert is_recent_enough(now - timedelta(hours=120), 120, now)
        assert not is_recent_enough(now - timedelta(hours=120, seconds=1), 120, now)

    def test_apply_counts_removed(self, sample_item, now):
        old = sample_item.model_copy(update={"published_at": now - timedelta(days=10)})
        fresh = sample_item

        kept, removed = apply_time_filter([old, fresh], max_age_hours=120, now=now)

        assert kept == [fresh]
        assert removed == 1

    def test_future_items_are_kept(self, sample_item, now):
        future = sample_item.model_copy(update={"published_at": now + timedelta(hours=3)})

        kept, removed = apply_time_filter([future], now=now)

        assert kept == [future]
        assert removed == 0


class TestPopularityFilter:
    @pytest.mark.parametrize("score, expected", [(99, False), (100, True), (2500, True)])
    def test_reddit_threshold(self, sample_item, score, expected):
        post = sample_item.model_copy(
            update={"source_type": ContentType.REDDIT, "source_name": "r/programming", "engagement_score": score}
        )

        assert passes_popularity(post) is expected

    @pytest.mark.parametrize("score, expected", [(29, False), (30, True)])
    def test_hacker_news_threshold(self, sample_item, score, expected):
        story = sample_item.model_copy(
            update={"source_name": "Hacker News", "engagement_score": score}
        )

        assert passes_popularity(story) is expected

    def test_other_sources_always_pass(self, sample_item):
        video = sample_item.model_copy(
            update={"source_type": ContentType.YOUTUBE, "engagement_score": 0}
        )

        assert passes_popularity(sample_item)
        assert passes_popularity(video)

    def test_apply_preserves_order(self, sample_item):
        weak = sample_item.model_copy(
            update={"source_type": ContentType.REDDIT, "engagement_score": 5, "title": "weak"}
        )
        strong = sample_item.model_copy(
            update={"source_type": ContentType.REDDIT, "engagement_score": 500, "title": "strong"}
        )

        kept, removed = apply_popularity_filter([strong, weak, sample_item])

        assert [i.title for i in kept] == ["strong", sample_item.title]
        assert removed == 1
