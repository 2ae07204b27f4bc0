"""Unit tests for calendar-day volume buckets."""
import pytest

from ..config.engine_config import EngineConfig
from ..services.daily_volume import bucket_daily_posts, bucket_daily_votes, max_volume
from .factories import at, make_post, make_processed_vote


class TestBucketDailyVotes:
    """Test daily vote buckets."""

    def test_groups_by_day(self, config):
        """Test that votes of one day share a bucket with the latest time."""
        votes = [
            make_processed_vote("0x1", 100, created_at=at(1, hours=3)),
            make_processed_vote("0x2", 50, created_at=at(1)),
            make_processed_vote("0x3", 10, created_at=at(2)),
        ]

        buckets = bucket_daily_votes(votes, config=config)

        assert list(buckets) == ["2024-10-02", "2024-10-03"]
        assert buckets["2024-10-02"].total_voting_power == 150
        assert buckets["2024-10-02"].last_vote_time == at(1, hours=3)
        assert buckets["2024-10-03"].total_voting_power == 10

    def test_choice_breakdown_has_no_threshold(self, config):
        """Test that even tiny shares are kept in the per-choice breakdown."""
        votes = [
            make_processed_vote("0x1", 1000, [(0, 99.9), (1, 0.1)]),
            make_processed_vote("0x2", 1, [(1, 100)]),
        ]

        bucket = next(iter(bucket_daily_votes(votes, config=config).values()))

        assert bucket.choice_voting_power[0] == pytest.approx(999.0)
        assert bucket.choice_voting_power[1] == pytest.approx(2.0)

    def test_timezone_moves_day_boundary(self):
        """Test that the configured zone decides which day a vote belongs to."""
        votes = [make_processed_vote("0x1", 5, created_at=at(1, hours=-10))]

        utc = bucket_daily_votes(votes, config=EngineConfig(timezone="UTC"))
        new_york = bucket_daily_votes(votes, config=EngineConfig(timezone="America/New_York"))

        assert list(utc) == ["2024-10-02"]
        assert list(new_york) == ["2024-10-01"]

    def test_empty(self, config):
        """Test that no votes yield no buckets."""
        assert bucket_daily_votes([], config=config) == {}


class TestBucketDailyPosts:
    """Test daily post buckets."""

    def test_counts_posts(self, config):
        """Test post counts and latest post time per day."""
        posts = [
            make_post(2, at(1)),
            make_post(3, at(1, hours=2)),
            make_post(4, at(3)),
        ]

        buckets = bucket_daily_posts(posts, config=config)

        assert [(b.count, b.last_post_time) for b in buckets.values()] == [(2, at(1, hours=2)), (1, at(3))]


class TestMaxVolume:
    """Test axis maximum."""

    def test_max_of_values(self):
        """Test the largest value is returned."""
        assert max_volume([3, 7.5, 1]) == 7.5

    def test_empty_is_zero(self):
        """Test that no buckets give an axis maximum of 0."""
        assert max_volume([]) == 0.0
