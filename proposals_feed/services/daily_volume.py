"""Calendar-day volume buckets for the timeline charts."""
from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from proposals_feed.config.engine_config import EngineConfig, resolve_config
from proposals_feed.data_models.schemas import DailyPostBucket, DailyVoteBucket, DiscoursePost, ProcessedVote
from proposals_feed.services.results_processing import proportional_power


def day_key(timestamp: datetime, tz: Optional[ZoneInfo] = None) -> str:
    """ISO date of ``timestamp`` in ``tz`` (host-local when ``tz`` is None)."""
    return timestamp.astimezone(tz).date().isoformat()


def bucket_daily_votes(
    votes: Sequence[ProcessedVote],
    *,
    config: Optional[EngineConfig] = None,
) -> Dict[str, DailyVoteBucket]:
    """Group votes by day, summing voting power overall and per choice.

    No visibility threshold applies here: every vote contributes to its day.
    Buckets keep the order in which their day first appeared.
    """
    tz = resolve_config(config).tzinfo()
    buckets: Dict[str, DailyVoteBucket] = {}

    for vote in votes:
        key = day_key(vote.created_at, tz)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = DailyVoteBucket(date_key=key, last_vote_time=vote.created_at)
            buckets[key] = bucket
        elif vote.created_at > bucket.last_vote_time:
            bucket.last_vote_time = vote.created_at

        bucket.total_voting_power += vote.voting_power
        for item in vote.choice:
            bucket.choice_voting_power[item.choice_index] = bucket.choice_voting_power.get(
                item.choice_index, 0.0
            ) + proportional_power(vote.voting_power, item.weight)

    return buckets


def bucket_daily_posts(
    posts: Sequence[DiscoursePost],
    *,
    config: Optional[EngineConfig] = None,
) -> Dict[str, DailyPostBucket]:
    """Group posts by day, counting them and tracking the latest post time."""
    tz = resolve_config(config).tzinfo()
    buckets: Dict[str, DailyPostBucket] = {}

    for post in posts:
        key = day_key(post.created_at, tz)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = DailyPostBucket(date_key=key, last_post_time=post.created_at)
            buckets[key] = bucket
        elif post.created_at > bucket.last_post_time:
            bucket.last_post_time = post.created_at
        bucket.count += 1

    return buckets


def max_volume(values: Iterable[float]) -> float:
    """Axis maximum across buckets; 0 when there are none."""
    return float(max([*values, 0.0]))
