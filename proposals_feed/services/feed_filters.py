from enum import Enum
from typing import Optional, Sequence, TypeVar

from proposals_feed.config.engine_config import EngineConfig
from proposals_feed.data_models.schemas import DiscoursePost, GroupAuthor

T = TypeVar("T")


class FeedFilter(str, Enum):
    """Which activity the feed lists."""

    COMMENTS_AND_VOTES = "comments_and_votes"
    COMMENTS = "comments"
    VOTES = "votes"

    @property
    def includes_votes(self) -> bool:
        return self in (FeedFilter.COMMENTS_AND_VOTES, FeedFilter.VOTES)

    @property
    def includes_comments(self) -> bool:
        return self in (FeedFilter.COMMENTS_AND_VOTES, FeedFilter.COMMENTS)


class FromFilter(str, Enum):
    """Whose activity the feed lists: everyone, a voting-power tier, or the group author."""

    ALL = "all"
    FIFTY_THOUSAND = "50k"
    FIVE_HUNDRED_THOUSAND = "500k"
    FIVE_MILLION = "5m"
    AUTHOR = "author"


def tier_threshold(from_filter: FromFilter, config: EngineConfig) -> Optional[float]:
    """Voting power an item must strictly exceed, or None if the filter isn't a tier."""
    if from_filter in (FromFilter.ALL, FromFilter.AUTHOR):
        return None
    return config.voting_power_tiers[from_filter.value]


def passes_voting_power(
    voting_power: float,
    from_filter: FromFilter,
    config: EngineConfig,
) -> bool:
    threshold = tier_threshold(from_filter, config)
    return threshold is None or voting_power > threshold


def filter_votes(
    votes: Sequence[T],
    from_filter: FromFilter,
    author: Optional[GroupAuthor],
    config: EngineConfig,
) -> list:
    """Apply the from-filter to raw or processed votes (anything with voter_address/voting_power)."""
    if from_filter == FromFilter.ALL:
        return list(votes)
    if from_filter == FromFilter.AUTHOR:
        addresses = set(author.voter_addresses) if author else set()
        return [vote for vote in votes if vote.voter_address in addresses]
    return [vote for vote in votes if passes_voting_power(vote.voting_power, from_filter, config)]


def keep_post(
    post: DiscoursePost,
    author_voting_power: float,
    from_filter: FromFilter,
    author: Optional[GroupAuthor],
    config: EngineConfig,
) -> bool:
    """Whether a post survives the from-filter, given its writer's latest voting power."""
    if from_filter == FromFilter.ALL:
        return True
    if from_filter == FromFilter.AUTHOR:
        return author is not None and post.username in author.discourse_usernames
    return passes_voting_power(author_voting_power, from_filter, config)
