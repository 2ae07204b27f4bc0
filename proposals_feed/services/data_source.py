"""Data-fetch collaborator used by the timeline assembler.

The engine never talks to a database itself. A ``FeedDataSource`` resolves
groups, proposals, votes, topics, posts and delegate voting power; the
application plugs in its store-backed implementation.
``InMemoryFeedDataSource`` serves records already held in memory.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

from proposals_feed.data_models.schemas import (
    DiscoursePost,
    DiscourseTopic,
    GroupAuthor,
    Proposal,
    ProposalGroup,
    ProposalGroupItem,
    Vote,
)
from proposals_feed.exceptions import GroupNotFoundError, NotFoundError
from proposals_feed.utils.validators import validate_topic_external_id


class FeedDataSource(ABC):
    """Async access to the governance records of one DAO."""

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[ProposalGroup]:
        """The proposal group; raises GroupNotFoundError (or returns None) if it doesn't exist."""

    @abstractmethod
    async def get_group_author(self, group: ProposalGroup) -> Optional[GroupAuthor]:
        """Delegate identities of whoever created the group's earliest item."""

    @abstractmethod
    async def get_proposal(self, item: ProposalGroupItem) -> Proposal:
        """Raises NotFoundError when the linked proposal is missing."""

    @abstractmethod
    async def get_votes(self, proposal: Proposal) -> List[Vote]:
        """Every stored vote of the proposal, recasts included."""

    @abstractmethod
    async def get_topic(self, item: ProposalGroupItem) -> DiscourseTopic:
        """Raises NotFoundError when the linked topic is missing."""

    @abstractmethod
    async def get_posts(self, topics: Sequence[DiscourseTopic]) -> List[DiscoursePost]:
        """All posts of the given topics, opening posts included."""

    @abstractmethod
    async def get_author_voting_power(self, post: DiscoursePost) -> float:
        """Latest voting power of the delegate behind a post's writer (0 if unmapped)."""


class InMemoryFeedDataSource(FeedDataSource):
    """Serves pre-loaded records; lookups mirror the store's keys."""

    def __init__(
        self,
        groups: Iterable[ProposalGroup] = (),
        proposals: Iterable[Proposal] = (),
        votes: Iterable[Vote] = (),
        topics: Iterable[DiscourseTopic] = (),
        posts: Iterable[DiscoursePost] = (),
        authors: Optional[Dict[str, GroupAuthor]] = None,
        voting_power_by_username: Optional[Dict[str, float]] = None,
    ):
        self._groups = {group.id: group for group in groups}
        self._proposals = {(p.external_id, p.governor_id): p for p in proposals}
        self._votes: Dict[str, List[Vote]] = {}
        for vote in votes:
            self._votes.setdefault(vote.proposal_id, []).append(vote)
        self._topics = {(t.external_id, t.dao_discourse_id): t for t in topics}
        self._posts = list(posts)
        self._authors = authors or {}
        self._voting_power = voting_power_by_username or {}

    async def get_group(self, group_id: str) -> Optional[ProposalGroup]:
        group = self._groups.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def get_group_author(self, group: ProposalGroup) -> Optional[GroupAuthor]:
        return self._authors.get(group.id)

    async def get_proposal(self, item: ProposalGroupItem) -> Proposal:
        proposal = self._proposals.get((item.external_id, item.governor_id))
        if proposal is None:
            raise NotFoundError(f"Proposal {item.external_id} on governor {item.governor_id} not found")
        return proposal

    async def get_votes(self, proposal: Proposal) -> List[Vote]:
        return list(self._votes.get(proposal.id, []))

    async def get_topic(self, item: ProposalGroupItem) -> DiscourseTopic:
        key = (validate_topic_external_id(item.external_id), item.dao_discourse_id)
        topic = self._topics.get(key)
        if topic is None:
            raise NotFoundError(f"Topic {item.external_id} on discourse {item.dao_discourse_id} not found")
        return topic

    async def get_posts(self, topics: Sequence[DiscourseTopic]) -> List[DiscoursePost]:
        keys = {(t.external_id, t.dao_discourse_id) for t in topics}
        posts = [p for p in self._posts if (p.topic_id, p.dao_discourse_id) in keys]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    async def get_author_voting_power(self, post: DiscoursePost) -> float:
        return self._voting_power.get(post.username, 0.0)
