"""
Timeline assembly for a proposal group.

Fans out one task per linked proposal and topic, joins them, and merges their
event fragments into a single timeline sorted newest first. A linked item that
fails to load is logged and left out; the rest of the group still renders.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple, Union

from proposals_feed.config.engine_config import EngineConfig, resolve_config
from proposals_feed.data_models.schemas import (
    DEFAULT_CHOICE_COLOR,
    DiscoursePost,
    DiscourseTopic,
    GroupAuthor,
    ProcessedResults,
    ProcessedVote,
    Proposal,
    ProposalGroup,
    ProposalGroupItem,
)
from proposals_feed.data_models.timeline_events import (
    BasicEvent,
    CommentsVolumeEvent,
    DiscussionEvent,
    FeedEvent,
    FeedResult,
    OffchainEvent,
    OnchainEvent,
    ResultEndedBasicEvent,
    ResultEndedOtherEvent,
    ResultOngoingBasicEvent,
    ResultOngoingOtherEvent,
    VotesVolumeEvent,
    VotesVolumeMetadata,
    is_result_event,
    is_volume_event,
)
from proposals_feed.exceptions import NotFoundError, PartialFetchFailure
from proposals_feed.services.daily_volume import bucket_daily_posts, bucket_daily_votes, max_volume
from proposals_feed.services.data_source import FeedDataSource
from proposals_feed.services.feed_cache import FeedCache
from proposals_feed.services.feed_filters import FeedFilter, FromFilter, filter_votes, keep_post
from proposals_feed.services.governance_rules import GovernanceRules
from proposals_feed.services.results_processing import process_results
from proposals_feed.services.vote_normalizer import latest_vote_per_voter
from proposals_feed.services.vote_segments import calculate_vote_segments
from proposals_feed.utils.logger import logger
from proposals_feed.utils.time_format import format_relative, format_short_date
from proposals_feed.utils.validators import validate_group_id, validate_topic_external_id


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _ProposalFragment:
    proposal: Proposal
    events: List[FeedEvent] = field(default_factory=list)
    feed_votes: List[ProcessedVote] = field(default_factory=list)
    vote_count: int = 0


def summary_content(post_count: int, vote_count: int) -> str:
    """Prose for the summary header of a group's timeline."""
    if post_count > 0 and vote_count > 0:
        return f"{post_count} comments and {vote_count} votes"
    if post_count > 0:
        return f"{post_count} comments"
    if vote_count > 0:
        return f"{vote_count} votes"
    return "No activity"


def feed_cache_key(group_id: str, feed_filter: FeedFilter, from_filter: FromFilter, results_only: bool) -> str:
    return f"feed:{group_id}:{feed_filter.value}:{from_filter.value}:{str(results_only).lower()}"


class TimelineAssembler:
    """Builds the feed of one proposal group.

    Args:
        data_source: where groups, proposals, votes, topics and posts come from.
        rules: quorum policy passed to results processing.
        cache: optional ``FeedCache``; it receives ``FeedResult`` objects, so a
            redis-backed cache should be built with ``serialize=lambda r: r.model_dump_json()``
            and ``deserialize=FeedResult.model_validate_json``.
        config: engine thresholds; defaults to the environment.
        clock: returns the current instant; defaults to UTC now.
    """

    def __init__(
        self,
        data_source: FeedDataSource,
        *,
        rules: Optional[GovernanceRules] = None,
        cache: Optional[FeedCache] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.data_source = data_source
        self.rules = rules
        self.cache = cache
        self.config = resolve_config(config)
        self._clock = clock or _utc_now

    async def get_feed(
        self,
        group_id: str,
        feed_filter: Union[FeedFilter, str] = FeedFilter.COMMENTS_AND_VOTES,
        from_filter: Union[FromFilter, str] = FromFilter.ALL,
        results_only: bool = False,
    ) -> FeedResult:
        """Assemble the timeline, the listed votes and the listed posts of a group."""
        validate_group_id(group_id)
        feed_filter = FeedFilter(feed_filter)
        from_filter = FromFilter(from_filter)

        cache_key = feed_cache_key(group_id, feed_filter, from_filter, results_only)
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached

        result = await self._assemble(group_id, feed_filter, from_filter, results_only)

        if self.cache is not None:
            await self.cache.set(cache_key, result, ttl_minutes=self.config.cache_ttl_minutes)
        return result

    async def _assemble(
        self,
        group_id: str,
        feed_filter: FeedFilter,
        from_filter: FromFilter,
        results_only: bool,
    ) -> FeedResult:
        try:
            group = await self.data_source.get_group(group_id)
        except NotFoundError:
            group = None
        if group is None:
            logger.info(f"Proposal group {group_id} not found, returning empty feed")
            return FeedResult()

        proposal_items = [item for item in group.items if item.type == "proposal"]
        topic_items = [item for item in group.items if item.type == "topic"]
        for item in topic_items:
            validate_topic_external_id(item.external_id)

        author: Optional[GroupAuthor] = None
        if from_filter == FromFilter.AUTHOR:
            author = await self.data_source.get_group_author(group)

        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        logger.info(
            f"Assembling feed for group {group_id}: {len(proposal_items)} proposals, "
            f"{len(topic_items)} topics, feed={feed_filter.value}, from={from_filter.value}"
        )

        outcomes = await asyncio.gather(
            *[self._proposal_fragment(item, feed_filter, from_filter, author, now) for item in proposal_items],
            *[self.data_source.get_topic(item) for item in topic_items],
            return_exceptions=True,
        )
        fragments: List[_ProposalFragment] = _successful(outcomes[:len(proposal_items)], proposal_items)
        topics: List[DiscourseTopic] = _successful(outcomes[len(proposal_items):], topic_items)

        events: List[FeedEvent] = []
        feed_votes: List[ProcessedVote] = []
        for fragment in fragments:
            events.extend(fragment.events)
            feed_votes.extend(fragment.feed_votes)

        events.extend(self._discussion_event(group, topic) for topic in topics)

        all_posts, feed_posts = await self._posts(topics, feed_filter, from_filter, author)
        events.extend(self._comments_volume_events(feed_posts))

        events.sort(key=lambda event: event.timestamp, reverse=True)

        if events and is_volume_event(events[0]):
            vote_count = sum(fragment.vote_count for fragment in fragments)
            events.insert(0, BasicEvent(timestamp=now, content=summary_content(len(all_posts), vote_count)))

        if results_only:
            return FeedResult(events=[event for event in events if is_result_event(event)])

        return FeedResult(votes=feed_votes, posts=feed_posts, events=events)

    # --------------------------------------------------
    # Proposals
    # --------------------------------------------------

    async def _proposal_fragment(
        self,
        item: ProposalGroupItem,
        feed_filter: FeedFilter,
        from_filter: FromFilter,
        author: Optional[GroupAuthor],
        now: datetime,
    ) -> _ProposalFragment:
        proposal = await self.data_source.get_proposal(item)
        votes = latest_vote_per_voter(await self.data_source.get_votes(proposal))
        fragment = _ProposalFragment(proposal=proposal, vote_count=len(votes))

        filtered = self._process(proposal, filter_votes(votes, from_filter, author, self.config))
        fragment.events.extend(self._votes_volume_events(filtered))
        fragment.events.append(self._start_event(proposal, now))

        if now >= proposal.start_at:
            results = self._process(proposal, votes)
            fragment.events.append(self._result_event(results, now))
            if feed_filter.includes_votes:
                fragment.feed_votes = filter_votes(results.votes or [], from_filter, author, self.config)

        return fragment

    def _process(self, proposal: Proposal, votes) -> ProcessedResults:
        return process_results(
            proposal,
            votes,
            with_votes=True,
            with_timeseries=False,
            aggregated_votes=True,
            rules=self.rules,
            config=self.config,
        )

    def _votes_volume_events(self, results: ProcessedResults) -> List[VotesVolumeEvent]:
        buckets = list(bucket_daily_votes(results.votes or [], config=self.config).values())
        top = max_volume(bucket.total_voting_power for bucket in buckets)
        hidden = results.is_hidden_and_not_final

        events = []
        for bucket in buckets:
            if hidden:
                volumes = [bucket.total_voting_power]
                colors = [DEFAULT_CHOICE_COLOR]
            else:
                volumes = [0.0] * len(results.choices)
                for index, power in bucket.choice_voting_power.items():
                    if 0 <= index < len(volumes):
                        volumes[index] = power
                colors = list(results.choice_colors)

            events.append(
                VotesVolumeEvent(
                    timestamp=bucket.last_vote_time,
                    volumes=volumes,
                    colors=colors,
                    max_volume=top,
                    metadata=VotesVolumeMetadata(voting_power=bucket.total_voting_power),
                )
            )
        return events

    def _start_event(self, proposal: Proposal, now: datetime) -> Union[OnchainEvent, OffchainEvent]:
        kind = "Offchain" if proposal.is_offchain else "Onchain"
        verb = "started" if now > proposal.start_at else "starts"
        content = f"{kind} vote {verb} on {format_short_date(proposal.start_at, self.config.tzinfo())}"
        event_class = OffchainEvent if proposal.is_offchain else OnchainEvent
        return event_class(timestamp=proposal.start_at, content=content, url=proposal.url)

    def _result_event(self, results: ProcessedResults, now: datetime) -> FeedEvent:
        proposal = results.proposal
        kind = "Offchain" if proposal.is_offchain else "Onchain"
        ended = now > proposal.end_at
        basic = proposal.metadata.vote_type == "basic"

        if ended:
            content = f"{kind} vote ended {format_relative(proposal.end_at, now)}"
            event_class = ResultEndedBasicEvent if basic else ResultEndedOtherEvent
        else:
            content = f"{kind} vote ends {format_relative(proposal.end_at, now)}"
            event_class = ResultOngoingBasicEvent if basic else ResultOngoingOtherEvent

        return event_class(
            timestamp=proposal.end_at,
            content=content,
            result=results,
            vote_segments=calculate_vote_segments(results, config=self.config),
            proposal=proposal,
            live=not ended,
        )

    # --------------------------------------------------
    # Topics and posts
    # --------------------------------------------------

    def _discussion_event(self, group: ProposalGroup, topic: DiscourseTopic) -> DiscussionEvent:
        base_url = group.discourse_base_url.rstrip("/")
        return DiscussionEvent(
            timestamp=topic.created_at,
            content=f"Proposal initially posted on {format_short_date(topic.created_at, self.config.tzinfo())}",
            url=f"{base_url}/t/{topic.external_id}",
        )

    async def _posts(
        self,
        topics: Sequence[DiscourseTopic],
        feed_filter: FeedFilter,
        from_filter: FromFilter,
        author: Optional[GroupAuthor],
    ) -> Tuple[List[DiscoursePost], List[DiscoursePost]]:
        """All replies of the topics, and the ones the feed lists."""
        if not topics:
            return [], []

        try:
            posts = await self.data_source.get_posts(topics)
        except Exception as e:
            failure = PartialFetchFailure(item=[t.external_id for t in topics], cause=e)
            logger.error(failure.message, exc_info=True)
            return [], []

        replies = [post for post in posts if post.post_number != 1]
        if not feed_filter.includes_comments:
            return replies, []

        powers = await self._author_voting_powers(replies, from_filter)
        listed = [
            post
            for post, power in zip(replies, powers)
            if keep_post(post, power, from_filter, author, self.config)
        ]
        return replies, listed

    async def _author_voting_powers(self, posts: Sequence[DiscoursePost], from_filter: FromFilter) -> List[float]:
        if from_filter in (FromFilter.ALL, FromFilter.AUTHOR):
            return [0.0] * len(posts)

        outcomes = await asyncio.gather(
            *[self.data_source.get_author_voting_power(post) for post in posts],
            return_exceptions=True,
        )
        powers = []
        for post, outcome in zip(posts, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Could not resolve voting power of {post.username}: {outcome}")
                powers.append(0.0)
            else:
                powers.append(float(outcome or 0.0))
        return powers

    def _comments_volume_events(self, posts: Sequence[DiscoursePost]) -> List[CommentsVolumeEvent]:
        buckets = list(bucket_daily_posts(posts, config=self.config).values())
        top = max_volume(bucket.count for bucket in buckets)
        return [
            CommentsVolumeEvent(timestamp=bucket.last_post_time, volume=bucket.count, max_volume=top)
            for bucket in buckets
        ]


def _successful(outcomes: Sequence, items: Sequence[ProposalGroupItem]) -> list:
    """Drop failed fan-out tasks, logging each as a partial fetch failure."""
    kept = []
    for item, outcome in zip(items, outcomes):
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, Exception):
            failure = PartialFetchFailure(item=item.external_id, cause=outcome)
            logger.error(failure.message, exc_info=(type(outcome), outcome, outcome.__traceback__))
            continue
        kept.append(outcome)
    return kept
