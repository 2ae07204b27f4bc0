"""Timeline event types.

``FeedEvent`` is a tagged union discriminated on ``type``; every consumer
dispatches on the concrete class (or the helpers below) rather than on raw
strings.
"""
from enum import Enum
from typing import Annotated, Dict, List, Literal, Union

from pydantic import Field

from .schemas import (
    DiscoursePost,
    FrozenModel,
    ProcessedResults,
    ProcessedVote,
    Proposal,
    Timestamp,
    VoteSegment,
)


class TimelineEventType(str, Enum):
    BASIC = "basic"
    DISCUSSION = "discussion"
    ONCHAIN = "onchain"
    OFFCHAIN = "offchain"
    COMMENTS_VOLUME = "comments_volume"
    VOTES_VOLUME = "votes_volume"
    RESULT_ONGOING_BASIC_VOTE = "result_ongoing_basic_vote"
    RESULT_ONGOING_OTHER_VOTES = "result_ongoing_other_votes"
    RESULT_ENDED_BASIC_VOTE = "result_ended_basic_vote"
    RESULT_ENDED_OTHER_VOTES = "result_ended_other_votes"


class BasicEvent(FrozenModel):
    type: Literal[TimelineEventType.BASIC] = TimelineEventType.BASIC
    timestamp: Timestamp
    content: str
    url: str = ""


class DiscussionEvent(FrozenModel):
    type: Literal[TimelineEventType.DISCUSSION] = TimelineEventType.DISCUSSION
    timestamp: Timestamp
    content: str
    url: str = ""


class OnchainEvent(FrozenModel):
    type: Literal[TimelineEventType.ONCHAIN] = TimelineEventType.ONCHAIN
    timestamp: Timestamp
    content: str
    url: str = ""


class OffchainEvent(FrozenModel):
    type: Literal[TimelineEventType.OFFCHAIN] = TimelineEventType.OFFCHAIN
    timestamp: Timestamp
    content: str
    url: str = ""


class CommentsVolumeEvent(FrozenModel):
    type: Literal[TimelineEventType.COMMENTS_VOLUME] = TimelineEventType.COMMENTS_VOLUME
    timestamp: Timestamp
    volume: float
    max_volume: float
    volume_type: Literal["comments"] = "comments"


class VotesVolumeMetadata(FrozenModel):
    voting_power: float = 0.0


class VotesVolumeEvent(FrozenModel):
    type: Literal[TimelineEventType.VOTES_VOLUME] = TimelineEventType.VOTES_VOLUME
    timestamp: Timestamp
    volumes: List[float]
    colors: List[str]
    max_volume: float
    volume_type: Literal["votes"] = "votes"
    metadata: VotesVolumeMetadata = Field(default_factory=VotesVolumeMetadata)


class _ResultEventBase(FrozenModel):
    timestamp: Timestamp
    content: str
    result: ProcessedResults
    vote_segments: Dict[str, List[VoteSegment]] = Field(default_factory=dict)
    proposal: Proposal
    live: bool


class ResultOngoingBasicEvent(_ResultEventBase):
    type: Literal[TimelineEventType.RESULT_ONGOING_BASIC_VOTE] = TimelineEventType.RESULT_ONGOING_BASIC_VOTE


class ResultOngoingOtherEvent(_ResultEventBase):
    type: Literal[TimelineEventType.RESULT_ONGOING_OTHER_VOTES] = TimelineEventType.RESULT_ONGOING_OTHER_VOTES


class ResultEndedBasicEvent(_ResultEventBase):
    type: Literal[TimelineEventType.RESULT_ENDED_BASIC_VOTE] = TimelineEventType.RESULT_ENDED_BASIC_VOTE


class ResultEndedOtherEvent(_ResultEventBase):
    type: Literal[TimelineEventType.RESULT_ENDED_OTHER_VOTES] = TimelineEventType.RESULT_ENDED_OTHER_VOTES


FeedEvent = Annotated[
    Union[
        BasicEvent,
        DiscussionEvent,
        OnchainEvent,
        OffchainEvent,
        CommentsVolumeEvent,
        VotesVolumeEvent,
        ResultOngoingBasicEvent,
        ResultOngoingOtherEvent,
        ResultEndedBasicEvent,
        ResultEndedOtherEvent,
    ],
    Field(discriminator="type"),
]

VOLUME_EVENT_TYPES = (CommentsVolumeEvent, VotesVolumeEvent)
RESULT_EVENT_TYPES = (
    ResultOngoingBasicEvent,
    ResultOngoingOtherEvent,
    ResultEndedBasicEvent,
    ResultEndedOtherEvent,
)


def is_volume_event(event: FeedEvent) -> bool:
    return isinstance(event, VOLUME_EVENT_TYPES)


def is_result_event(event: FeedEvent) -> bool:
    return isinstance(event, RESULT_EVENT_TYPES)


class FeedResult(FrozenModel):
    """Everything the feed view needs for one proposal group."""

    votes: List[ProcessedVote] = Field(default_factory=list)
    posts: List[DiscoursePost] = Field(default_factory=list)
    events: List[FeedEvent] = Field(default_factory=list)
