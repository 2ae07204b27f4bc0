# Governance records read from the store and the derived objects the engine builds
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, field_validator

DEFAULT_CHOICE_COLOR = "#CBD5E1"
HIDDEN_CHOICE_INDEX = -1


def _as_aware(value: datetime) -> datetime:
    # Naive timestamps from the store are UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(_as_aware)]


class FrozenModel(BaseModel):
    """Request-scoped value object; never mutated after construction."""

    model_config = {"frozen": True}


class VoteType(str, Enum):
    BASIC = "basic"
    SINGLE_CHOICE = "single-choice"
    WEIGHTED = "weighted"
    APPROVAL = "approval"
    QUADRATIC = "quadratic"
    RANKED_CHOICE = "ranked-choice"


# --------------------------------------------------
# Store records
# --------------------------------------------------

class ProposalMetadata(FrozenModel):
    """Per-proposal metadata as indexed from Snapshot or the governor contract."""

    vote_type: str = VoteType.BASIC.value  # kept as str so unknown types can fall back to basic
    quorum_choices: List[int] = Field(default_factory=list)
    hidden_vote: bool = False
    scores_state: str = "unknown"  # e.g. "final" | "pending"
    total_delegated_vp: Optional[float] = None

    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}

    @field_validator("vote_type", mode="before")
    @classmethod
    def _default_vote_type(cls, value: Any) -> str:
        if value is None or value == "":
            return VoteType.BASIC.value
        return value.value if isinstance(value, VoteType) else str(value)


class Proposal(FrozenModel):
    id: str
    external_id: str
    governor_id: str
    governor_type: str = ""  # contains "SNAPSHOT" for offchain governors
    title: str = ""
    url: str = ""
    author: Optional[str] = None
    choices: List[str] = Field(default_factory=list)
    quorum: Optional[float] = None
    start_at: Timestamp
    end_at: Timestamp
    created_at: Timestamp
    metadata: ProposalMetadata = Field(default_factory=ProposalMetadata)

    @field_validator("metadata", mode="before")
    @classmethod
    def _parse_metadata(cls, value: Any) -> Any:
        # The store hands metadata over either as JSON text or as a decoded object
        if value is None:
            return {}
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value

    @field_validator("choices", mode="before")
    @classmethod
    def _stringify_choices(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(choice) for choice in value]
        return []

    @property
    def is_offchain(self) -> bool:
        return "SNAPSHOT" in self.governor_type.upper()


RawChoice = Union[int, float, str, List[Union[int, float, str]], Dict[str, float], None]


class Vote(FrozenModel):
    """A vote exactly as stored; ``choice`` is still in the governor's raw encoding."""

    id: str
    proposal_id: str
    voter_address: str
    voting_power: float = Field(..., ge=0)
    choice: RawChoice = None
    created_at: Timestamp
    reason: Optional[str] = None


class DiscourseTopic(FrozenModel):
    id: str
    external_id: int
    dao_discourse_id: str
    title: str = ""
    created_at: Timestamp
    last_posted_at: Optional[Timestamp] = None


class DiscoursePost(FrozenModel):
    id: str
    external_id: int
    topic_id: int
    dao_discourse_id: str
    post_number: int
    user_id: int
    username: str
    created_at: Timestamp
    cooked: Optional[str] = None


class ProposalGroupItem(FrozenModel):
    type: Literal["proposal", "topic"]
    external_id: str
    governor_id: Optional[str] = None
    dao_discourse_id: Optional[str] = None


class ProposalGroup(FrozenModel):
    id: str
    dao_id: str
    name: str = ""
    items: List[ProposalGroupItem] = Field(default_factory=list)
    discourse_base_url: str = ""


class GroupAuthor(FrozenModel):
    """Addresses and forum identities of the delegate who authored a group."""

    voter_addresses: List[str] = Field(default_factory=list)
    discourse_usernames: List[str] = Field(default_factory=list)


# --------------------------------------------------
# Derived objects
# --------------------------------------------------

class VoteChoice(FrozenModel):
    choice_index: int
    weight: float = Field(..., ge=0, le=100)
    text: str
    color: str


class ProcessedVote(FrozenModel):
    """A vote with its choices decoded, weighted and decorated for display."""

    id: str
    proposal_id: str
    voter_address: str
    voting_power: float
    created_at: Timestamp
    reason: Optional[str] = None
    choice: List[VoteChoice] = Field(default_factory=list)
    aggregate: bool = False
    relative_voting_power: Optional[float] = None


class TimeSeriesPoint(FrozenModel):
    timestamp: Timestamp
    values: Dict[int, float] = Field(default_factory=dict)
    winning_threshold: Optional[float] = None  # ranked-choice snapshots only


class ProcessedResults(FrozenModel):
    proposal: Proposal
    choices: List[str]
    choice_colors: List[str]
    total_voting_power: float
    quorum: Optional[float] = None
    quorum_choices: List[int] = Field(default_factory=list)
    quorum_voting_power: Optional[float] = None
    quorum_reached: Optional[bool] = None
    vote_type: VoteType = VoteType.BASIC
    votes: Optional[List[ProcessedVote]] = None  # only with with_votes
    time_series_data: Optional[List[TimeSeriesPoint]] = None  # only with with_timeseries
    final_results: Dict[int, float] = Field(default_factory=dict)
    winning_threshold: Optional[float] = None  # ranked-choice only
    total_delegated_vp: Optional[float] = None
    hidden_vote: bool = False
    scores_state: str = "unknown"

    @property
    def is_hidden_and_not_final(self) -> bool:
        return self.hidden_vote and self.scores_state != "final"


class VoteSegment(FrozenModel):
    """One renderable slice of a choice's vote bar."""

    voting_power: float
    is_aggregated: bool = False


class DailyVoteBucket(BaseModel):
    """Votes cast on one calendar day. Mutable only while bucketing."""

    date_key: str
    total_voting_power: float = 0.0
    last_vote_time: Timestamp
    choice_voting_power: Dict[int, float] = Field(default_factory=dict)


class DailyPostBucket(BaseModel):
    date_key: str
    count: int = 0
    last_post_time: Timestamp
