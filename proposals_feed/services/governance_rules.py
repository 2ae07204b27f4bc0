"""Governance rules collaborator.

Which choices count toward quorum and how much voting power was delegated
when a proposal started are decided per governor type outside this engine.
The results aggregator only asks a ``GovernanceRules`` implementation.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from proposals_feed.data_models.schemas import Proposal


class GovernanceRules(ABC):
    """Per-governor quorum policy consumed by the results aggregator."""

    @abstractmethod
    def quorum_choices(self, proposal: Proposal) -> List[int]:
        """Choice indices whose voting power counts toward quorum."""

    @abstractmethod
    def total_delegated_vp(self, proposal: Proposal) -> Optional[float]:
        """DAO-wide delegated voting power at or before ``proposal.start_at``."""


class MetadataGovernanceRules(GovernanceRules):
    """Reads both values from what the indexer stored on the proposal."""

    def quorum_choices(self, proposal: Proposal) -> List[int]:
        return list(proposal.metadata.quorum_choices)

    def total_delegated_vp(self, proposal: Proposal) -> Optional[float]:
        return proposal.metadata.total_delegated_vp


class StaticGovernanceRules(GovernanceRules):
    """Quorum choices configured per governor id, with delegated VP supplied up front.

    Governors without an entry fall back to the proposal metadata.
    """

    def __init__(
        self,
        quorum_choices_by_governor: Dict[str, List[int]],
        delegated_vp_by_proposal: Optional[Dict[str, float]] = None,
    ):
        self._quorum_choices = quorum_choices_by_governor
        self._delegated_vp = delegated_vp_by_proposal or {}
        self._fallback = MetadataGovernanceRules()

    def quorum_choices(self, proposal: Proposal) -> List[int]:
        if proposal.governor_id in self._quorum_choices:
            return list(self._quorum_choices[proposal.governor_id])
        return self._fallback.quorum_choices(proposal)

    def total_delegated_vp(self, proposal: Proposal) -> Optional[float]:
        if proposal.id in self._delegated_vp:
            return self._delegated_vp[proposal.id]
        return self._fallback.total_delegated_vp(proposal)
