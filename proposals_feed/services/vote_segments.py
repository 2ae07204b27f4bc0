"""Vote bar segments for the feed.

A choice's bar shows every vote worth at least ``min_visible_width_percent``
of the total voting power as its own slice, largest first, and folds all
smaller votes into one trailing "long tail" slice. However many addresses
voted, a bar therefore has at most ``100 / min_visible_width_percent + 1``
slices.
"""
import math
from typing import Dict, List, Optional, Sequence

from proposals_feed.config.engine_config import EngineConfig, resolve_config
from proposals_feed.data_models.schemas import HIDDEN_CHOICE_INDEX, ProcessedResults, ProcessedVote, VoteSegment
from proposals_feed.services.results_processing import proportional_power
from proposals_feed.utils.logger import logger


def _empty_segments(choices: Sequence[str]) -> Dict[str, List[VoteSegment]]:
    return {str(index): [] for index in range(len(choices))}


def bucket_vote_segments(
    total_voting_power: float,
    choices: Sequence[str],
    votes: Optional[Sequence[ProcessedVote]],
    *,
    config: Optional[EngineConfig] = None,
) -> Dict[str, List[VoteSegment]]:
    """Split each choice's voting power into visible segments plus one aggregated tail.

    Returns one entry per choice index (as a string), including choices
    nobody voted for. Votes keep their order within equal voting power.
    """
    if not total_voting_power or not math.isfinite(total_voting_power) or total_voting_power <= 0:
        return _empty_segments(choices)

    min_visible = resolve_config(config).min_visible_width_percent
    segments = _empty_segments(choices)
    long_tail = {index: 0.0 for index in range(len(choices))}

    # sorted() is stable, so equal voting power keeps input order
    ordered = sorted(votes or [], key=lambda vote: vote.voting_power, reverse=True)

    for vote in ordered:
        for item in vote.choice:
            choice_index = item.choice_index
            if not 0 <= choice_index < len(choices):
                logger.warning(
                    f"[calculate_vote_segments] Invalid choice index: {choice_index} found in vote. "
                    f"Skipping this choice portion."
                )
                continue

            power = proportional_power(vote.voting_power or 0.0, item.weight or 0.0)
            if power <= 0:
                continue

            percentage = power / total_voting_power * 100
            if percentage >= min_visible:
                segments[str(choice_index)].append(VoteSegment(voting_power=power))
            else:
                long_tail[choice_index] += power

    for choice_index, power in long_tail.items():
        if power > 0:
            segments[str(choice_index)].append(VoteSegment(voting_power=power, is_aggregated=True))

    return segments


def calculate_vote_segments(
    results: ProcessedResults,
    *,
    config: Optional[EngineConfig] = None,
) -> Dict[str, List[VoteSegment]]:
    """Segments for a processed result.

    Shielded results that are not final have no per-choice split to show, so
    all of their power goes into a single lane keyed ``"-1"``.
    """
    if not results.is_hidden_and_not_final:
        return bucket_vote_segments(results.total_voting_power, results.choices, results.votes, config=config)

    # Every hidden vote carries the hidden choice at full weight; bucket them as one lane
    hidden_votes = [
        vote.model_copy(update={"choice": [item.model_copy(update={"choice_index": 0}) for item in vote.choice[:1]]})
        for vote in results.votes or []
    ]
    lane = bucket_vote_segments(results.total_voting_power, ["hidden"], hidden_votes, config=config)
    return {str(HIDDEN_CHOICE_INDEX): lane["0"]}
