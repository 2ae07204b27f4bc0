"""Results aggregation for a single proposal.

Turns the deduplicated raw votes of a proposal into per-choice tallies,
quorum figures, an optional time series and the decorated vote list shown in
the feed. Each vote type decodes its raw ``choice`` differently:

- basic / single-choice: the raw value is a 0-based choice index
- weighted: ``{"<1-based index>": weight}``, normalised to percentages
- approval: list of 1-based indices, each carrying the full voting power
- ranked-choice: list of 1-based ranks, tallied with instant-runoff voting
- quadratic: a single 1-based choice, tallied as ``sqrt(voting_power)``

Hidden (shielded) votes that are not final never expose a per-choice split,
whatever the caller asks for.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from proposals_feed.config.engine_config import EngineConfig, resolve_config
from proposals_feed.data_models.schemas import (
    DEFAULT_CHOICE_COLOR,
    HIDDEN_CHOICE_INDEX,
    ProcessedResults,
    ProcessedVote,
    Proposal,
    TimeSeriesPoint,
    Vote,
    VoteChoice,
    VoteType,
)
from proposals_feed.services.choice_colors import colors_for_choices
from proposals_feed.services.governance_rules import GovernanceRules, MetadataGovernanceRules
from proposals_feed.utils.logger import logger

UNKNOWN_CHOICE_TEXT = "Unknown Choice"
HIDDEN_CHOICE_TEXT = "Hidden"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def proportional_power(voting_power: float, weight: float) -> float:
    """Share of a vote's power that goes to one choice (``weight`` is a percentage)."""
    power = voting_power * weight / 100
    if not math.isfinite(power):
        logger.warning(
            f"[proportional_power] Non-finite contribution from voting power {voting_power} "
            f"and weight {weight}; counting it as 0"
        )
        return 0.0
    return power


@dataclass
class _Tally:
    """What a vote-type processor hands back to ``process_results``."""

    processed_votes: List[ProcessedVote]
    final_results: Dict[int, float]
    total_voting_power: float
    series: List[TimeSeriesPoint] = field(default_factory=list)
    cumulative_series: bool = True
    winning_threshold: Optional[float] = None


# --------------------------------------------------
# Choice decoding helpers
# --------------------------------------------------

def _one_based_index(raw: Any) -> int:
    """Decode a 1-based choice reference into a 0-based index (-1 if unusable)."""
    if isinstance(raw, bool):
        return -1
    if isinstance(raw, int):
        return raw - 1
    if isinstance(raw, float) and raw.is_integer():
        return int(raw) - 1
    if isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        if match:
            return int(match.group(1)) - 1
    return -1


def _as_list(raw: Any) -> List[Any]:
    if isinstance(raw, list):
        return raw
    if raw is None:
        return []
    return [raw]


def _choice(index: int, weight: float, choices: List[str], colors: List[str]) -> VoteChoice:
    in_range = 0 <= index < len(choices)
    return VoteChoice(
        choice_index=index,
        weight=weight,
        text=choices[index] if in_range else UNKNOWN_CHOICE_TEXT,
        color=colors[index] if in_range else DEFAULT_CHOICE_COLOR,
    )


def _processed(vote: Vote, choice: List[VoteChoice]) -> ProcessedVote:
    return ProcessedVote(
        id=vote.id,
        proposal_id=vote.proposal_id,
        voter_address=vote.voter_address,
        voting_power=vote.voting_power,
        created_at=vote.created_at,
        reason=vote.reason,
        choice=choice,
    )


def _chronological(votes: Sequence[ProcessedVote]) -> List[ProcessedVote]:
    return sorted(votes, key=lambda v: v.created_at)


def _empty_results(choices: List[str]) -> Dict[int, float]:
    return {index: 0.0 for index in range(len(choices))}


def _tally_proportional(votes: Sequence[ProcessedVote], choices: List[str]) -> Dict[int, float]:
    final_results = _empty_results(choices)
    for vote in votes:
        for item in vote.choice:
            if 0 <= item.choice_index < len(choices):
                final_results[item.choice_index] += proportional_power(vote.voting_power, item.weight)
    return final_results


def _total_power(votes: Sequence[ProcessedVote]) -> float:
    return sum(vote.voting_power for vote in votes)


# --------------------------------------------------
# Time series accumulation
# --------------------------------------------------

def _accumulated_series(
    parts: Sequence[Tuple[datetime, int, float]],
    num_choices: int,
    threshold: float,
) -> List[TimeSeriesPoint]:
    """Per-choice increments: big parts get their own point, small ones are pooled.

    ``parts`` are ``(timestamp, choice_index, power)`` in chronological order.
    A pool is flushed as soon as it reaches ``threshold``; leftovers are
    reported together at the timestamp of the last pooled part.
    """
    series: List[TimeSeriesPoint] = []
    pooled = {index: 0.0 for index in range(num_choices)}
    last_pooled_at: Optional[datetime] = None

    for timestamp, choice_index, power in parts:
        if not 0 <= choice_index < num_choices:
            continue
        if power >= threshold:
            series.append(TimeSeriesPoint(timestamp=timestamp, values={choice_index: power}))
            continue
        pooled[choice_index] += power
        last_pooled_at = timestamp
        if pooled[choice_index] >= threshold:
            series.append(TimeSeriesPoint(timestamp=timestamp, values={choice_index: pooled[choice_index]}))
            pooled[choice_index] = 0.0

    if last_pooled_at is not None:
        remaining = {index: power for index, power in pooled.items() if power > 0}
        if remaining:
            series.append(TimeSeriesPoint(timestamp=last_pooled_at, values=remaining))

    return series


def _proportional_parts(votes: Sequence[ProcessedVote]) -> List[Tuple[datetime, int, float]]:
    return [
        (vote.created_at, item.choice_index, proportional_power(vote.voting_power, item.weight))
        for vote in _chronological(votes)
        for item in vote.choice
    ]


# --------------------------------------------------
# Vote type processors
# --------------------------------------------------

def _process_basic(
    votes: Sequence[Vote], choices: List[str], colors: List[str], with_timeseries: bool, threshold: float
) -> _Tally:
    processed: List[ProcessedVote] = []
    for vote in votes:
        raw = vote.choice
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        index = raw if isinstance(raw, int) and not isinstance(raw, bool) else 0
        if not 0 <= index < len(choices):
            logger.warning(
                f"[process_results] Invalid choice index: {index} in basic vote {vote.id}. Skipping its tally."
            )
        processed.append(_processed(vote, [_choice(index, 100, choices, colors)]))

    series = _accumulated_series(_proportional_parts(processed), len(choices), threshold) if with_timeseries else []
    return _Tally(
        processed_votes=processed,
        final_results=_tally_proportional(processed, choices),
        total_voting_power=_total_power(processed),
        series=series,
    )


def _process_weighted(
    votes: Sequence[Vote], choices: List[str], colors: List[str], with_timeseries: bool, threshold: float
) -> _Tally:
    processed: List[ProcessedVote] = []
    for vote in votes:
        raw = vote.choice
        if isinstance(raw, dict):
            weights: Dict[str, float] = {}
            for key, weight in raw.items():
                if not math.isfinite(weight):
                    logger.warning(
                        f"[process_results] Non-finite weight {weight} for choice {key} in weighted vote "
                        f"{vote.id}. Skipping it."
                    )
                    continue
                weights[key] = max(float(weight), 0.0)
            total_weight = sum(weights.values())
            vote_choices = [
                _choice(
                    _one_based_index(key),
                    min((weight / total_weight) * 100, 100.0) if total_weight > 0 else 0.0,
                    choices,
                    colors,
                )
                for key, weight in weights.items()
            ]
        else:
            # A bare index means all of the weight went to one choice
            vote_choices = [_choice(_one_based_index(raw), 100, choices, colors)]
        processed.append(_processed(vote, vote_choices))

    series = _accumulated_series(_proportional_parts(processed), len(choices), threshold) if with_timeseries else []
    return _Tally(
        processed_votes=processed,
        final_results=_tally_proportional(processed, choices),
        total_voting_power=_total_power(processed),
        series=series,
    )


def _process_approval(
    votes: Sequence[Vote], choices: List[str], colors: List[str], with_timeseries: bool, threshold: float
) -> _Tally:
    processed: List[ProcessedVote] = []
    for vote in votes:
        approved = [
            _choice(index, 100, choices, colors)
            for index in (_one_based_index(raw) for raw in _as_list(vote.choice))
            if 0 <= index < len(choices)
        ]
        if approved:
            processed.append(_processed(vote, approved))

    series = _accumulated_series(_proportional_parts(processed), len(choices), threshold) if with_timeseries else []
    return _Tally(
        processed_votes=processed,
        final_results=_tally_proportional(processed, choices),
        total_voting_power=_total_power(processed),
        series=series,
    )


def _process_quadratic(
    votes: Sequence[Vote], choices: List[str], colors: List[str], with_timeseries: bool, threshold: float
) -> _Tally:
    processed: List[ProcessedVote] = []
    for vote in votes:
        raw = vote.choice
        index = -1
        if isinstance(raw, dict):
            keys = list(raw.keys())
            if len(keys) == 1:
                index = _one_based_index(keys[0])
        else:
            index = _one_based_index(raw)
        if not 0 <= index < len(choices):
            index = -1
        processed.append(_processed(vote, [_choice(index, 100, choices, colors)]))

    valid = [vote for vote in processed if vote.choice[0].choice_index >= 0]

    final_results = _empty_results(choices)
    for vote in valid:
        final_results[vote.choice[0].choice_index] += math.sqrt(vote.voting_power)

    series: List[TimeSeriesPoint] = []
    if with_timeseries:
        parts = [
            (vote.created_at, vote.choice[0].choice_index, math.sqrt(vote.voting_power))
            for vote in _chronological(valid)
        ]
        series = _accumulated_series(parts, len(choices), math.sqrt(threshold))

    return _Tally(
        processed_votes=processed,
        final_results=final_results,
        total_voting_power=_total_power(processed),
        series=series,
    )


@dataclass
class RunoffOutcome:
    winner: Optional[int]
    round_counts: Dict[int, float]
    eliminated: Set[int]


def instant_runoff(votes: Sequence[ProcessedVote], num_choices: int) -> RunoffOutcome:
    """Instant-runoff tally; ``round_counts`` are the counts of the last round computed.

    Each round credits every vote's full power to its highest-ranked choice
    still standing. A strict majority wins; otherwise every choice tied for
    the fewest votes is eliminated. When all standing choices are tied the
    runoff stops and the first choice with the most votes is reported.
    """
    eliminated: Set[int] = set()
    round_counts: Dict[int, float] = {}
    winner: Optional[int] = None

    while winner is None:
        counts = {index: 0.0 for index in range(num_choices) if index not in eliminated}
        round_total = 0.0
        for vote in votes:
            preferred = next(
                (
                    item.choice_index
                    for item in vote.choice
                    if item.choice_index not in eliminated and 0 <= item.choice_index < num_choices
                ),
                None,
            )
            if preferred is not None:
                counts[preferred] += vote.voting_power
                round_total += vote.voting_power
        round_counts = counts

        if round_total == 0:
            break

        winner = next((index for index, count in counts.items() if count > round_total / 2), None)
        if winner is not None:
            break

        active = list(counts)
        if len(active) == 1:
            winner = active[0]
            break

        fewest = min(counts.values())
        losers = [index for index in active if counts[index] == fewest]
        if len(losers) == len(active):
            break

        eliminated.update(losers)
        remaining = [index for index in range(num_choices) if index not in eliminated]
        if len(remaining) == 1:
            winner = remaining[0]

    if winner is None and round_counts:
        best = max(round_counts.values())
        winner = next(index for index, count in round_counts.items() if count == best)

    return RunoffOutcome(winner=winner, round_counts=round_counts, eliminated=eliminated)


def _process_ranked_choice(
    votes: Sequence[Vote], choices: List[str], colors: List[str], with_timeseries: bool, threshold: float
) -> _Tally:
    num_choices = len(choices)
    processed: List[ProcessedVote] = []
    for vote in votes:
        seen: Set[int] = set()
        ranks: List[VoteChoice] = []
        for raw in _as_list(vote.choice):
            index = _one_based_index(raw)
            if 0 <= index < num_choices and index not in seen:
                seen.add(index)
                ranks.append(_choice(index, 100, choices, colors))
        if ranks:
            processed.append(_processed(vote, ranks))

    series: List[TimeSeriesPoint] = []
    if with_timeseries and processed:
        ordered = _chronological(processed)
        snapshots: Dict[datetime, TimeSeriesPoint] = {}
        pooled = 0.0
        for position, vote in enumerate(ordered, start=1):
            pooled += vote.voting_power
            if pooled >= threshold or position == len(ordered):
                outcome = instant_runoff(ordered[:position], num_choices)
                snapshots[vote.created_at] = TimeSeriesPoint(
                    timestamp=vote.created_at,
                    values=dict(outcome.round_counts),
                    winning_threshold=sum(outcome.round_counts.values()) / 2,
                )
                pooled = 0.0
        series = sorted(snapshots.values(), key=lambda point: point.timestamp)

    outcome = instant_runoff(processed, num_choices)
    final_results = {index: outcome.round_counts.get(index, 0.0) for index in range(num_choices)}

    return _Tally(
        processed_votes=processed,
        final_results=final_results,
        total_voting_power=_total_power(processed),
        series=series,
        cumulative_series=False,
        winning_threshold=sum(outcome.round_counts.values()) / 2,
    )


_PROCESSORS = {
    VoteType.BASIC: _process_basic,
    VoteType.SINGLE_CHOICE: _process_basic,
    VoteType.WEIGHTED: _process_weighted,
    VoteType.APPROVAL: _process_approval,
    VoteType.RANKED_CHOICE: _process_ranked_choice,
    VoteType.QUADRATIC: _process_quadratic,
}


# --------------------------------------------------
# Post-processing
# --------------------------------------------------

def _complete_series(
    increments: List[TimeSeriesPoint],
    num_choices: int,
    cumulative: bool,
    start_at: datetime,
    end_at: datetime,
) -> List[TimeSeriesPoint]:
    """Anchor the series at ``start_at`` and carry the last values flat to ``end_at``."""
    series: List[TimeSeriesPoint] = []
    running = {index: 0.0 for index in range(num_choices)}
    for point in increments:
        if cumulative:
            for index, power in point.values.items():
                running[index] = running.get(index, 0.0) + power
            series.append(TimeSeriesPoint(timestamp=point.timestamp, values=dict(running)))
        else:
            series.append(point)

    if not series or series[0].timestamp > start_at:
        series.insert(0, TimeSeriesPoint(timestamp=start_at, values={index: 0.0 for index in range(num_choices)}))

    last = series[-1]
    if last.timestamp < end_at:
        series.append(last.model_copy(update={"timestamp": end_at}))
    return series


def _aggregate_small_votes(
    votes: List[ProcessedVote],
    proposal_id: str,
    choices: List[str],
    colors: List[str],
    threshold: float,
    hidden: bool = False,
) -> List[ProcessedVote]:
    """Collapse runs of small votes between large ones into one vote per choice.

    With ``hidden`` the votes carry no real choice, so each run collapses
    into a single hidden vote whose id names no choice.
    """
    ordered = _chronological(votes)
    result: List[ProcessedVote] = []
    window: Dict[int, Dict[str, float]] = {}
    window_started_at: Optional[datetime] = None

    def flush(created_at: datetime, final: bool) -> None:
        label = "final-" if final else ""
        suffix = " (final)" if final else ""
        for choice_index in sorted(window):
            pooled = window[choice_index]
            if pooled["power"] <= 0:
                continue
            if hidden:
                vote_id = f"aggregated-{label}{window_started_at.isoformat()}"
                choice = [_hidden_choice()]
            else:
                vote_id = f"aggregated-{label}{window_started_at.isoformat()}-{choice_index}"
                choice = [_choice(choice_index, 100, choices, colors)]
            result.append(
                ProcessedVote(
                    id=vote_id,
                    proposal_id=proposal_id,
                    voter_address="aggregated",
                    voting_power=pooled["power"],
                    created_at=created_at,
                    reason=f"Aggregated {int(pooled['count'])} votes{suffix}",
                    choice=choice,
                    aggregate=True,
                )
            )

    for vote in ordered:
        if vote.voting_power >= threshold:
            if window and window_started_at is not None:
                flush(vote.created_at, final=False)
                window = {}
                window_started_at = None
            result.append(vote)
            continue

        if window_started_at is None:
            window_started_at = vote.created_at
        if hidden:
            pooled = window.setdefault(HIDDEN_CHOICE_INDEX, {"power": 0.0, "count": 0})
            pooled["power"] += vote.voting_power
            pooled["count"] += 1
            continue
        for item in vote.choice:
            if 0 <= item.choice_index < len(choices):
                pooled = window.setdefault(item.choice_index, {"power": 0.0, "count": 0})
                pooled["power"] += proportional_power(vote.voting_power, item.weight)
                pooled["count"] += 1

    if window and window_started_at is not None:
        flush(ordered[-1].created_at, final=True)

    return result


def _with_relative_power(votes: List[ProcessedVote], aggregated: bool) -> List[ProcessedVote]:
    reference = [vote for vote in votes if not vote.aggregate] if aggregated else votes
    max_power = max([vote.voting_power for vote in reference] + [0])
    updated: List[ProcessedVote] = []
    for vote in votes:
        relative = vote.voting_power / max_power if max_power > 0 else 0.0
        if vote.aggregate and relative > 1:
            relative = 1.0
        updated.append(vote.model_copy(update={"relative_voting_power": relative}))
    return updated


def _finite_results(final_results: Dict[int, float], proposal_id: str) -> Dict[int, float]:
    cleaned: Dict[int, float] = {}
    for index, power in final_results.items():
        if not math.isfinite(power):
            logger.warning(
                f"[process_results] Non-finite result {power} for choice {index} of proposal {proposal_id}; using 0"
            )
            power = 0.0
        cleaned[index] = power
    return cleaned


def _hidden_choice() -> VoteChoice:
    return VoteChoice(
        choice_index=HIDDEN_CHOICE_INDEX,
        weight=100,
        text=HIDDEN_CHOICE_TEXT,
        color=DEFAULT_CHOICE_COLOR,
    )


def _hide_choice(vote: ProcessedVote) -> ProcessedVote:
    return vote.model_copy(update={"choice": [_hidden_choice()]})


def _resolve_vote_type(proposal: Proposal) -> VoteType:
    raw = proposal.metadata.vote_type
    try:
        return VoteType(raw)
    except ValueError:
        logger.warning(f"Unknown vote type \"{raw}\" for proposal {proposal.id}. Defaulting to basic.")
        return VoteType.BASIC


# --------------------------------------------------
# Entry point
# --------------------------------------------------

def process_results(
    proposal: Proposal,
    votes: Sequence[Vote],
    *,
    with_votes: bool = True,
    with_timeseries: bool = True,
    aggregated_votes: bool = False,
    rules: Optional[GovernanceRules] = None,
    config: Optional[EngineConfig] = None,
) -> ProcessedResults:
    """Tally ``votes`` (already one per voter) for ``proposal``.

    Args:
        with_votes: include the decorated vote list.
        with_timeseries: include the time series from ``start_at`` to ``end_at``.
        aggregated_votes: collapse small votes between large ones in the vote list.
        rules: quorum policy; defaults to the proposal's own metadata.
        config: engine thresholds; defaults to the environment.
    """
    config = resolve_config(config)
    rules = rules or MetadataGovernanceRules()
    threshold = config.accumulate_voting_power_threshold

    choices = list(proposal.choices)
    metadata = proposal.metadata
    quorum_choices = rules.quorum_choices(proposal)
    total_delegated_vp = rules.total_delegated_vp(proposal)

    if not choices:
        logger.warning(f"Proposal {proposal.id} has no valid choices defined.")
        return ProcessedResults(
            proposal=proposal,
            choices=[],
            choice_colors=[],
            total_voting_power=0.0,
            quorum=proposal.quorum,
            quorum_choices=quorum_choices,
            vote_type=VoteType.BASIC,
            votes=[] if with_votes else None,
            time_series_data=[] if with_timeseries else None,
            final_results={},
            total_delegated_vp=total_delegated_vp,
            hidden_vote=metadata.hidden_vote,
            scores_state=metadata.scores_state,
        )

    vote_type = _resolve_vote_type(proposal)
    colors = colors_for_choices(choices)
    valid_votes = [vote for vote in votes if vote.voting_power > 0]

    tally = _PROCESSORS[vote_type](valid_votes, choices, colors, with_timeseries, threshold)
    final_results = _finite_results(tally.final_results, proposal.id)

    hidden = metadata.hidden_vote and metadata.scores_state != "final"

    processed_votes: Optional[List[ProcessedVote]] = None
    if with_votes:
        processed_votes = tally.processed_votes
        if hidden:
            # Choices go before pooling, so pooled votes cannot carry a per-choice split
            processed_votes = [_hide_choice(vote) for vote in processed_votes]
        if aggregated_votes and processed_votes:
            processed_votes = _aggregate_small_votes(
                processed_votes, proposal.id, choices, colors, threshold, hidden=hidden
            )
        processed_votes = _with_relative_power(processed_votes, aggregated_votes)

    series: Optional[List[TimeSeriesPoint]] = None
    if with_timeseries:
        series = _complete_series(
            tally.series, len(choices), tally.cumulative_series, proposal.start_at, proposal.end_at
        )

    quorum_voting_power: Optional[float] = sum(final_results.get(index, 0.0) for index in quorum_choices)
    winning_threshold = tally.winning_threshold
    choice_colors = colors

    if hidden:
        # Shielded vote: only the overall total may leave this function
        final_results = {HIDDEN_CHOICE_INDEX: tally.total_voting_power, **_empty_results(choices)}
        choice_colors = [DEFAULT_CHOICE_COLOR] * len(choices)
        quorum_voting_power = None
        winning_threshold = None
        if series is not None:
            series = [
                TimeSeriesPoint(timestamp=point.timestamp, values={HIDDEN_CHOICE_INDEX: sum(point.values.values())})
                for point in series
            ]

    quorum_reached: Optional[bool] = None
    if proposal.quorum is not None and quorum_voting_power is not None:
        quorum_reached = quorum_voting_power >= proposal.quorum

    return ProcessedResults(
        proposal=proposal,
        choices=choices,
        choice_colors=choice_colors,
        total_voting_power=tally.total_voting_power,
        quorum=proposal.quorum,
        quorum_choices=quorum_choices,
        quorum_voting_power=quorum_voting_power,
        quorum_reached=quorum_reached,
        vote_type=vote_type,
        votes=processed_votes,
        time_series_data=series,
        final_results=final_results,
        winning_threshold=winning_threshold,
        total_delegated_vp=total_delegated_vp,
        hidden_vote=metadata.hidden_vote,
        scores_state=metadata.scores_state,
    )
