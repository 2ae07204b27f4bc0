"""Unit tests for level-based volume event coarsening."""
import pytest

from ..data_models.timeline_events import (
    CommentsVolumeEvent,
    DiscussionEvent,
    VotesVolumeEvent,
    VotesVolumeMetadata,
)
from ..exceptions import InputValidationError
from ..services.volume_aggregator import aggregate_volume_events
from .factories import at


def _comments(day: float, volume: float) -> CommentsVolumeEvent:
    return CommentsVolumeEvent(timestamp=at(day), volume=volume, max_volume=10)


def _votes(day: float, volumes, power: float = 0.0) -> VotesVolumeEvent:
    return VotesVolumeEvent(
        timestamp=at(day),
        volumes=list(volumes),
        colors=["#69E000", "#FF4C42", "#FFCC33"][: len(volumes)],
        max_volume=100,
        metadata=VotesVolumeMetadata(voting_power=power or sum(volumes)),
    )


def _total_volume(events) -> float:
    total = 0.0
    for event in events:
        if isinstance(event, CommentsVolumeEvent):
            total += event.volume
        elif isinstance(event, VotesVolumeEvent):
            total += sum(event.volumes)
    return total


@pytest.fixture
def timeline():
    """Newest-first events mixing both volume kinds with a discussion event."""
    return [
        _comments(9, 2),
        _votes(8, [10, 5, 0]),
        _comments(7, 1),
        _votes(6, [0, 20]),
        _votes(5, [3, 3, 3]),
        DiscussionEvent(timestamp=at(4), content="Proposal initially posted on Oct 5"),
        _comments(3, 4),
        _votes(2, [1, 0, 0]),
        _comments(1, 6),
    ]


class TestAggregateVolumeEvents:
    """Test volume aggregation levels."""

    def test_level_zero_is_identity(self, timeline):
        """Test that level 0 returns the same events."""
        assert aggregate_volume_events(timeline, 0) == timeline

    def test_negative_level_rejected(self, timeline):
        """Test that a negative level is an input error."""
        with pytest.raises(InputValidationError):
            aggregate_volume_events(timeline, -1)

    def test_monotonic_coarsening(self, timeline):
        """Test that higher levels never produce more events."""
        lengths = [len(aggregate_volume_events(timeline, level)) for level in range(6)]

        assert lengths == sorted(lengths, reverse=True)
        assert lengths[-1] < lengths[0]

    @pytest.mark.parametrize("level", [0, 1, 2, 3, 10])
    def test_volume_sum_invariance(self, timeline, level):
        """Test that merging never changes the summed volume."""
        assert _total_volume(aggregate_volume_events(timeline, level)) == _total_volume(timeline)

    def test_non_volume_events_pass_through(self, timeline):
        """Test that discussion events survive untouched."""
        result = aggregate_volume_events(timeline, 2)

        assert [e for e in result if isinstance(e, DiscussionEvent)] == [timeline[5]]

    def test_merged_event_fields(self):
        """Test timestamps, ragged volumes and voting power of a merged chunk."""
        events = [_votes(3, [1, 2], power=50), _votes(2, [4, 0, 6], power=80)]

        (merged,) = aggregate_volume_events(events, 1)

        assert merged.timestamp == at(2)
        assert merged.volumes == [5, 2, 6]
        assert merged.colors == ["#69E000", "#FF4C42"]
        assert merged.metadata.voting_power == 80

    def test_result_sorted_newest_first(self, timeline):
        """Test that the aggregated timeline is ordered newest first."""
        result = aggregate_volume_events(timeline, 1)
        timestamps = [event.timestamp for event in result]

        assert timestamps == sorted(timestamps, reverse=True)

    def test_single_volume_event_unchanged(self):
        """Test that one volume event has nothing to merge with."""
        events = [_comments(1, 3)]

        assert aggregate_volume_events(events, 3) == events
