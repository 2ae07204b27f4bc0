"""Unit tests for vote bar segmentation."""
import math

import pytest

from ..config.engine_config import EngineConfig
from ..services.results_processing import process_results
from ..services.vote_segments import bucket_vote_segments, calculate_vote_segments
from .factories import make_processed_vote, make_proposal, make_vote


class TestBucketVoteSegments:
    """Test segment bucketing for one proposal."""

    @pytest.mark.parametrize("total", [0, -5, math.nan, math.inf])
    def test_invalid_total_returns_empty_lists(self, total, config):
        """Test that a non-positive or non-finite total yields one empty list per choice."""
        votes = [make_processed_vote("0x1", 10)]

        segments = bucket_vote_segments(total, ["For", "Against", "Abstain"], votes, config=config)

        assert segments == {"0": [], "1": [], "2": []}

    def test_worked_example(self, config):
        """Test that votes above the visibility threshold each get a segment."""
        votes = [
            make_processed_vote("0x1", 900, [(0, 100)]),
            make_processed_vote("0x2", 50, [(0, 100)]),
            make_processed_vote("0x3", 50, [(1, 100)]),
        ]

        segments = bucket_vote_segments(1000, ["For", "Against"], votes, config=config)

        assert [s.voting_power for s in segments["0"]] == [900, 50]
        assert [s.voting_power for s in segments["1"]] == [50]
        assert not any(s.is_aggregated for lane in segments.values() for s in lane)

    def test_exactly_one_percent_is_individual(self, config):
        """Test that a vote worth exactly the threshold is not aggregated."""
        votes = [make_processed_vote("0x1", 99), make_processed_vote("0x2", 1)]

        segments = bucket_vote_segments(100, ["For"], votes, config=config)

        assert [(s.voting_power, s.is_aggregated) for s in segments["0"]] == [(99, False), (1, False)]

    def test_small_votes_fold_into_one_trailing_segment(self, config):
        """Test that sub-threshold votes accumulate into one aggregated segment at the end."""
        votes = [make_processed_vote(f"0x{i}", 2) for i in range(5)] + [make_processed_vote("0xbig", 990)]

        segments = bucket_vote_segments(1000, ["For"], votes, config=config)

        lane = segments["0"]
        assert lane[0].voting_power == 990
        assert lane[-1].is_aggregated is True
        assert lane[-1].voting_power == 10
        assert len(lane) == 2

    def test_sum_preservation(self, config):
        """Test that individual plus aggregated segments add up to each choice's total."""
        votes = [
            make_processed_vote("0x1", 700, [(0, 60), (1, 40)]),
            make_processed_vote("0x2", 3, [(0, 100)]),
            make_processed_vote("0x3", 4, [(1, 50), (2, 50)]),
            make_processed_vote("0x4", 293, [(2, 100)]),
        ]
        expected = {"0": 420 + 3, "1": 280 + 2, "2": 2 + 293}

        segments = bucket_vote_segments(1000, ["A", "B", "C"], votes, config=config)

        for key, total in expected.items():
            assert sum(s.voting_power for s in segments[key]) == pytest.approx(total)

    def test_equal_power_keeps_input_order(self, config):
        """Test that ties on voting power do not reorder votes."""
        votes = [
            make_processed_vote("0x1", 50, [(0, 100)]),
            make_processed_vote("0x2", 50, [(0, 40), (1, 60)]),
        ]

        segments = bucket_vote_segments(100, ["A", "B"], votes, config=config)

        assert [s.voting_power for s in segments["0"]] == [50, 20]

    def test_invalid_choice_index_is_skipped(self, config):
        """Test that out-of-range choices are skipped without failing."""
        votes = [make_processed_vote("0x1", 50, [(5, 100)]), make_processed_vote("0x2", 50, [(0, 100)])]

        segments = bucket_vote_segments(100, ["A"], votes, config=config)

        assert [s.voting_power for s in segments["0"]] == [50]

    def test_threshold_is_configurable(self):
        """Test that a larger visibility threshold aggregates more votes."""
        votes = [make_processed_vote("0x1", 60), make_processed_vote("0x2", 40)]

        segments = bucket_vote_segments(100, ["A"], votes, config=EngineConfig(min_visible_width_percent=50))

        assert [(s.voting_power, s.is_aggregated) for s in segments["0"]] == [(60, False), (40, True)]


class TestCalculateVoteSegments:
    """Test segments built from processed results."""

    def test_uses_result_votes(self, config):
        """Test that processed results are segmented per choice."""
        proposal = make_proposal(choices=["For", "Against"])
        votes = [make_vote("0x1", 600, choice=0), make_vote("0x2", 400, choice=1)]
        results = process_results(proposal, votes, with_timeseries=False, config=config)

        segments = calculate_vote_segments(results, config=config)

        assert [s.voting_power for s in segments["0"]] == [600]
        assert [s.voting_power for s in segments["1"]] == [400]

    def test_hidden_results_use_single_lane(self, config):
        """Test that shielded results expose only one lane keyed -1."""
        proposal = make_proposal(choices=["For", "Against"], hidden_vote=True, scores_state="pending")
        votes = [make_vote("0x1", 600, choice=0), make_vote("0x2", 400, choice=1)]
        results = process_results(proposal, votes, with_timeseries=False, config=config)

        segments = calculate_vote_segments(results, config=config)

        assert list(segments) == ["-1"]
        assert sum(s.voting_power for s in segments["-1"]) == 1000
