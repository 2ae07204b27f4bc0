"""Unit tests for per-voter vote deduplication."""
from ..services.results_processing import process_results
from ..services.vote_normalizer import latest_vote_per_voter
from .factories import at, make_proposal, make_vote


class TestLatestVotePerVoter:
    """Test that each voter keeps exactly one vote."""

    def test_empty_input(self):
        """Test that no votes yield no votes."""
        assert latest_vote_per_voter([]) == []

    def test_keeps_latest_vote(self):
        """Test that a recast replaces the earlier vote."""
        first = make_vote("0xabc", 100, choice=0, created_at=at(1))
        recast = make_vote("0xabc", 100, choice=1, created_at=at(2))

        result = latest_vote_per_voter([recast, first])

        assert result == [recast]

    def test_tie_keeps_first_in_input(self):
        """Test that equal timestamps keep the vote listed first."""
        first = make_vote("0xabc", 100, choice=0, created_at=at(1), vote_id="a")
        second = make_vote("0xabc", 100, choice=1, created_at=at(1), vote_id="b")

        result = latest_vote_per_voter([first, second])

        assert [vote.id for vote in result] == ["a"]

    def test_distinct_voters_preserved_in_order(self):
        """Test that different voters are all kept in first-seen order."""
        votes = [make_vote("0x1", 10), make_vote("0x2", 20), make_vote("0x3", 30)]

        result = latest_vote_per_voter(votes)

        assert [vote.voter_address for vote in result] == ["0x1", "0x2", "0x3"]

    def test_only_later_vote_counts_toward_totals(self, config):
        """Test that a deduplicated voter contributes once, with the later choice."""
        proposal = make_proposal(choices=["For", "Against"])
        votes = [
            make_vote("0xabc", 500, choice=0, created_at=at(1)),
            make_vote("0xabc", 500, choice=1, created_at=at(2)),
        ]

        results = process_results(proposal, latest_vote_per_voter(votes), with_timeseries=False, config=config)

        assert results.total_voting_power == 500
        assert results.final_results == {0: 0.0, 1: 500.0}
