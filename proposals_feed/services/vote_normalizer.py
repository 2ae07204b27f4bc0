from typing import Dict, List, Sequence

from proposals_feed.data_models.schemas import Vote


def latest_vote_per_voter(votes: Sequence[Vote]) -> List[Vote]:
    """Keep one vote per voter address: the one with the latest ``created_at``.

    Ties on ``created_at`` keep the vote that came first in the input. The
    result lists the surviving votes in the order their voters first appeared.
    """
    latest: Dict[str, Vote] = {}
    for vote in votes:
        current = latest.get(vote.voter_address)
        if current is None or vote.created_at > current.created_at:
            latest[vote.voter_address] = vote
    return list(latest.values())
