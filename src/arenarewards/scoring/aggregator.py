"""
arenarewards/scoring/aggregator.py

Campaign-wide aggregation of consensus scores.

Streams over a campaign's matches, tallies each one, scores its voters
and folds the deltas into one entry per participating user. Users who
never cast a vote in a match with a majority do not appear.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..config import RewardPolicy
from ..models import Match
from .consensus import ScoreDelta, score_match
from .tally import MatchTally, tally_votes

logger = logging.getLogger("arenarewards.scoring.aggregator")


@dataclass
class UserCampaignScore:
    """Accumulated score of one user within one campaign."""
    user_id: int
    consensus_score: Decimal = Decimal(0)
    total_votes: int = 0

    def add(self, delta: ScoreDelta) -> None:
        self.consensus_score += delta.delta
        self.total_votes += 1

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'consensus_score': str(self.consensus_score),
            'total_votes': self.total_votes,
        }


@dataclass
class CampaignAggregate:
    """Output of aggregating a campaign."""
    scores: Dict[int, UserCampaignScore] = field(default_factory=dict)
    matches_seen: int = 0
    matches_scored: int = 0
    votes_seen: int = 0

    @property
    def participants(self) -> int:
        return len(self.scores)

    @property
    def total_consensus_score(self) -> Decimal:
        return sum((s.consensus_score for s in self.scores.values()), Decimal(0))

    def ordered(self) -> List[UserCampaignScore]:
        """Scores in first-participation order."""
        return list(self.scores.values())


class CampaignAggregator:
    """
    Sums per-match consensus deltas per user across a campaign.

    Tolerates an empty match list and matches without votes; both simply
    contribute nothing.
    """

    def __init__(self, policy: Optional[RewardPolicy] = None):
        self.policy = policy or RewardPolicy()

    def tally(self, match: Match) -> MatchTally:
        return tally_votes(match.votes, min_votes=self.policy.min_votes_for_consensus)

    def score(self, match: Match) -> List[ScoreDelta]:
        """Tally and score a single match."""
        tally = self.tally(match)
        return score_match(
            tally,
            match.votes,
            consensus_max=self.policy.consensus_max,
            precision=self.policy.score_precision,
        )

    def aggregate(self, matches: Iterable[Match]) -> CampaignAggregate:
        """
        Aggregate consensus scores over every match of a campaign.

        Args:
            matches: The campaign's matches with their votes, in order

        Returns:
            CampaignAggregate keyed by user id
        """
        result = CampaignAggregate()

        for match in matches:
            result.matches_seen += 1
            result.votes_seen += len(match.votes)
            if not match.votes:
                continue

            tally = self.tally(match)
            if not tally.has_majority:
                logger.debug(f"Match {match.id} skipped: no consensus")
                continue

            deltas = score_match(
                tally,
                match.votes,
                consensus_max=self.policy.consensus_max,
                precision=self.policy.score_precision,
            )
            result.matches_scored += 1
            for delta in deltas:
                entry = result.scores.get(delta.user_id)
                if entry is None:
                    entry = UserCampaignScore(user_id=delta.user_id)
                    result.scores[delta.user_id] = entry
                entry.add(delta)

        return result


def aggregate_campaign(
    matches: Iterable[Match],
    policy: Optional[RewardPolicy] = None,
) -> CampaignAggregate:
    """Convenience wrapper around CampaignAggregator.aggregate()."""
    return CampaignAggregator(policy).aggregate(matches)
