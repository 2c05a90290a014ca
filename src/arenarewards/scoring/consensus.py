"""
arenarewards/scoring/consensus.py

Per-voter consensus scoring for a single match.

A vote that agrees with the match majority earns

    CONSENSUS_MAX * majority_fraction

so agreeing with a decisive majority is worth more than agreeing with a
narrow one. Disagreeing votes earn zero. Anonymous votes produce no
entry at all.

The computation is deterministic: a fixed decimal context and a fixed
quantisation step mean identical input always yields identical Decimals.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Iterable, List

from ..config import CONSENSUS_MAX, SCORE_PRECISION
from ..models import Choice, Vote
from .tally import MatchTally, SCORING_CONTEXT


@dataclass(frozen=True)
class ScoreDelta:
    """Score earned by one identified voter in one match."""
    user_id: int
    vote_id: int
    chosen: Choice
    delta: Decimal

    @property
    def agreed(self) -> bool:
        return self.delta > 0


def score_step(precision: int = SCORE_PRECISION) -> Decimal:
    """Quantisation step for consensus scores, e.g. Decimal('0.000001')."""
    return Decimal(1).scaleb(-precision)


def majority_reward(
    tally: MatchTally,
    consensus_max: int = CONSENSUS_MAX,
    precision: int = SCORE_PRECISION,
) -> Decimal:
    """Score a majority voter earns in this match (zero without majority)."""
    if not tally.has_majority:
        return Decimal(0)
    with localcontext(SCORING_CONTEXT):
        raw = Decimal(consensus_max) * tally.majority_fraction
        return raw.quantize(score_step(precision))


def score_match(
    tally: MatchTally,
    votes: Iterable[Vote],
    consensus_max: int = CONSENSUS_MAX,
    precision: int = SCORE_PRECISION,
) -> List[ScoreDelta]:
    """
    Score every identified voter of a match.

    Args:
        tally: Result of tally_votes() for the same votes
        votes: The match's votes
        consensus_max: Score for agreeing with a unanimous match
        precision: Decimal places kept on each delta

    Returns:
        One ScoreDelta per non-anonymous vote, in vote order. Empty when
        the match has no majority, since it contributes nothing.
    """
    if not tally.has_majority:
        return []

    reward = majority_reward(tally, consensus_max, precision)
    zero = Decimal(0).quantize(score_step(precision))

    deltas = []
    for vote in votes:
        if vote.is_anonymous:
            continue
        deltas.append(ScoreDelta(
            user_id=vote.user_id,
            vote_id=vote.id,
            chosen=vote.chosen_position,
            delta=reward if vote.chosen_position == tally.majority else zero,
        ))
    return deltas
