"""
arenarewards/scoring/tally.py

Per-match vote tally.

Counts A/B/TIE votes and decides whether the match has a strict
majority. A match with fewer than MIN_VOTES_FOR_CONSENSUS votes, or
whose top two choices are level, has no majority and contributes
nothing to consensus scoring.

Usage:
    from arenarewards.scoring.tally import tally_votes

    tally = tally_votes(match.votes)
    if tally.has_majority:
        ...
"""

import logging
from dataclasses import dataclass, field
from decimal import Context, Decimal, ROUND_HALF_EVEN, localcontext
from typing import Dict, Iterable, Optional

from ..config import MIN_VOTES_FOR_CONSENSUS
from ..models import Choice, Vote

logger = logging.getLogger("arenarewards.scoring.tally")

# Fixed decimal context so scoring is reproducible regardless of the
# caller's thread-local decimal settings.
SCORING_CONTEXT = Context(prec=50, rounding=ROUND_HALF_EVEN)

# Tie order among equal counts; only matters for reporting, never for
# the majority decision.
CHOICE_ORDER = (Choice.A, Choice.B, Choice.TIE)


@dataclass
class MatchTally:
    """Result of tallying one match."""
    counts: Dict[Choice, int] = field(
        default_factory=lambda: {choice: 0 for choice in CHOICE_ORDER}
    )
    total_votes: int = 0
    majority: Optional[Choice] = None
    majority_fraction: Decimal = Decimal(0)

    @property
    def has_majority(self) -> bool:
        return self.majority is not None

    def to_dict(self) -> dict:
        return {
            'counts': {choice.value: count for choice, count in self.counts.items()},
            'total_votes': self.total_votes,
            'majority': self.majority.value if self.majority else None,
            'majority_fraction': str(self.majority_fraction),
        }


def count_choices(votes: Iterable[Vote]) -> Dict[Choice, int]:
    """Count votes per choice, with zero entries for unchosen positions."""
    counts = {choice: 0 for choice in CHOICE_ORDER}
    for vote in votes:
        counts[vote.chosen_position] += 1
    return counts


def tally_votes(
    votes: Iterable[Vote],
    min_votes: int = MIN_VOTES_FOR_CONSENSUS,
) -> MatchTally:
    """
    Tally a match's votes and find its strict majority.

    Args:
        votes: Every vote cast on the match (anonymous ones included)
        min_votes: Minimum votes before a majority is considered

    Returns:
        MatchTally; majority is None for sparse or tied matches
    """
    votes = list(votes)
    counts = count_choices(votes)
    total = len(votes)
    tally = MatchTally(counts=counts, total_votes=total)

    if total == 0:
        return tally

    ranked = sorted(CHOICE_ORDER, key=lambda c: counts[c], reverse=True)
    top, second = ranked[0], ranked[1]

    with localcontext(SCORING_CONTEXT):
        tally.majority_fraction = Decimal(counts[top]) / Decimal(total)

    if total < min_votes:
        return tally

    if counts[top] > counts[second]:
        tally.majority = top
    else:
        logger.debug(
            f"No majority: {top.value}={counts[top]} ties {second.value}={counts[second]}"
        )

    return tally
