"""
arenarewards/rewards/allocation.py

Proportional prize-pool split with an exact-sum rounding rule.

Formula:
    reward = prize_amount * user_score / total_score

Rounding policy:
    1. Each reward is rounded DOWN to the currency's minor unit.
    2. The residual (prize - sum of rounded rewards) is never negative
       and is added to the participant with the highest consensus
       score; ties go to whoever participated first.

This guarantees sum(rewards) == prize_amount exactly.

Example (prize 100.00 USD, three equal scores of 3.75):
    33.33 + 33.33 + 33.33 = 99.99, residual 0.01 -> first participant
    -> 33.34, 33.33, 33.33
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, localcontext
from typing import List, Sequence

from ..scoring.aggregator import UserCampaignScore
from ..scoring.tally import SCORING_CONTEXT


@dataclass(frozen=True)
class RewardAllocation:
    """A user's share of the prize pool."""
    user_id: int
    consensus_score: Decimal
    total_votes: int
    reward_amount: Decimal
    reward_ratio: Decimal      # 0..1, unrounded

    @property
    def reward_percent(self) -> str:
        """Ratio as a percentage string with two decimals, e.g. '33.33%'."""
        percent = (self.reward_ratio * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)
        return f"{percent}%"

    def to_dict(self) -> dict:
        return {
            'userId': self.user_id,
            'consensusScore': str(self.consensus_score),
            'totalVotes': self.total_votes,
            'rewardAmount': str(self.reward_amount),
            'rewardRatio': self.reward_percent,
        }


def minor_unit(precision: int) -> Decimal:
    """Smallest currency unit for a precision, e.g. 2 -> Decimal('0.01')."""
    return Decimal(1).scaleb(-precision)


def allocate_prize(
    prize_amount: Decimal,
    scores: Sequence[UserCampaignScore],
    precision: int = 2,
) -> List[RewardAllocation]:
    """
    Split a prize pool proportionally to consensus scores.

    Args:
        prize_amount: Exact prize pool
        scores: Per-user scores in first-participation order
        precision: Currency minor-unit digits

    Returns:
        One allocation per score, same order, summing to prize_amount

    Raises:
        ValueError: If the total score is not positive or the prize is negative
    """
    prize_amount = Decimal(prize_amount)
    if prize_amount < 0:
        raise ValueError(f"Prize amount must not be negative, got {prize_amount}")

    total = sum((s.consensus_score for s in scores), Decimal(0))
    if total <= 0:
        raise ValueError("Total consensus score must be positive to allocate a prize")

    step = minor_unit(precision)

    with localcontext(SCORING_CONTEXT):
        ratios = [s.consensus_score / total for s in scores]
        # Multiply before dividing so splits that divide evenly stay exact
        amounts = [
            (prize_amount * s.consensus_score / total).quantize(step, rounding=ROUND_DOWN)
            for s in scores
        ]
        residual = prize_amount - sum(amounts, Decimal(0))

        if residual:
            # max() keeps the first maximal element, so earlier participants win ties
            top = max(range(len(scores)), key=lambda i: scores[i].consensus_score)
            amounts[top] += residual

    return [
        RewardAllocation(
            user_id=score.user_id,
            consensus_score=score.consensus_score,
            total_votes=score.total_votes,
            reward_amount=amount,
            reward_ratio=ratio,
        )
        for score, ratio, amount in zip(scores, ratios, amounts)
    ]
