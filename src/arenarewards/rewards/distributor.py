"""
arenarewards/rewards/distributor.py

Campaign close and prize distribution.

Closing a campaign is one atomic unit: snapshot the campaign with its
matches and votes, aggregate consensus scores, flip the status with a
compare-and-swap, and write one immutable reward row per participant.
Either everything commits or nothing does, so a failed close leaves the
campaign active and safe to close again.

Flow:
    active --(total score == 0)--> closed     (no ledger rows)
    active --(total score  > 0)--> rewarded   (one row per participant)

Usage:
    from arenarewards.rewards import RewardDistributor

    distributor = RewardDistributor(store)
    result = await distributor.close_campaign(campaign_id)
    print(result.to_dict())
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from ..config import RewardPolicy
from ..errors import InvalidState, NotFound, TransactionFailure
from ..models import Campaign, CampaignStatus, utcnow, _format_datetime
from ..scoring.aggregator import CampaignAggregate, CampaignAggregator
from ..storage.base import ArenaStore, StoreTransaction
from .allocation import RewardAllocation, allocate_prize
from .ledger import ledger_root

logger = logging.getLogger("arenarewards.rewards.distributor")

NO_CONSENSUS_MESSAGE = "No rewards distributed (no consensus scores)"


@dataclass
class CloseResult:
    """Outcome of a committed campaign close."""
    campaign_id: int
    status: CampaignStatus
    participants: int
    prize_amount: Decimal
    prize_currency: str
    total_consensus_score: Decimal = Decimal(0)
    rewards: List[RewardAllocation] = field(default_factory=list)
    total_votes: int = 0
    closed_at: Optional[datetime] = None
    ledger_root: str = ""
    message: str = ""

    @property
    def distributed(self) -> Decimal:
        return sum((r.reward_amount for r in self.rewards), Decimal(0))

    def to_dict(self) -> dict:
        return {
            'campaignId': self.campaign_id,
            'status': self.status.value,
            'prizeAmount': str(self.prize_amount),
            'prizeCurrency': self.prize_currency,
            'participants': self.participants,
            'totalConsensusScore': str(self.total_consensus_score),
            'totalVotes': self.total_votes,
            'rewards': [r.to_dict() for r in self.rewards],
            'message': self.message,
            'ledgerRoot': self.ledger_root,
            'closedAt': _format_datetime(self.closed_at),
        }


class RewardDistributor:
    """
    Closes campaigns and distributes their prize pools.

    The status guard is enforced inside the transaction by a
    compare-and-swap, so of two racing closes on one campaign exactly one
    commits and the other raises InvalidState.
    """

    def __init__(
        self,
        store: ArenaStore,
        policy: Optional[RewardPolicy] = None,
        metrics=None,
        clock: Callable[[], datetime] = utcnow,
        transaction_timeout: Optional[float] = None,
    ):
        """
        Initialize distributor.

        Args:
            store: Store providing snapshot reads and transactions
            policy: Scoring and currency policy
            metrics: Optional MetricsCollector
            clock: Source of closed_at timestamps
            transaction_timeout: Seconds before a close is rolled back
        """
        self.store = store
        self.policy = policy or RewardPolicy()
        self.metrics = metrics
        self.clock = clock
        self.transaction_timeout = transaction_timeout
        self.aggregator = CampaignAggregator(self.policy)

    async def close_campaign(self, campaign_id: int) -> CloseResult:
        """
        Close a campaign and write its reward ledger.

        Returns:
            CloseResult for the committed close

        Raises:
            NotFound: Campaign does not exist
            InvalidState: Campaign is not active
            TransactionFailure: Store failed or timed out; nothing committed
        """
        logger.info(f"Closing campaign {campaign_id}")
        started = time.monotonic()

        async def _close(tx: StoreTransaction) -> CloseResult:
            return await self._close_in_transaction(tx, campaign_id)

        try:
            result = await self.store.run_transaction(
                _close,
                operation="close_campaign",
                campaign_id=campaign_id,
                timeout=self.transaction_timeout,
            )
        except TransactionFailure:
            if self.metrics:
                self.metrics.record_transaction_failure()
            raise

        if self.metrics:
            self.metrics.record_close(result, time.monotonic() - started)

        if result.status == CampaignStatus.REWARDED:
            logger.info(
                f"Campaign {campaign_id} rewarded: {result.participants} participants, "
                f"{result.distributed} {result.prize_currency} distributed, "
                f"ledger root {result.ledger_root[:16]}"
            )
        else:
            logger.info(f"Campaign {campaign_id} closed without rewards")

        return result

    async def _close_in_transaction(
        self,
        tx: StoreTransaction,
        campaign_id: int,
    ) -> CloseResult:
        campaign = await tx.get_campaign(campaign_id)
        if campaign is None:
            raise NotFound("Campaign", campaign_id, operation="close_campaign")
        if campaign.status != CampaignStatus.ACTIVE:
            raise InvalidState(campaign_id, campaign.status)

        aggregate = self.aggregator.aggregate(campaign.matches)
        total_votes = campaign.vote_count()
        total_score = aggregate.total_consensus_score
        closed_at = self.clock()

        logger.info(
            f"Campaign {campaign_id}: prize {campaign.prize_amount} {campaign.prize_currency}, "
            f"{aggregate.matches_scored}/{aggregate.matches_seen} matches scored, "
            f"{aggregate.participants} participants, total score {total_score}"
        )

        if total_score == 0:
            logger.warning(f"Campaign {campaign_id}: no consensus scores to distribute")
            await self._swap_status(tx, campaign_id, CampaignStatus.CLOSED, closed_at, total_votes)
            return CloseResult(
                campaign_id=campaign_id,
                status=CampaignStatus.CLOSED,
                participants=0,
                prize_amount=campaign.prize_amount,
                prize_currency=campaign.prize_currency,
                total_votes=total_votes,
                closed_at=closed_at,
                message=NO_CONSENSUS_MESSAGE,
            )

        allocations = self._allocate(campaign, aggregate)

        await self._swap_status(tx, campaign_id, CampaignStatus.REWARDED, closed_at, total_votes)
        for allocation in allocations:
            await tx.create_reward(
                campaign_id=campaign_id,
                user_id=allocation.user_id,
                consensus_score=allocation.consensus_score,
                total_votes=allocation.total_votes,
                reward_amount=allocation.reward_amount,
            )
            logger.debug(
                f"User {allocation.user_id}: {allocation.consensus_score} points "
                f"({allocation.total_votes} votes) -> {allocation.reward_amount} "
                f"{campaign.prize_currency}"
            )

        return CloseResult(
            campaign_id=campaign_id,
            status=CampaignStatus.REWARDED,
            participants=len(allocations),
            prize_amount=campaign.prize_amount,
            prize_currency=campaign.prize_currency,
            total_consensus_score=total_score,
            rewards=allocations,
            total_votes=total_votes,
            closed_at=closed_at,
            ledger_root=ledger_root(campaign_id, allocations),
            message=f"Rewards distributed to {len(allocations)} participants",
        )

    def _allocate(self, campaign: Campaign, aggregate: CampaignAggregate) -> List[RewardAllocation]:
        precision = self.policy.precision_for(campaign.prize_currency)
        return allocate_prize(campaign.prize_amount, aggregate.ordered(), precision)

    @staticmethod
    async def _swap_status(
        tx: StoreTransaction,
        campaign_id: int,
        status: CampaignStatus,
        closed_at: datetime,
        total_votes: int,
    ) -> None:
        swapped = await tx.update_campaign_status(
            campaign_id,
            status,
            expected_status=CampaignStatus.ACTIVE,
            closed_at=closed_at,
            total_votes=total_votes,
        )
        if not swapped:
            current = await tx.get_campaign_status(campaign_id)
            raise InvalidState(campaign_id, current)


async def close_campaign(
    store: ArenaStore,
    campaign_id: int,
    policy: Optional[RewardPolicy] = None,
) -> CloseResult:
    """Close a campaign with a one-off RewardDistributor."""
    return await RewardDistributor(store, policy).close_campaign(campaign_id)
