"""
arenarewards/storage/base.py

Store interfaces consumed by the scoring and reward engine.

The engine never talks to a database directly. It needs:
- VoteStore       - per-match and per-user vote reads, vote appends
- CampaignStore   - campaign and match reads/creates
- RewardLedger    - reads of the immutable payout ledger
- StoreTransaction - the atomic unit used by the close operation: a
                     snapshot read, a compare-and-swap on campaign status,
                     and reward row inserts

ArenaStore bundles all of them plus transaction management.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import (
    Any,
    AsyncContextManager,
    Awaitable,
    Callable,
    Iterator,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from ..errors import ArenaRewardsError, StoreUnavailable, TransactionFailure
from ..models import (
    Campaign,
    CampaignReward,
    CampaignStatus,
    Choice,
    Match,
    SponsorType,
    Vote,
)

logger = logging.getLogger("arenarewards.storage.base")

T = TypeVar("T")


class StoreError(Exception):
    """Store-level failure (unavailable, conflict, integrity)."""
    pass


# ============================================================================
# READ/WRITE INTERFACES
# ============================================================================

class StoreBase(ABC):
    """
    Common base of the store interfaces.

    Subclasses set `failure_types` to the exception classes that mean the
    store itself failed.
    """

    failure_types: Tuple[Type[BaseException], ...] = (StoreError,)

    @contextmanager
    def store_errors(
        self,
        operation: str,
        campaign_id: Optional[Any] = None,
    ) -> Iterator[None]:
        """
        Turn store failures raised in the block into StoreUnavailable.

        Raises:
            StoreUnavailable: The store failed; carries operation and campaign
        """
        try:
            yield
        except self.failure_types as exc:
            logger.error(f"{operation} failed: {exc}")
            raise StoreUnavailable(operation, campaign_id, exc) from exc


class VoteStore(StoreBase):
    """Vote reads and appends."""

    @abstractmethod
    async def list_votes(self, match_id: int) -> List[Vote]:
        """All votes of a match, oldest first."""
        pass

    @abstractmethod
    async def list_recent_votes(
        self,
        user_id: int,
        limit: int,
        exclude_id: Optional[int] = None,
    ) -> List[Vote]:
        """A user's most recent votes, most recent first."""
        pass

    @abstractmethod
    async def add_vote(
        self,
        match_id: int,
        chosen_position: Choice,
        user_id: Optional[int] = None,
        reference_score: float = 0.0,
        created_at: Optional[datetime] = None,
    ) -> Vote:
        """Append a vote. Votes are never updated or deleted."""
        pass


class CampaignStore(StoreBase):
    """Campaign and match reads/creates."""

    @abstractmethod
    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        """Campaign with nested matches and their votes, or None."""
        pass

    @abstractmethod
    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
    ) -> List[Campaign]:
        """Campaigns newest first, without matches."""
        pass

    @abstractmethod
    async def create_campaign(
        self,
        title: str,
        sponsor_name: str,
        sponsor_type: SponsorType,
        prize_amount: Decimal,
        model_a_id: int,
        model_b_id: int,
        end_date: datetime,
        prize_currency: str = "USD",
        description: Optional[str] = None,
    ) -> Campaign:
        """Create an active campaign."""
        pass

    @abstractmethod
    async def get_match(self, match_id: int) -> Optional[Match]:
        """Match with its votes, or None."""
        pass

    @abstractmethod
    async def create_match(
        self,
        prompt: str,
        campaign_id: Optional[int] = None,
        model_a_id: Optional[int] = None,
        model_b_id: Optional[int] = None,
    ) -> Match:
        """Create a match."""
        pass


class RewardLedger(StoreBase):
    """Reads of the payout ledger. Rows are only written in a transaction."""

    @abstractmethod
    async def list_rewards(self, campaign_id: int) -> List[CampaignReward]:
        """Ledger rows of a campaign, largest reward first."""
        pass

    @abstractmethod
    async def list_user_rewards(self, user_id: int) -> List[CampaignReward]:
        """A user's ledger rows across campaigns, newest first."""
        pass


class StoreTransaction(ABC):
    """Operations available inside one atomic unit."""

    @abstractmethod
    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        """Snapshot of a campaign with matches and votes."""
        pass

    @abstractmethod
    async def get_campaign_status(self, campaign_id: int) -> Optional[CampaignStatus]:
        """Current status as seen by this transaction."""
        pass

    @abstractmethod
    async def update_campaign_status(
        self,
        campaign_id: int,
        status: CampaignStatus,
        expected_status: CampaignStatus = CampaignStatus.ACTIVE,
        closed_at: Optional[datetime] = None,
        total_votes: Optional[int] = None,
    ) -> bool:
        """
        Compare-and-swap the campaign status.

        Returns:
            False if the stored status was not expected_status (nothing changed)
        """
        pass

    @abstractmethod
    async def create_reward(
        self,
        campaign_id: int,
        user_id: int,
        consensus_score: Decimal,
        total_votes: int,
        reward_amount: Decimal,
    ) -> CampaignReward:
        """Insert one ledger row."""
        pass


# ============================================================================
# COMBINED STORE
# ============================================================================

class ArenaStore(VoteStore, CampaignStore, RewardLedger):
    """
    Full store used by the engine.

    run_transaction() turns `failure_types` into TransactionFailure. Domain
    errors raised by the transaction body pass through unchanged after
    rollback.
    """

    @abstractmethod
    def transaction(self) -> AsyncContextManager[StoreTransaction]:
        """Open an atomic unit: commit on clean exit, roll back on error."""
        pass

    async def run_transaction(
        self,
        fn: Callable[[StoreTransaction], Awaitable[T]],
        operation: str = "transaction",
        campaign_id: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run fn inside one transaction.

        Args:
            fn: Coroutine function receiving the StoreTransaction
            operation: Name used in error context
            campaign_id: Campaign used in error context
            timeout: Seconds before the transaction is abandoned and rolled back

        Raises:
            TransactionFailure: Store failure or timeout; nothing committed
        """
        async def _run() -> T:
            async with self.transaction() as tx:
                return await fn(tx)

        try:
            if timeout is not None:
                return await asyncio.wait_for(_run(), timeout)
            return await _run()
        except ArenaRewardsError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error(f"{operation} timed out after {timeout}s, rolled back")
            raise TransactionFailure(operation, campaign_id, exc) from exc
        except self.failure_types as exc:
            logger.error(f"{operation} rolled back: {exc}")
            raise TransactionFailure(operation, campaign_id, exc) from exc

    async def close(self) -> None:
        """Release connections."""
        pass
