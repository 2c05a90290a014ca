"""
arenarewards/service.py

CampaignService - the facade the HTTP layer calls into.

Wraps an ArenaStore with input validation, the reward distributor (with
retry on transaction failures) and the consistency profiler.

Usage:
    from arenarewards import CampaignService, SQLStore

    store = SQLStore("sqlite+aiosqlite:///arena.db")
    await store.create_all()
    service = CampaignService(store)

    campaign = await service.create_campaign(
        title="Summer Arena",
        sponsor_name="Acme",
        sponsor_type="company",
        prize_amount=Decimal("100.00"),
        model_a_id=1,
        model_b_id=2,
        end_date=datetime(2026, 12, 31, tzinfo=timezone.utc),
    )
    ...
    result = await service.close_campaign(campaign.id)
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import ConsistencyThresholds, RewardPolicy, StoreConfig
from .errors import InvalidState, NotFound, TransactionFailure, ValidationError
from .metrics import MetricsCollector
from .models import (
    Campaign,
    CampaignReward,
    CampaignStatus,
    Choice,
    Match,
    SponsorType,
    Vote,
)
from .rewards.distributor import CloseResult, RewardDistributor
from .rewards.ledger import ledger_root
from .scoring.consistency import ConsistencyProfile, ConsistencyProfiler
from .storage.base import ArenaStore

logger = logging.getLogger("arenarewards.service")


def _parse_choice(value: Union[str, Choice]) -> Choice:
    if isinstance(value, Choice):
        return value
    try:
        return Choice(str(value).upper())
    except ValueError:
        raise ValidationError("chosen_position", f"must be one of A, B, TIE (got {value!r})")


def _parse_sponsor_type(value: Union[str, SponsorType]) -> SponsorType:
    if isinstance(value, SponsorType):
        return value
    try:
        return SponsorType(str(value).lower())
    except ValueError:
        allowed = ", ".join(t.value for t in SponsorType)
        raise ValidationError("sponsor_type", f"must be one of {allowed} (got {value!r})")


class CampaignService:
    """
    Campaign operations for the outer service layer.

    Store failures during a close are retried with exponential backoff;
    NotFound and InvalidState are returned to the caller immediately.
    Store failures on every other call surface as StoreUnavailable.
    """

    def __init__(
        self,
        store: ArenaStore,
        policy: Optional[RewardPolicy] = None,
        thresholds: Optional[ConsistencyThresholds] = None,
        metrics: Optional[MetricsCollector] = None,
        config: Optional[StoreConfig] = None,
        transaction_timeout: Optional[float] = None,
    ):
        self.store = store
        self.policy = policy or RewardPolicy()
        self.config = config or StoreConfig()
        self.metrics = metrics or MetricsCollector()
        self.distributor = RewardDistributor(
            store,
            policy=self.policy,
            metrics=self.metrics,
            transaction_timeout=transaction_timeout,
        )
        self.profiler = ConsistencyProfiler(
            store,
            thresholds=thresholds or ConsistencyThresholds(),
            metrics=self.metrics,
        )

    # ========================================================================
    # CAMPAIGNS
    # ========================================================================

    async def create_campaign(
        self,
        title: str,
        sponsor_name: str,
        sponsor_type: Union[str, SponsorType],
        prize_amount: Union[str, int, Decimal],
        model_a_id: int,
        model_b_id: int,
        end_date: datetime,
        description: Optional[str] = None,
        prize_currency: Optional[str] = None,
    ) -> Campaign:
        """
        Validate and create an active campaign.

        Raises:
            ValidationError: On any invalid field
        """
        operation = "create_campaign"
        if not title or not title.strip():
            raise ValidationError("title", "must not be empty", operation)
        if not sponsor_name or not sponsor_name.strip():
            raise ValidationError("sponsor_name", "must not be empty", operation)
        kind = _parse_sponsor_type(sponsor_type)

        currency = (prize_currency or self.policy.default_currency).upper()
        try:
            prize = Decimal(str(prize_amount))
        except InvalidOperation:
            raise ValidationError("prize_amount", f"not a number: {prize_amount!r}", operation)
        if not prize.is_finite() or prize <= 0:
            raise ValidationError("prize_amount", "must be positive", operation)

        precision = self.policy.precision_for(currency)
        if prize != prize.quantize(Decimal(1).scaleb(-precision)):
            raise ValidationError(
                "prize_amount",
                f"{currency} allows at most {precision} decimal places",
                operation,
            )

        if model_a_id == model_b_id:
            raise ValidationError("model_b_id", "must differ from model_a_id", operation)

        with self.store.store_errors(operation):
            campaign = await self.store.create_campaign(
                title=title.strip(),
                sponsor_name=sponsor_name.strip(),
                sponsor_type=kind,
                prize_amount=prize,
                model_a_id=model_a_id,
                model_b_id=model_b_id,
                end_date=end_date,
                prize_currency=currency,
                description=description,
            )
        logger.info(
            f"Created campaign {campaign.id} '{campaign.title}' "
            f"({campaign.prize_amount} {campaign.prize_currency})"
        )
        return campaign

    async def list_campaigns(
        self,
        status: Optional[Union[str, CampaignStatus]] = None,
    ) -> List[Campaign]:
        """Campaigns newest first, optionally filtered by status."""
        if status is not None and not isinstance(status, CampaignStatus):
            try:
                status = CampaignStatus(str(status).lower())
            except ValueError:
                raise ValidationError("status", f"unknown campaign status {status!r}", "list_campaigns")
        with self.store.store_errors("list_campaigns"):
            return await self.store.list_campaigns(status)

    async def get_campaign_details(self, campaign_id: int) -> Dict[str, Any]:
        """
        Campaign with per-match vote counts and its reward ledger.

        Raises:
            NotFound: Campaign does not exist
        """
        operation = "get_campaign_details"
        with self.store.store_errors(operation, campaign_id):
            campaign = await self.store.get_campaign(campaign_id)
            if campaign is None:
                raise NotFound("Campaign", campaign_id, operation=operation)
            rewards = await self.store.list_rewards(campaign_id)

        details = campaign.to_dict()
        details['matches'] = [
            {'id': m.id, 'prompt': m.prompt, 'vote_count': len(m.votes)}
            for m in campaign.matches
        ]
        details['vote_count'] = campaign.vote_count()
        details['rewards'] = [r.to_dict() for r in rewards]
        details['ledger_root'] = ledger_root(campaign_id, rewards)
        return details

    async def close_campaign(self, campaign_id: int) -> CloseResult:
        """
        Close a campaign, retrying store failures with backoff.

        Raises:
            NotFound: Campaign does not exist
            InvalidState: Campaign already closed or rewarded
            TransactionFailure: Every attempt failed
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransactionFailure),
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.retry_min_wait,
                max=self.config.retry_max_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.distributor.close_campaign(campaign_id)

    # ========================================================================
    # MATCHES AND VOTES
    # ========================================================================

    async def create_match(
        self,
        prompt: str,
        model_a_id: Optional[int] = None,
        model_b_id: Optional[int] = None,
        campaign_id: Optional[int] = None,
    ) -> Match:
        """
        Create a match, optionally bound to an active campaign.

        Raises:
            ValidationError: Empty prompt
            NotFound: Campaign does not exist
            InvalidState: Campaign is not active
        """
        operation = "create_match"
        if not prompt or not prompt.strip():
            raise ValidationError("prompt", "must not be empty", operation)

        if campaign_id is not None:
            with self.store.store_errors(operation, campaign_id):
                campaign = await self.store.get_campaign(campaign_id)
            if campaign is None:
                raise NotFound("Campaign", campaign_id, operation)
            if not campaign.is_active:
                raise InvalidState(campaign_id, campaign.status, operation)
            model_a_id = model_a_id if model_a_id is not None else campaign.model_a_id
            model_b_id = model_b_id if model_b_id is not None else campaign.model_b_id

        with self.store.store_errors(operation, campaign_id):
            return await self.store.create_match(
                prompt=prompt,
                campaign_id=campaign_id,
                model_a_id=model_a_id,
                model_b_id=model_b_id,
            )

    async def record_vote(
        self,
        match_id: int,
        chosen: Union[str, Choice],
        user_id: Optional[int] = None,
        reference_score: float = 0.0,
        created_at: Optional[datetime] = None,
    ) -> Vote:
        """
        Append a vote to a match.

        Raises:
            ValidationError: Unknown choice or negative reference score
            NotFound: Match does not exist
        """
        choice = _parse_choice(chosen)
        if reference_score is None or reference_score < 0:
            raise ValidationError("reference_score", "must be >= 0", "record_vote")

        operation = "record_vote"
        with self.store.store_errors(operation):
            match = await self.store.get_match(match_id)
            if match is None:
                raise NotFound("Match", match_id, operation=operation)
            vote = await self.store.add_vote(
                match_id=match_id,
                chosen_position=choice,
                user_id=user_id,
                reference_score=float(reference_score),
                created_at=created_at,
            )
        voter = user_id if user_id is not None else "anonymous"
        logger.debug(f"Vote {vote.id} on match {match_id}: {choice.value} by {voter}")
        return vote

    # ========================================================================
    # REWARDS AND CONSISTENCY
    # ========================================================================

    async def list_user_rewards(self, user_id: int) -> List[CampaignReward]:
        """A user's ledger rows across campaigns, newest first."""
        with self.store.store_errors("list_user_rewards"):
            return await self.store.list_user_rewards(user_id)

    async def calculate_consistency_score(
        self,
        user_id: int,
        current_vote_id: Optional[int] = None,
    ) -> int:
        return await self.profiler.basic_consistency(user_id, current_vote_id)

    async def calculate_advanced_consistency_score(self, user_id: int) -> ConsistencyProfile:
        return await self.profiler.advanced_consistency(user_id)
