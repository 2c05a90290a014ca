"""
arenarewards/storage/memory.py

In-process ArenaStore.

Transactions are serialised with an asyncio.Lock and stage their writes
until commit, so a transaction that raises leaves no trace. Reads hand out
deep copies; callers cannot mutate stored state.

Used by tests and by single-process deployments.
"""

import asyncio
import copy
import itertools
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Dict, List, Optional

from ..models import (
    Campaign,
    CampaignReward,
    CampaignStatus,
    Choice,
    Match,
    SponsorType,
    Vote,
    utcnow,
)
from .base import ArenaStore, StoreError, StoreTransaction

logger = logging.getLogger("arenarewards.storage.memory")


class MemoryTransaction(StoreTransaction):
    """Staged writes against a MemoryStore."""

    def __init__(self, store: "MemoryStore"):
        self.store = store
        self._status_updates: Dict[int, Dict] = {}
        self._rewards: List[CampaignReward] = []

    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        campaign = self.store._snapshot_campaign(campaign_id)
        if campaign is None:
            return None
        staged = self._status_updates.get(campaign_id)
        if staged:
            for key, value in staged.items():
                setattr(campaign, key, value)
        return campaign

    async def get_campaign_status(self, campaign_id: int) -> Optional[CampaignStatus]:
        staged = self._status_updates.get(campaign_id)
        if staged:
            return staged['status']
        campaign = self.store._campaigns.get(campaign_id)
        return campaign.status if campaign else None

    async def update_campaign_status(
        self,
        campaign_id: int,
        status: CampaignStatus,
        expected_status: CampaignStatus = CampaignStatus.ACTIVE,
        closed_at: Optional[datetime] = None,
        total_votes: Optional[int] = None,
    ) -> bool:
        current = await self.get_campaign_status(campaign_id)
        if current != expected_status:
            return False

        update = {'status': status}
        if closed_at is not None:
            update['closed_at'] = closed_at
        if total_votes is not None:
            update['total_votes'] = total_votes
        self._status_updates.setdefault(campaign_id, {}).update(update)
        return True

    async def create_reward(
        self,
        campaign_id: int,
        user_id: int,
        consensus_score: Decimal,
        total_votes: int,
        reward_amount: Decimal,
    ) -> CampaignReward:
        key = (campaign_id, user_id)
        if key in self.store._reward_keys or any(
            (r.campaign_id, r.user_id) == key for r in self._rewards
        ):
            raise StoreError(f"Duplicate reward for campaign {campaign_id}, user {user_id}")

        reward = CampaignReward(
            id=next(self.store._reward_ids),
            campaign_id=campaign_id,
            user_id=user_id,
            consensus_score=Decimal(consensus_score),
            total_votes=total_votes,
            reward_amount=Decimal(reward_amount),
            created_at=utcnow(),
        )
        self._rewards.append(reward)
        return reward

    def _commit(self) -> None:
        for campaign_id, update in self._status_updates.items():
            campaign = self.store._campaigns[campaign_id]
            for key, value in update.items():
                setattr(campaign, key, value)
        for reward in self._rewards:
            self.store._rewards.append(reward)
            self.store._reward_keys.add((reward.campaign_id, reward.user_id))


class MemoryStore(ArenaStore):
    """
    Dictionary-backed store.

    Set `available = False` to simulate an outage: every transaction then
    fails with StoreError before touching any data.
    """

    def __init__(self):
        self._campaigns: Dict[int, Campaign] = {}
        self._matches: Dict[int, Match] = {}
        self._votes: Dict[int, Vote] = {}
        self._rewards: List[CampaignReward] = []
        self._reward_keys: set = set()

        self._campaign_ids = itertools.count(1)
        self._match_ids = itertools.count(1)
        self._vote_ids = itertools.count(1)
        self._reward_ids = itertools.count(1)

        self._lock = asyncio.Lock()
        self.available = True

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryTransaction]:
        async with self._lock:
            if not self.available:
                raise StoreError("Store unavailable")
            tx = MemoryTransaction(self)
            yield tx
            tx._commit()

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def _match_with_votes(self, match: Match) -> Match:
        snapshot = copy.deepcopy(match)
        snapshot.votes = sorted(
            (v for v in self._votes.values() if v.match_id == match.id),
            key=lambda v: (v.created_at, v.id),
        )
        return snapshot

    def _snapshot_campaign(self, campaign_id: int) -> Optional[Campaign]:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            return None
        snapshot = copy.deepcopy(campaign)
        snapshot.matches = [
            self._match_with_votes(m)
            for m in sorted(self._matches.values(), key=lambda m: m.id)
            if m.campaign_id == campaign_id
        ]
        return snapshot

    def _check_available(self) -> None:
        if not self.available:
            raise StoreError("Store unavailable")

    # ========================================================================
    # VOTES
    # ========================================================================

    async def list_votes(self, match_id: int) -> List[Vote]:
        self._check_available()
        return sorted(
            (v for v in self._votes.values() if v.match_id == match_id),
            key=lambda v: (v.created_at, v.id),
        )

    async def list_recent_votes(
        self,
        user_id: int,
        limit: int,
        exclude_id: Optional[int] = None,
    ) -> List[Vote]:
        self._check_available()
        votes = [
            v for v in self._votes.values()
            if v.user_id == user_id and v.id != exclude_id
        ]
        votes.sort(key=lambda v: (v.created_at, v.id), reverse=True)
        return votes[:limit]

    async def add_vote(
        self,
        match_id: int,
        chosen_position: Choice,
        user_id: Optional[int] = None,
        reference_score: float = 0.0,
        created_at: Optional[datetime] = None,
    ) -> Vote:
        self._check_available()
        if match_id not in self._matches:
            raise StoreError(f"Match {match_id} does not exist")
        vote = Vote(
            id=next(self._vote_ids),
            match_id=match_id,
            chosen_position=chosen_position,
            user_id=user_id,
            reference_score=reference_score,
            created_at=created_at or utcnow(),
        )
        self._votes[vote.id] = vote
        return vote

    # ========================================================================
    # CAMPAIGNS AND MATCHES
    # ========================================================================

    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        self._check_available()
        return self._snapshot_campaign(campaign_id)

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
    ) -> List[Campaign]:
        self._check_available()
        campaigns = [
            copy.deepcopy(c) for c in self._campaigns.values()
            if status is None or c.status == status
        ]
        campaigns.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return campaigns

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
        self._check_available()
        campaign = Campaign(
            id=next(self._campaign_ids),
            title=title,
            sponsor_name=sponsor_name,
            sponsor_type=sponsor_type,
            prize_amount=Decimal(prize_amount),
            model_a_id=model_a_id,
            model_b_id=model_b_id,
            end_date=end_date,
            prize_currency=prize_currency,
            description=description,
        )
        self._campaigns[campaign.id] = campaign
        return copy.deepcopy(campaign)

    async def get_match(self, match_id: int) -> Optional[Match]:
        self._check_available()
        match = self._matches.get(match_id)
        return self._match_with_votes(match) if match else None

    async def create_match(
        self,
        prompt: str,
        campaign_id: Optional[int] = None,
        model_a_id: Optional[int] = None,
        model_b_id: Optional[int] = None,
    ) -> Match:
        self._check_available()
        match = Match(
            id=next(self._match_ids),
            prompt=prompt,
            campaign_id=campaign_id,
            model_a_id=model_a_id,
            model_b_id=model_b_id,
        )
        self._matches[match.id] = match
        return copy.deepcopy(match)

    # ========================================================================
    # LEDGER
    # ========================================================================

    async def list_rewards(self, campaign_id: int) -> List[CampaignReward]:
        self._check_available()
        rewards = [r for r in self._rewards if r.campaign_id == campaign_id]
        rewards.sort(key=lambda r: (r.reward_amount, -r.id), reverse=True)
        return rewards

    async def list_user_rewards(self, user_id: int) -> List[CampaignReward]:
        self._check_available()
        rewards = [r for r in self._rewards if r.user_id == user_id]
        rewards.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rewards

    def reward_count(self) -> int:
        """Committed ledger rows across all campaigns."""
        return len(self._rewards)
