"""
tests/test_distributor.py

Unit tests for campaign close and prize distribution:
- Rewarded and zero-consensus paths
- Status guard (second close, concurrent closes)
- Atomicity under store failures and timeouts
- Ledger root and metrics
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from arenarewards.config import RewardPolicy
from arenarewards.errors import InvalidState, NotFound, TransactionFailure
from arenarewards.metrics import MetricsCollector
from arenarewards.models import CampaignStatus
from arenarewards.rewards.distributor import (
    NO_CONSENSUS_MESSAGE,
    CloseResult,
    RewardDistributor,
    close_campaign,
)
from arenarewards.rewards.ledger import verify_ledger
from arenarewards.storage.base import StoreError
from arenarewards.storage.memory import MemoryTransaction


# Three users agree unanimously in one match: equal scores of 5 each
UNANIMOUS = [[("A", 1), ("A", 2), ("A", 3)]]


@pytest.fixture
def distributor(memory_store):
    return RewardDistributor(memory_store)


class TestRewardedClose:
    """Tests for closes with a positive total consensus score."""

    @pytest.mark.asyncio
    async def test_equal_scores_split_exactly(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        result = await distributor.close_campaign(campaign.id)

        assert result.status == CampaignStatus.REWARDED
        assert result.participants == 3
        assert result.total_consensus_score == Decimal("15.000000")
        assert [r.reward_amount for r in result.rewards] == [
            Decimal("33.34"), Decimal("33.33"), Decimal("33.33"),
        ]
        assert result.distributed == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_ledger_rows_and_campaign_state(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, [
            [("A", 1), ("A", 2), ("A", 3), ("B", 4)],
            [("A", 1), ("B", 2)],                      # too few votes
            [("A", None), ("B", None), ("TIE", 5)],    # no majority
        ])
        result = await distributor.close_campaign(campaign.id)

        stored = await memory_store.get_campaign(campaign.id)
        assert stored.status == CampaignStatus.REWARDED
        assert stored.closed_at == result.closed_at
        assert stored.total_votes == 9

        rewards = await memory_store.list_rewards(campaign.id)
        assert sum(r.reward_amount for r in rewards) == campaign.prize_amount
        assert {r.user_id for r in rewards} == {1, 2, 3, 4}
        by_user = {r.user_id: r for r in rewards}
        assert by_user[4].reward_amount == Decimal("0.00")
        assert by_user[4].total_votes == 1
        assert sorted((by_user[u].reward_amount for u in (1, 2, 3)), reverse=True) == [
            Decimal("33.34"), Decimal("33.33"), Decimal("33.33"),
        ]
        assert by_user[1].consensus_score == Decimal("3.750000")

    @pytest.mark.asyncio
    async def test_anonymous_voters_never_rewarded(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, [
            [("A", None), ("A", None), ("A", 1), ("B", None)],
        ])
        result = await distributor.close_campaign(campaign.id)

        assert result.participants == 1
        assert result.rewards[0].user_id == 1
        assert result.rewards[0].reward_amount == Decimal("100.00")
        assert result.total_votes == 4

    @pytest.mark.asyncio
    async def test_sum_invariant_with_uneven_scores(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, [
            [("A", 1), ("A", 2), ("B", 3)],
            [("B", 1), ("B", 3), ("B", 4), ("A", 2), ("B", 5)],
            [("TIE", 2), ("TIE", 6), ("TIE", 7)],
        ], prize="1234.57")
        await distributor.close_campaign(campaign.id)

        rewards = await memory_store.list_rewards(campaign.id)
        assert sum(r.reward_amount for r in rewards) == Decimal("1234.57")

    @pytest.mark.asyncio
    async def test_currency_precision(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS, prize="1000", currency="JPY")
        result = await distributor.close_campaign(campaign.id)

        assert [r.reward_amount for r in result.rewards] == [
            Decimal("334"), Decimal("333"), Decimal("333"),
        ]

    @pytest.mark.asyncio
    async def test_ledger_root_matches_stored_rows(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        result = await distributor.close_campaign(campaign.id)

        rewards = await memory_store.list_rewards(campaign.id)
        assert result.ledger_root
        assert verify_ledger(campaign.id, rewards, result.ledger_root)

    @pytest.mark.asyncio
    async def test_to_dict(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        data = (await distributor.close_campaign(campaign.id)).to_dict()

        assert data['campaignId'] == campaign.id
        assert data['status'] == 'rewarded'
        assert data['prizeAmount'] == '100.00'
        assert data['prizeCurrency'] == 'USD'
        assert data['participants'] == 3
        assert data['rewards'][0]['rewardRatio'] == '33.33%'
        assert data['rewards'][0]['rewardAmount'] == '33.34'
        assert data['closedAt'] is not None

    @pytest.mark.asyncio
    async def test_module_level_close(self, memory_store, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        result = await close_campaign(memory_store, campaign.id, RewardPolicy())
        assert isinstance(result, CloseResult)
        assert result.status == CampaignStatus.REWARDED


class TestZeroConsensusClose:
    """Tests for closes with nothing to distribute."""

    @pytest.mark.asyncio
    async def test_no_matches(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store)
        result = await distributor.close_campaign(campaign.id)

        assert result.status == CampaignStatus.CLOSED
        assert result.participants == 0
        assert result.rewards == []
        assert result.message == NO_CONSENSUS_MESSAGE
        assert memory_store.reward_count() == 0

    @pytest.mark.asyncio
    async def test_only_tied_and_sparse_matches(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, [
            [("A", 1), ("B", 2)],
            [("A", 1), ("B", 2), ("A", 3), ("B", 4)],
        ])
        result = await distributor.close_campaign(campaign.id)

        stored = await memory_store.get_campaign(campaign.id)
        assert stored.status == CampaignStatus.CLOSED
        assert stored.closed_at is not None
        assert stored.total_votes == 6
        assert result.to_dict()['message'] == "No rewards distributed (no consensus scores)"
        assert result.to_dict()['ledgerRoot'] == ""


class TestStatusGuard:
    """Tests for the at-most-once close guarantee."""

    @pytest.mark.asyncio
    async def test_missing_campaign(self, distributor):
        with pytest.raises(NotFound) as exc_info:
            await distributor.close_campaign(404)
        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_second_close_is_rejected(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        await distributor.close_campaign(campaign.id)

        with pytest.raises(InvalidState) as exc_info:
            await distributor.close_campaign(campaign.id)

        assert exc_info.value.status == "rewarded"
        assert "rewarded" in str(exc_info.value)
        assert memory_store.reward_count() == 3

    @pytest.mark.asyncio
    async def test_closed_campaign_is_rejected(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store)
        await distributor.close_campaign(campaign.id)

        with pytest.raises(InvalidState, match="status: closed"):
            await distributor.close_campaign(campaign.id)

    @pytest.mark.asyncio
    @pytest.mark.timeout(10)
    async def test_concurrent_closes_commit_once(self, memory_store, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        distributors = [RewardDistributor(memory_store) for _ in range(5)]

        results = await asyncio.gather(
            *(d.close_campaign(campaign.id) for d in distributors),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, CloseResult)]
        rejections = [r for r in results if isinstance(r, InvalidState)]
        assert len(successes) == 1
        assert len(rejections) == 4
        assert memory_store.reward_count() == 3

    @pytest.mark.asyncio
    async def test_lost_compare_and_swap_rolls_back(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)

        with patch.object(
            MemoryTransaction, "update_campaign_status", new=AsyncMock(return_value=False)
        ), patch.object(
            MemoryTransaction, "get_campaign_status",
            new=AsyncMock(return_value=CampaignStatus.REWARDED),
        ):
            with pytest.raises(InvalidState, match="rewarded"):
                await distributor.close_campaign(campaign.id)

        assert memory_store.reward_count() == 0


class TestAtomicity:
    """Tests for rollback on store failure and timeout."""

    @pytest.mark.asyncio
    async def test_store_unavailable(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        memory_store.available = False

        with pytest.raises(TransactionFailure) as exc_info:
            await distributor.close_campaign(campaign.id)

        assert exc_info.value.operation == "close_campaign"
        assert exc_info.value.campaign_id == campaign.id
        assert isinstance(exc_info.value.__cause__, StoreError)

    @pytest.mark.asyncio
    async def test_failure_mid_ledger_leaves_nothing(self, memory_store, distributor, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        original = MemoryTransaction.create_reward
        calls = []

        async def flaky_create_reward(self, *args, **kwargs):
            calls.append(kwargs.get('user_id'))
            if len(calls) == 2:
                raise StoreError("disk full")
            return await original(self, *args, **kwargs)

        with patch.object(MemoryTransaction, "create_reward", flaky_create_reward):
            with pytest.raises(TransactionFailure):
                await distributor.close_campaign(campaign.id)

        stored = await memory_store.get_campaign(campaign.id)
        assert stored.status == CampaignStatus.ACTIVE
        assert stored.closed_at is None
        assert memory_store.reward_count() == 0

        # Safe to retry from scratch
        result = await distributor.close_campaign(campaign.id)
        assert result.status == CampaignStatus.REWARDED
        assert memory_store.reward_count() == 3

    @pytest.mark.asyncio
    @pytest.mark.timeout(10)
    async def test_timeout_rolls_back(self, memory_store, seed_campaign):
        campaign = await seed_campaign(memory_store, UNANIMOUS)
        distributor = RewardDistributor(memory_store, transaction_timeout=0.05)
        original = MemoryTransaction.create_reward

        async def slow_create_reward(self, *args, **kwargs):
            await asyncio.sleep(1)
            return await original(self, *args, **kwargs)

        with patch.object(MemoryTransaction, "create_reward", slow_create_reward):
            with pytest.raises(TransactionFailure):
                await distributor.close_campaign(campaign.id)

        stored = await memory_store.get_campaign(campaign.id)
        assert stored.status == CampaignStatus.ACTIVE
        assert memory_store.reward_count() == 0


class TestDistributorMetrics:
    """Tests for metrics recorded by the distributor."""

    @pytest.mark.asyncio
    async def test_close_and_failure_recorded(self, memory_store, seed_campaign):
        metrics = MetricsCollector()
        distributor = RewardDistributor(memory_store, metrics=metrics)

        rewarded = await seed_campaign(memory_store, UNANIMOUS)
        empty = await seed_campaign(memory_store)
        await distributor.close_campaign(rewarded.id)
        await distributor.close_campaign(empty.id)

        failing = await seed_campaign(memory_store, UNANIMOUS)
        memory_store.available = False
        with pytest.raises(TransactionFailure):
            await distributor.close_campaign(failing.id)

        stats = metrics.get_stats()
        assert stats['closes'] == {'rewarded': 1, 'closed': 1}
        assert stats['rewarded_participants'] == 3
        assert stats['prize_distributed'] == {'USD': '100.00'}
        assert stats['transaction_failures'] == 1
        assert stats['close_count'] == 2
