"""
tests/test_metrics.py

Unit tests for the Prometheus metrics collector.
"""

from decimal import Decimal

import pytest

from arenarewards.metrics import MetricsCollector
from arenarewards.models import CampaignStatus
from arenarewards.rewards.distributor import CloseResult
from arenarewards.scoring.consistency import ConsistencyProfile


@pytest.fixture
def metrics():
    return MetricsCollector()


def close_result(status, participants=0, prize="100.00", currency="USD", rewards=None):
    return CloseResult(
        campaign_id=1,
        status=status,
        participants=participants,
        prize_amount=Decimal(prize),
        prize_currency=currency,
        rewards=rewards or [],
    )


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_initial_output_has_all_counters(self, metrics):
        output = metrics.collect()

        assert "# TYPE arenarewards_campaign_closes_total counter" in output
        assert 'arenarewards_campaign_closes_total{status="rewarded"} 0' in output
        assert "arenarewards_transaction_failures_total 0" in output
        # Histogram only appears once something was recorded
        assert "arenarewards_close_duration_seconds_bucket" not in output

    def test_record_close_rewarded(self, metrics):
        rewards = [object(), object()]
        metrics.record_close(
            close_result(CampaignStatus.REWARDED, participants=2, rewards=rewards),
            duration_seconds=0.02,
        )
        output = metrics.collect()

        assert 'arenarewards_campaign_closes_total{status="rewarded"} 1' in output
        assert "arenarewards_rewarded_participants_total 2" in output
        assert 'arenarewards_prize_distributed_total{currency="USD"} 100.00' in output
        assert 'arenarewards_close_duration_seconds_bucket{le="0.025"} 1' in output
        assert 'arenarewards_close_duration_seconds_bucket{le="0.01"} 0' in output
        assert 'arenarewards_close_duration_seconds_bucket{le="+Inf"} 1' in output

    def test_zero_consensus_close_distributes_nothing(self, metrics):
        metrics.record_close(close_result(CampaignStatus.CLOSED))
        stats = metrics.get_stats()

        assert stats['closes'] == {'closed': 1}
        assert stats['prize_distributed'] == {}

    def test_prize_per_currency(self, metrics):
        rewards = [object()]
        metrics.record_close(close_result(CampaignStatus.REWARDED, 1, "10.50", "EUR", rewards))
        metrics.record_close(close_result(CampaignStatus.REWARDED, 1, "4.50", "EUR", rewards))
        metrics.record_close(close_result(CampaignStatus.REWARDED, 1, "7", "USD", rewards))

        assert metrics.get_stats()['prize_distributed'] == {'EUR': '15.00', 'USD': '7'}

    def test_consistency_flags(self, metrics):
        metrics.record_consistency(ConsistencyProfile(user_id=1, flags=["high_bias", "too_fast"]))
        metrics.record_consistency(ConsistencyProfile(user_id=2, flags=["too_fast"]))
        output = metrics.collect()

        assert "arenarewards_consistency_checks_total 2" in output
        assert 'arenarewards_consistency_flags_total{flag="too_fast"} 2' in output
        assert 'arenarewards_consistency_flags_total{flag="high_bias"} 1' in output

    def test_reset_counters(self, metrics):
        metrics.record_transaction_failure()
        metrics.record_close_duration(1.0)
        metrics.reset_counters()

        stats = metrics.get_stats()
        assert stats['transaction_failures'] == 0
        assert stats['close_count'] == 0
