"""
arenarewards/metrics.py

Prometheus metrics collection for arenarewards.

Tracks campaign closes, prize volume, transaction failures and
consistency flags, and exposes them in Prometheus text format.
"""

import logging
import time
from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .rewards.distributor import CloseResult
    from .scoring.consistency import ConsistencyProfile

logger = logging.getLogger("arenarewards.metrics")


class MetricsCollector:
    """
    Prometheus metrics collector for the reward engine.

    Usage:
        from arenarewards.metrics import MetricsCollector
        from arenarewards.rewards import RewardDistributor

        metrics = MetricsCollector()
        distributor = RewardDistributor(store, metrics=metrics)

        await distributor.close_campaign(campaign_id)

        # Get metrics in Prometheus format
        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "arenarewards_campaign_closes_total": {
            "type": "counter",
            "help": "Campaign closes by resulting status",
        },
        "arenarewards_rewarded_participants_total": {
            "type": "counter",
            "help": "Participants written to reward ledgers",
        },
        "arenarewards_prize_distributed_total": {
            "type": "counter",
            "help": "Prize amount distributed, per currency",
        },
        "arenarewards_transaction_failures_total": {
            "type": "counter",
            "help": "Close transactions rolled back by store failures",
        },
        "arenarewards_consistency_flags_total": {
            "type": "counter",
            "help": "Advanced consistency flags raised",
        },
        "arenarewards_consistency_checks_total": {
            "type": "counter",
            "help": "Advanced consistency profiles computed",
        },
        "arenarewards_close_duration_seconds": {
            "type": "histogram",
            "help": "Campaign close duration in seconds",
            "buckets": [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
        },
        "arenarewards_uptime_seconds": {
            "type": "counter",
            "help": "Collector uptime in seconds",
        },
    }

    def __init__(self):
        self._start_time = time.time()

        self._closes: Dict[str, int] = defaultdict(int)
        self._participants = 0
        self._prize: Dict[str, Decimal] = defaultdict(Decimal)
        self._tx_failures = 0
        self._flags: Dict[str, int] = defaultdict(int)
        self._consistency_checks = 0

        # Histogram buckets for close duration
        self._duration_buckets = self.METRICS["arenarewards_close_duration_seconds"]["buckets"]
        self._reset_histogram()

    def _reset_histogram(self) -> None:
        self._duration_counts = {b: 0 for b in self._duration_buckets}
        self._duration_counts[float('inf')] = 0
        self._duration_sum = 0.0
        self._duration_count = 0

    def record_close(self, result: "CloseResult", duration_seconds: Optional[float] = None) -> None:
        """Record a committed campaign close."""
        self._closes[result.status.value] += 1
        self._participants += result.participants
        if result.rewards:
            self._prize[result.prize_currency] += result.prize_amount
        if duration_seconds is not None:
            self.record_close_duration(duration_seconds)

    def record_close_duration(self, duration_seconds: float) -> None:
        """Record how long a close took."""
        self._duration_sum += duration_seconds
        self._duration_count += 1

        for bucket in self._duration_buckets:
            if duration_seconds <= bucket:
                self._duration_counts[bucket] += 1
        self._duration_counts[float('inf')] += 1

    def record_transaction_failure(self) -> None:
        """Record a rolled-back close transaction."""
        self._tx_failures += 1

    def record_consistency(self, profile: "ConsistencyProfile") -> None:
        """Record an advanced consistency profile and its flags."""
        self._consistency_checks += 1
        for flag in profile.flags:
            self._flags[flag] += 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        def header(name: str) -> None:
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")

        def sample(name: str, value: Any, labels: Optional[Dict[str, str]] = None) -> None:
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")

        header("arenarewards_campaign_closes_total")
        for status in ("closed", "rewarded"):
            sample("arenarewards_campaign_closes_total", self._closes.get(status, 0), {"status": status})

        header("arenarewards_rewarded_participants_total")
        sample("arenarewards_rewarded_participants_total", self._participants)

        header("arenarewards_prize_distributed_total")
        for currency in sorted(self._prize):
            sample("arenarewards_prize_distributed_total", self._prize[currency], {"currency": currency})

        header("arenarewards_transaction_failures_total")
        sample("arenarewards_transaction_failures_total", self._tx_failures)

        header("arenarewards_consistency_checks_total")
        sample("arenarewards_consistency_checks_total", self._consistency_checks)

        header("arenarewards_consistency_flags_total")
        for flag in sorted(self._flags):
            sample("arenarewards_consistency_flags_total", self._flags[flag], {"flag": flag})

        header("arenarewards_uptime_seconds")
        sample("arenarewards_uptime_seconds", time.time() - self._start_time)

        # Close duration histogram
        if self._duration_count > 0:
            header("arenarewards_close_duration_seconds")
            # record_close_duration() already keeps bucket counts cumulative
            for bucket in self._duration_buckets:
                lines.append(
                    f'arenarewards_close_duration_seconds_bucket{{le="{bucket}"}} '
                    f'{self._duration_counts[bucket]}'
                )
            lines.append(
                f'arenarewards_close_duration_seconds_bucket{{le="+Inf"}} '
                f'{self._duration_counts[float("inf")]}'
            )
            lines.append(f"arenarewards_close_duration_seconds_sum {self._duration_sum}")
            lines.append(f"arenarewards_close_duration_seconds_count {self._duration_count}")

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON output).

        Returns:
            Dictionary of metric values
        """
        return {
            "closes": dict(self._closes),
            "rewarded_participants": self._participants,
            "prize_distributed": {k: str(v) for k, v in self._prize.items()},
            "transaction_failures": self._tx_failures,
            "consistency_checks": self._consistency_checks,
            "consistency_flags": dict(self._flags),
            "close_count": self._duration_count,
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._closes.clear()
        self._participants = 0
        self._prize.clear()
        self._tx_failures = 0
        self._flags.clear()
        self._consistency_checks = 0
        self._reset_histogram()
