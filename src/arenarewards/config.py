"""
arenarewards/config.py

Configuration constants and data classes for arenarewards.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


# Consensus scoring
CONSENSUS_MAX = 5                   # Score for agreeing with a unanimous match
MIN_VOTES_FOR_CONSENSUS = 3         # Matches below this are never scored
SCORE_PRECISION = 6                 # Decimal places kept on per-vote deltas

# Basic consistency
CONSISTENCY_WINDOW = 10             # Most recent votes inspected
CONSISTENCY_MIN_VOTES = 3           # Fewer than this -> neutral score
HIGH_CONSISTENCY_THRESHOLD = 0.7    # matchRate >= 70% -> high
MEDIUM_CONSISTENCY_THRESHOLD = 0.5  # matchRate >= 50% -> medium

CONSISTENCY_HIGH_SCORE = 2
CONSISTENCY_MEDIUM_SCORE = 1
CONSISTENCY_LOW_SCORE = 0

# Advanced consistency
ADVANCED_WINDOW = 20
ADVANCED_MIN_VOTES = 5
BIAS_THRESHOLD = 0.9                # > 90% on one choice is suspicious
BIAS_PENALTY = 2
FAST_VOTE_SECONDS = 5.0             # Mean gap below this is suspicious
FAST_VOTE_PENALTY = 1

# Currency minor units (digits after the decimal point)
DEFAULT_CURRENCY = "USD"
DEFAULT_CURRENCY_PRECISION = 2
CURRENCY_PRECISION: Dict[str, int] = {
    "USD": 2,
    "EUR": 2,
    "KRW": 0,
    "JPY": 0,
    "USDC": 6,
    "USDT": 6,
    "ETH": 18,
}

# Storage
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///arena.db"
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_MIN_WAIT = 1.0        # seconds
DEFAULT_RETRY_MAX_WAIT = 10.0       # seconds


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


@dataclass
class ConsistencyThresholds:
    """
    Heuristic thresholds used by the consistency profiler.

    Defaults mirror the module constants; override per profiler or
    through the ARENA_* environment variables.
    """
    window: int = CONSISTENCY_WINDOW
    min_votes: int = CONSISTENCY_MIN_VOTES
    high_match_rate: float = HIGH_CONSISTENCY_THRESHOLD
    medium_match_rate: float = MEDIUM_CONSISTENCY_THRESHOLD
    advanced_window: int = ADVANCED_WINDOW
    advanced_min_votes: int = ADVANCED_MIN_VOTES
    bias_threshold: float = BIAS_THRESHOLD
    bias_penalty: int = BIAS_PENALTY
    fast_vote_seconds: float = FAST_VOTE_SECONDS
    fast_vote_penalty: int = FAST_VOTE_PENALTY

    @classmethod
    def from_env(cls) -> "ConsistencyThresholds":
        """Build thresholds from ARENA_* environment variables."""
        return cls(
            window=_env_int("ARENA_CONSISTENCY_WINDOW", CONSISTENCY_WINDOW),
            min_votes=_env_int("ARENA_CONSISTENCY_MIN_VOTES", CONSISTENCY_MIN_VOTES),
            high_match_rate=_env_float("ARENA_HIGH_MATCH_RATE", HIGH_CONSISTENCY_THRESHOLD),
            medium_match_rate=_env_float("ARENA_MEDIUM_MATCH_RATE", MEDIUM_CONSISTENCY_THRESHOLD),
            advanced_window=_env_int("ARENA_ADVANCED_WINDOW", ADVANCED_WINDOW),
            advanced_min_votes=_env_int("ARENA_ADVANCED_MIN_VOTES", ADVANCED_MIN_VOTES),
            bias_threshold=_env_float("ARENA_BIAS_THRESHOLD", BIAS_THRESHOLD),
            bias_penalty=_env_int("ARENA_BIAS_PENALTY", BIAS_PENALTY),
            fast_vote_seconds=_env_float("ARENA_FAST_VOTE_SECONDS", FAST_VOTE_SECONDS),
            fast_vote_penalty=_env_int("ARENA_FAST_VOTE_PENALTY", FAST_VOTE_PENALTY),
        )


@dataclass
class RewardPolicy:
    """Numeric policy for consensus scoring and prize splitting."""
    consensus_max: int = CONSENSUS_MAX
    min_votes_for_consensus: int = MIN_VOTES_FOR_CONSENSUS
    score_precision: int = SCORE_PRECISION
    default_currency: str = DEFAULT_CURRENCY
    currency_precision: Dict[str, int] = field(
        default_factory=lambda: dict(CURRENCY_PRECISION)
    )

    def precision_for(self, currency: Optional[str]) -> int:
        """Minor-unit digits for a currency code (case-insensitive)."""
        code = (currency or self.default_currency).upper()
        return self.currency_precision.get(code, DEFAULT_CURRENCY_PRECISION)


@dataclass
class StoreConfig:
    """Database and retry settings for the campaign store."""
    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_min_wait: float = DEFAULT_RETRY_MIN_WAIT
    retry_max_wait: float = DEFAULT_RETRY_MAX_WAIT

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Build store settings from ARENA_* environment variables."""
        return cls(
            database_url=os.getenv("ARENA_DATABASE_URL", DEFAULT_DATABASE_URL),
            echo=os.getenv("ARENA_DATABASE_ECHO", "").lower() in ("1", "true", "yes"),
            retry_attempts=_env_int("ARENA_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS),
            retry_min_wait=_env_float("ARENA_RETRY_MIN_WAIT", DEFAULT_RETRY_MIN_WAIT),
            retry_max_wait=_env_float("ARENA_RETRY_MAX_WAIT", DEFAULT_RETRY_MAX_WAIT),
        )
