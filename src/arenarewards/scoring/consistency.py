"""
arenarewards/scoring/consistency.py

Voter consistency (reliability) profiling.

Measures how often a user's recent votes agree with the external
reference judge, and - in the advanced profile - looks for bot-like
patterns:

    Check                      Effect
    -------------------------  -----------------------------
    reference match >= 70%     +2 (high)
    reference match >= 50%     +1 (medium)
    one choice > 90% of votes  -2, flag "high_bias"
    mean gap < 5 seconds       -1, flag "too_fast"

The final score never drops below zero. Sparse history is not an error:
the basic score is 0 and the advanced profile carries the
"insufficient_data" flag.

Profiles are informational; they do not feed the campaign prize split.

Usage:
    from arenarewards.scoring.consistency import ConsistencyProfiler

    profiler = ConsistencyProfiler(store)
    score = await profiler.basic_consistency(user_id)
    profile = await profiler.advanced_consistency(user_id)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..config import (
    CONSISTENCY_HIGH_SCORE,
    CONSISTENCY_LOW_SCORE,
    CONSISTENCY_MEDIUM_SCORE,
    ConsistencyThresholds,
)
from ..models import Choice, Vote

if TYPE_CHECKING:
    from ..metrics import MetricsCollector
    from ..storage.base import VoteStore

logger = logging.getLogger("arenarewards.scoring.consistency")

FLAG_INSUFFICIENT_DATA = "insufficient_data"
FLAG_HIGH_BIAS = "high_bias"
FLAG_TOO_FAST = "too_fast"


class ConsistencyLevel(Enum):
    """Reliability classification of a voter."""
    RELIABLE = "reliable"
    BORDERLINE = "borderline"
    BOT_LIKE = "bot_like"
    UNKNOWN = "unknown"


@dataclass
class ConsistencyProfile:
    """Advanced consistency result for one user."""
    user_id: Optional[int]
    consistency_score: int = 0
    bias: float = 0.0
    avg_response_time: float = 0.0
    flags: List[str] = field(default_factory=list)
    votes_considered: int = 0
    full_window: bool = False

    @property
    def level(self) -> ConsistencyLevel:
        if FLAG_INSUFFICIENT_DATA in self.flags:
            return ConsistencyLevel.UNKNOWN
        if FLAG_HIGH_BIAS in self.flags or FLAG_TOO_FAST in self.flags:
            return ConsistencyLevel.BOT_LIKE
        if self.consistency_score >= CONSISTENCY_HIGH_SCORE:
            return ConsistencyLevel.RELIABLE
        if self.consistency_score >= CONSISTENCY_MEDIUM_SCORE:
            return ConsistencyLevel.BORDERLINE
        # A zero score only condemns a voter once the window is full
        if self.full_window:
            return ConsistencyLevel.BOT_LIKE
        return ConsistencyLevel.UNKNOWN

    def to_dict(self) -> dict:
        """Shape returned to the HTTP layer (camelCase keys)."""
        return {
            'consistencyScore': self.consistency_score,
            'bias': self.bias,
            'avgResponseTime': self.avg_response_time,
            'flags': list(self.flags),
        }


# ============================================================================
# PURE SCORING
# ============================================================================

def reference_match_rate(votes: Sequence[Vote]) -> float:
    """Share of votes with a positive reference score."""
    if not votes:
        return 0.0
    with_ref = sum(1 for v in votes if v.reference_score > 0)
    return with_ref / len(votes)


def match_rate_score(match_rate: float, thresholds: ConsistencyThresholds) -> int:
    """Map a reference match rate to 2 / 1 / 0."""
    if match_rate >= thresholds.high_match_rate:
        return CONSISTENCY_HIGH_SCORE
    elif match_rate >= thresholds.medium_match_rate:
        return CONSISTENCY_MEDIUM_SCORE
    return CONSISTENCY_LOW_SCORE


def choice_bias(votes: Sequence[Vote]) -> float:
    """Largest single-choice share of the window."""
    if not votes:
        return 0.0
    counts = {choice: 0 for choice in Choice}
    for vote in votes:
        counts[vote.chosen_position] += 1
    return max(counts.values()) / len(votes)


def mean_vote_gap(votes: Sequence[Vote]) -> float:
    """
    Mean gap in seconds between consecutive votes.

    Votes must be ordered most recent first.
    """
    if len(votes) < 2:
        return 0.0
    gaps = [
        (votes[i - 1].created_at - votes[i].created_at).total_seconds()
        for i in range(1, len(votes))
    ]
    return sum(gaps) / len(gaps)


def basic_score(
    votes: Sequence[Vote],
    thresholds: Optional[ConsistencyThresholds] = None,
) -> int:
    """
    Basic consistency score from a recent-vote window.

    Returns 0 when the window holds fewer than `min_votes` votes or none
    of them carries a reference signal.
    """
    thresholds = thresholds or ConsistencyThresholds()
    if len(votes) < thresholds.min_votes:
        return CONSISTENCY_LOW_SCORE

    if not any(v.reference_score > 0 for v in votes):
        return CONSISTENCY_LOW_SCORE

    return match_rate_score(reference_match_rate(votes), thresholds)


def advanced_profile(
    votes: Sequence[Vote],
    thresholds: Optional[ConsistencyThresholds] = None,
    user_id: Optional[int] = None,
) -> ConsistencyProfile:
    """
    Advanced consistency profile with bias and timing checks.

    Args:
        votes: Recent votes, most recent first
        thresholds: Heuristic thresholds (defaults from config)
        user_id: Owner of the votes, for reporting

    Returns:
        ConsistencyProfile; never raises for sparse data
    """
    thresholds = thresholds or ConsistencyThresholds()

    if len(votes) < thresholds.advanced_min_votes:
        return ConsistencyProfile(
            user_id=user_id,
            flags=[FLAG_INSUFFICIENT_DATA],
            votes_considered=len(votes),
        )

    flags: List[str] = []
    score = match_rate_score(reference_match_rate(votes), thresholds)

    bias = choice_bias(votes)
    if bias > thresholds.bias_threshold:
        score -= thresholds.bias_penalty
        flags.append(FLAG_HIGH_BIAS)

    avg_response_time = mean_vote_gap(votes)
    if avg_response_time < thresholds.fast_vote_seconds:
        score -= thresholds.fast_vote_penalty
        flags.append(FLAG_TOO_FAST)

    return ConsistencyProfile(
        user_id=user_id,
        consistency_score=max(0, score),
        bias=bias,
        avg_response_time=avg_response_time,
        flags=flags,
        votes_considered=len(votes),
        full_window=len(votes) >= thresholds.advanced_window,
    )


# ============================================================================
# PROFILER
# ============================================================================

class ConsistencyProfiler:
    """
    Reads a user's recent votes from the vote store and profiles them.

    Each call is an independent read; nothing is cached or persisted.
    """

    def __init__(
        self,
        vote_store: "VoteStore",
        thresholds: Optional[ConsistencyThresholds] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.vote_store = vote_store
        self.thresholds = thresholds or ConsistencyThresholds()
        self.metrics = metrics

    async def basic_consistency(
        self,
        user_id: int,
        current_vote_id: Optional[int] = None,
    ) -> int:
        """
        Basic consistency score (0, 1 or 2) for a user.

        Args:
            user_id: Voter to profile
            current_vote_id: Vote being cast right now, excluded from the window
        """
        with self.vote_store.store_errors("basic_consistency"):
            votes = await self.vote_store.list_recent_votes(
                user_id, self.thresholds.window, exclude_id=current_vote_id
            )
        score = basic_score(votes, self.thresholds)
        logger.debug(f"User {user_id} basic consistency {score} over {len(votes)} votes")
        return score

    async def advanced_consistency(self, user_id: int) -> ConsistencyProfile:
        """Advanced consistency profile for a user."""
        with self.vote_store.store_errors("advanced_consistency"):
            votes = await self.vote_store.list_recent_votes(
                user_id, self.thresholds.advanced_window
            )
        profile = advanced_profile(votes, self.thresholds, user_id=user_id)

        if profile.level == ConsistencyLevel.BOT_LIKE and profile.flags:
            logger.info(f"User {user_id} flagged: {', '.join(profile.flags)}")
        if self.metrics:
            self.metrics.record_consistency(profile)
        return profile


async def calculate_consistency_score(
    vote_store: "VoteStore",
    user_id: int,
    current_vote_id: Optional[int] = None,
) -> int:
    """Basic consistency score with default thresholds."""
    return await ConsistencyProfiler(vote_store).basic_consistency(user_id, current_vote_id)


async def calculate_advanced_consistency_score(
    vote_store: "VoteStore",
    user_id: int,
) -> ConsistencyProfile:
    """Advanced consistency profile with default thresholds."""
    return await ConsistencyProfiler(vote_store).advanced_consistency(user_id)
