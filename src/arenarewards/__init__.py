"""
arenarewards - Campaign consensus scoring and reward distribution

Turns recorded arena votes into:
- Per-match majority tallies and per-voter consensus scores
- Campaign-wide score aggregation
- An exact proportional split of a sponsor's prize pool, written as an
  immutable reward ledger in one atomic close transaction
- Voter consistency profiles (reliable, borderline, bot-like)

Usage:
    from arenarewards import CampaignService, MemoryStore

    store = MemoryStore()
    service = CampaignService(store)

    campaign = await service.create_campaign(...)
    match = await service.create_match("prompt", campaign_id=campaign.id)
    await service.record_vote(match.id, "A", user_id=1)

    result = await service.close_campaign(campaign.id)
    print(result.to_dict())

Consistency Usage:
    profile = await service.calculate_advanced_consistency_score(user_id)
    print(profile.level, profile.flags)

Metrics Usage:
    prometheus_output = service.metrics.collect()
"""

from .config import ConsistencyThresholds, RewardPolicy, StoreConfig
from .errors import (
    ArenaRewardsError,
    InvalidState,
    NotFound,
    StoreUnavailable,
    TransactionFailure,
    ValidationError,
)
from .models import (
    Campaign,
    CampaignReward,
    CampaignStatus,
    Choice,
    Match,
    SponsorType,
    Vote,
)
from .scoring import (
    CampaignAggregator,
    ConsistencyLevel,
    ConsistencyProfile,
    ConsistencyProfiler,
    calculate_consistency_score,
    calculate_advanced_consistency_score,
    tally_votes,
    score_match,
)
from .rewards import (
    CloseResult,
    RewardAllocation,
    RewardDistributor,
    allocate_prize,
    close_campaign,
    ledger_root,
    verify_ledger,
)
from .storage import ArenaStore, MemoryStore, SQLStore, StoreError
from .metrics import MetricsCollector
from .service import CampaignService

__version__ = "0.1.0"

__all__ = [
    # Config
    "ConsistencyThresholds",
    "RewardPolicy",
    "StoreConfig",
    # Errors
    "ArenaRewardsError",
    "InvalidState",
    "NotFound",
    "StoreUnavailable",
    "TransactionFailure",
    "ValidationError",
    # Models
    "Campaign",
    "CampaignReward",
    "CampaignStatus",
    "Choice",
    "Match",
    "SponsorType",
    "Vote",
    # Scoring
    "CampaignAggregator",
    "ConsistencyLevel",
    "ConsistencyProfile",
    "ConsistencyProfiler",
    "calculate_consistency_score",
    "calculate_advanced_consistency_score",
    "tally_votes",
    "score_match",
    # Rewards
    "CloseResult",
    "RewardAllocation",
    "RewardDistributor",
    "allocate_prize",
    "close_campaign",
    "ledger_root",
    "verify_ledger",
    # Storage
    "ArenaStore",
    "MemoryStore",
    "SQLStore",
    "StoreError",
    # Service
    "MetricsCollector",
    "CampaignService",
]
