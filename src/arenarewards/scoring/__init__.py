"""
arenarewards.scoring - Vote tally, consensus scoring, campaign aggregation
and voter consistency profiling.
"""

from .tally import MatchTally, tally_votes, count_choices
from .consensus import ScoreDelta, score_match, majority_reward
from .aggregator import (
    CampaignAggregate,
    CampaignAggregator,
    UserCampaignScore,
    aggregate_campaign,
)
from .consistency import (
    ConsistencyLevel,
    ConsistencyProfile,
    ConsistencyProfiler,
    advanced_profile,
    basic_score,
    calculate_consistency_score,
    calculate_advanced_consistency_score,
    FLAG_HIGH_BIAS,
    FLAG_INSUFFICIENT_DATA,
    FLAG_TOO_FAST,
)

__all__ = [
    "MatchTally",
    "tally_votes",
    "count_choices",
    "ScoreDelta",
    "score_match",
    "majority_reward",
    "CampaignAggregate",
    "CampaignAggregator",
    "UserCampaignScore",
    "aggregate_campaign",
    "ConsistencyLevel",
    "ConsistencyProfile",
    "ConsistencyProfiler",
    "advanced_profile",
    "basic_score",
    "calculate_consistency_score",
    "calculate_advanced_consistency_score",
    "FLAG_HIGH_BIAS",
    "FLAG_INSUFFICIENT_DATA",
    "FLAG_TOO_FAST",
]
