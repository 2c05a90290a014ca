"""
arenarewards.rewards - Prize allocation, ledger commitment and campaign close.
"""

from .allocation import RewardAllocation, allocate_prize, minor_unit
from .distributor import CloseResult, RewardDistributor, close_campaign
from .ledger import LedgerTree, hash_ledger_row, ledger_root, verify_ledger

__all__ = [
    "RewardAllocation",
    "allocate_prize",
    "minor_unit",
    "CloseResult",
    "RewardDistributor",
    "close_campaign",
    "LedgerTree",
    "hash_ledger_row",
    "ledger_root",
    "verify_ledger",
]
