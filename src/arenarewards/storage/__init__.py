"""
arenarewards.storage - Store interfaces and implementations.

MemoryStore needs nothing beyond the standard library; SQLStore needs
SQLAlchemy and an async driver (aiosqlite, asyncpg, ...).
"""

from .base import (
    ArenaStore,
    CampaignStore,
    RewardLedger,
    StoreError,
    StoreTransaction,
    VoteStore,
)
from .memory import MemoryStore, MemoryTransaction
from .sql import SQLStore, SQLTransaction

__all__ = [
    "ArenaStore",
    "CampaignStore",
    "RewardLedger",
    "StoreError",
    "StoreTransaction",
    "VoteStore",
    "MemoryStore",
    "MemoryTransaction",
    "SQLStore",
    "SQLTransaction",
]
