"""
arenarewards/rewards/ledger.py

Merkle commitment over a campaign's reward ledger.

Every ledger row becomes a leaf hash; the root is returned with the close
result so anyone holding the ledger can check it was not altered after
the campaign closed, and a single participant can verify their own row
with a proof.

Usage:
    from arenarewards.rewards.ledger import ledger_root, verify_ledger

    root = ledger_root(campaign_id, rewards)
    assert verify_ledger(campaign_id, rewards, root)
"""

import hashlib
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Tuple


def canonical_decimal(value: Decimal) -> str:
    """Representation independent of trailing zeros ('3.750000' -> '3.75')."""
    text = format(Decimal(value).normalize(), "f")
    return text if text != "-0" else "0"


def hash_ledger_row(
    campaign_id: Any,
    user_id: Any,
    consensus_score: Decimal,
    total_votes: int,
    reward_amount: Decimal,
) -> str:
    """Create deterministic hash for a ledger row."""
    leaf_data = (
        f"{campaign_id}:{user_id}:{canonical_decimal(consensus_score)}:"
        f"{total_votes}:{canonical_decimal(reward_amount)}"
    )
    return hashlib.sha256(leaf_data.encode()).hexdigest()


class LedgerTree:
    """
    Merkle tree over ledger row hashes.

    Odd levels duplicate their last node.
    """

    def __init__(self, leaves: Optional[List[str]] = None):
        self.leaves = leaves or []
        self.tree: List[str] = []
        self.root: str = ""

        if self.leaves:
            self._build()

    @staticmethod
    def _combine(left: str, right: str) -> str:
        return hashlib.sha256((left + right).encode()).hexdigest()

    def _next_level(self, level: List[str]) -> List[str]:
        next_level = []
        for i in range(0, len(level), 2):
            left = level[i]
            right = level[i + 1] if i + 1 < len(level) else left
            next_level.append(self._combine(left, right))
        return next_level

    def _build(self) -> None:
        """Build the tree bottom-up from the leaves."""
        if not self.leaves:
            self.root = ""
            self.tree = []
            return

        self.tree = list(self.leaves)
        current_level = list(self.leaves)
        while len(current_level) > 1:
            current_level = self._next_level(current_level)
            self.tree.extend(current_level)

        self.root = current_level[0]

    def get_proof(self, leaf_index: int) -> List[Tuple[str, str]]:
        """
        Get merkle proof for a leaf.

        Returns:
            List of (direction, sibling_hash) tuples, empty for a bad index
        """
        if leaf_index < 0 or leaf_index >= len(self.leaves):
            return []

        proof = []
        current_level = list(self.leaves)
        idx = leaf_index

        while len(current_level) > 1:
            if idx % 2 == 0:
                sibling_idx, direction = idx + 1, "right"
            else:
                sibling_idx, direction = idx - 1, "left"

            if sibling_idx < len(current_level):
                proof.append((direction, current_level[sibling_idx]))
            else:
                proof.append((direction, current_level[idx]))

            current_level = self._next_level(current_level)
            idx //= 2

        return proof

    @staticmethod
    def verify_proof(
        leaf_hash: str,
        root: str,
        proof: List[Tuple[str, str]],
    ) -> bool:
        """Check a proof produced by get_proof() against a root."""
        current_hash = leaf_hash
        for direction, sibling_hash in proof:
            if direction == "left":
                current_hash = LedgerTree._combine(sibling_hash, current_hash)
            else:
                current_hash = LedgerTree._combine(current_hash, sibling_hash)
        return current_hash == root


def ledger_leaves(campaign_id: Any, rows: Iterable[Any]) -> List[str]:
    """
    Leaf hashes for ledger rows, ordered by user id.

    Rows may be RewardAllocation or CampaignReward objects; anything with
    user_id, consensus_score, total_votes and reward_amount works.
    """
    ordered = sorted(rows, key=lambda r: str(r.user_id))
    return [
        hash_ledger_row(
            campaign_id,
            row.user_id,
            row.consensus_score,
            row.total_votes,
            row.reward_amount,
        )
        for row in ordered
    ]


def ledger_root(campaign_id: Any, rows: Iterable[Any]) -> str:
    """Merkle root of a campaign ledger ('' for an empty ledger)."""
    return LedgerTree(ledger_leaves(campaign_id, rows)).root


def verify_ledger(campaign_id: Any, rows: Iterable[Any], root: str) -> bool:
    """True if the rows hash to the given root."""
    return ledger_root(campaign_id, rows) == root
