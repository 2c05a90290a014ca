"""
arenarewards/models.py

Domain records for the voting arena.

Campaign, Match and Vote are read from the store; CampaignReward rows are
written exactly once per (campaign, user) pair by the close transaction
and never change afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class Choice(Enum):
    """Position a voter picked in a match."""
    A = "A"
    B = "B"
    TIE = "TIE"


class CampaignStatus(Enum):
    """Campaign lifecycle. Only `active` campaigns may be closed."""
    ACTIVE = "active"
    CLOSED = "closed"         # Closed with no measurable consensus
    REWARDED = "rewarded"     # Closed and reward ledger written


class SponsorType(Enum):
    """Kind of organisation funding a campaign."""
    COMPANY = "company"
    FOUNDATION = "foundation"
    INDIVIDUAL = "individual"


@dataclass(frozen=True)
class Vote:
    """A single vote on a match. Anonymous when user_id is None."""
    id: int
    match_id: int
    chosen_position: Choice
    user_id: Optional[int] = None
    reference_score: float = 0.0
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'match_id': self.match_id,
            'chosen_position': self.chosen_position.value,
            'user_id': self.user_id,
            'reference_score': self.reference_score,
            'created_at': _format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Vote":
        return cls(
            id=data['id'],
            match_id=data['match_id'],
            chosen_position=Choice(data['chosen_position']),
            user_id=data.get('user_id'),
            reference_score=data.get('reference_score', 0.0),
            created_at=_parse_datetime(data.get('created_at')) or utcnow(),
        )


@dataclass
class Match:
    """A prompt dispatched to up to two models, plus the votes it collected."""
    id: int
    prompt: str
    campaign_id: Optional[int] = None
    model_a_id: Optional[int] = None
    model_b_id: Optional[int] = None
    votes: List[Vote] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self, include_votes: bool = True) -> dict:
        result = {
            'id': self.id,
            'prompt': self.prompt,
            'campaign_id': self.campaign_id,
            'model_a_id': self.model_a_id,
            'model_b_id': self.model_b_id,
            'vote_count': len(self.votes),
            'created_at': _format_datetime(self.created_at),
        }
        if include_votes:
            result['votes'] = [v.to_dict() for v in self.votes]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Match":
        return cls(
            id=data['id'],
            prompt=data.get('prompt', ''),
            campaign_id=data.get('campaign_id'),
            model_a_id=data.get('model_a_id'),
            model_b_id=data.get('model_b_id'),
            votes=[Vote.from_dict(v) for v in data.get('votes', [])],
            created_at=_parse_datetime(data.get('created_at')) or utcnow(),
        )


@dataclass
class Campaign:
    """
    A sponsored prize pool tied to a pair of competing models.

    prize_amount is an exact Decimal; total_votes is denormalised and
    only set when the campaign is closed.
    """
    id: int
    title: str
    sponsor_name: str
    sponsor_type: SponsorType
    prize_amount: Decimal
    model_a_id: int
    model_b_id: int
    end_date: datetime
    prize_currency: str = "USD"
    description: Optional[str] = None
    status: CampaignStatus = CampaignStatus.ACTIVE
    closed_at: Optional[datetime] = None
    total_votes: int = 0
    created_at: datetime = field(default_factory=utcnow)
    matches: List[Match] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == CampaignStatus.ACTIVE

    def vote_count(self) -> int:
        """Votes across every match, scoring or not."""
        return sum(len(m.votes) for m in self.matches)

    def to_dict(self, include_matches: bool = False) -> dict:
        result = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'sponsor_name': self.sponsor_name,
            'sponsor_type': self.sponsor_type.value,
            'prize_amount': str(self.prize_amount),
            'prize_currency': self.prize_currency,
            'model_a_id': self.model_a_id,
            'model_b_id': self.model_b_id,
            'status': self.status.value,
            'end_date': _format_datetime(self.end_date),
            'closed_at': _format_datetime(self.closed_at),
            'total_votes': self.total_votes,
            'created_at': _format_datetime(self.created_at),
        }
        if include_matches:
            result['matches'] = [m.to_dict(include_votes=False) for m in self.matches]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Campaign":
        return cls(
            id=data['id'],
            title=data['title'],
            sponsor_name=data['sponsor_name'],
            sponsor_type=SponsorType(data['sponsor_type']),
            prize_amount=Decimal(str(data['prize_amount'])),
            model_a_id=data['model_a_id'],
            model_b_id=data['model_b_id'],
            end_date=_parse_datetime(data['end_date']),
            prize_currency=data.get('prize_currency', 'USD'),
            description=data.get('description'),
            status=CampaignStatus(data.get('status', 'active')),
            closed_at=_parse_datetime(data.get('closed_at')),
            total_votes=data.get('total_votes', 0),
            created_at=_parse_datetime(data.get('created_at')) or utcnow(),
            matches=[Match.from_dict(m) for m in data.get('matches', [])],
        )


@dataclass(frozen=True)
class CampaignReward:
    """One row of a campaign's payout ledger."""
    id: int
    campaign_id: int
    user_id: int
    consensus_score: Decimal
    total_votes: int
    reward_amount: Decimal
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'user_id': self.user_id,
            'consensus_score': str(self.consensus_score),
            'total_votes': self.total_votes,
            'reward_amount': str(self.reward_amount),
            'created_at': _format_datetime(self.created_at),
        }
