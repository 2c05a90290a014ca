"""
tests/conftest.py

Shared fixtures: vote/match builders and a seeded campaign factory.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from arenarewards.models import Choice, Match, SponsorType, Vote
from arenarewards.storage.memory import MemoryStore

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def make_vote():
    """Build a Vote; `seconds` offsets created_at from BASE_TIME."""
    counter = iter(range(1, 100000))

    def _make(choice, user_id=None, match_id=1, reference_score=0.0, seconds=0, vote_id=None):
        return Vote(
            id=vote_id if vote_id is not None else next(counter),
            match_id=match_id,
            chosen_position=Choice(choice),
            user_id=user_id,
            reference_score=reference_score,
            created_at=BASE_TIME + timedelta(seconds=seconds),
        )
    return _make


@pytest.fixture
def make_match(make_vote):
    """Build a Match from (choice, user_id) pairs."""
    def _make(match_id, ballots):
        votes = [
            make_vote(choice, user_id=user_id, match_id=match_id, seconds=i)
            for i, (choice, user_id) in enumerate(ballots)
        ]
        return Match(id=match_id, prompt=f"prompt {match_id}", votes=votes)
    return _make


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def seed_campaign():
    """
    Coroutine factory creating a campaign plus matches and votes in a store.

    matches is a list of ballots; each ballot is a list of (choice, user_id).
    """
    async def _seed(store, matches=(), prize="100.00", currency="USD"):
        campaign = await store.create_campaign(
            title="Arena Cup",
            sponsor_name="Acme",
            sponsor_type=SponsorType.COMPANY,
            prize_amount=Decimal(prize),
            model_a_id=1,
            model_b_id=2,
            end_date=BASE_TIME + timedelta(days=30),
            prize_currency=currency,
        )
        offset = 0
        for ballots in matches:
            match = await store.create_match(
                "Which answer is better?",
                campaign_id=campaign.id,
                model_a_id=1,
                model_b_id=2,
            )
            for choice, user_id in ballots:
                await store.add_vote(
                    match.id,
                    Choice(choice),
                    user_id=user_id,
                    created_at=BASE_TIME + timedelta(seconds=offset),
                )
                offset += 1
        return campaign
    return _seed
