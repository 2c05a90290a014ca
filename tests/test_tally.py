"""
tests/test_tally.py

Unit tests for per-match vote tallying.
"""

from decimal import Decimal

from arenarewards.models import Choice
from arenarewards.scoring.tally import count_choices, tally_votes


class TestCountChoices:
    """Tests for count_choices()."""

    def test_counts_every_position(self, make_vote):
        votes = [make_vote("A"), make_vote("A"), make_vote("TIE")]
        counts = count_choices(votes)
        assert counts == {Choice.A: 2, Choice.B: 0, Choice.TIE: 1}

    def test_empty(self):
        assert count_choices([]) == {Choice.A: 0, Choice.B: 0, Choice.TIE: 0}


class TestTallyVotes:
    """Tests for tally_votes()."""

    def test_strict_majority(self, make_vote):
        votes = [make_vote(c) for c in ("A", "A", "B")]
        tally = tally_votes(votes)

        assert tally.has_majority
        assert tally.majority == Choice.A
        assert tally.total_votes == 3
        assert tally.majority_fraction.quantize(Decimal("0.0001")) == Decimal("0.6667")

    def test_unanimous_fraction_is_one(self, make_vote):
        tally = tally_votes([make_vote("B") for _ in range(4)])
        assert tally.majority == Choice.B
        assert tally.majority_fraction == Decimal(1)

    def test_top_two_tied_has_no_majority(self, make_vote):
        votes = [make_vote(c) for c in ("A", "A", "B", "B")]
        tally = tally_votes(votes)
        assert not tally.has_majority
        assert tally.majority is None

    def test_tie_position_can_win(self, make_vote):
        votes = [make_vote(c) for c in ("TIE", "TIE", "A")]
        assert tally_votes(votes).majority == Choice.TIE

    def test_below_minimum_votes_has_no_majority(self, make_vote):
        tally = tally_votes([make_vote("A"), make_vote("A")])
        assert not tally.has_majority
        assert tally.total_votes == 2

    def test_custom_minimum(self, make_vote):
        tally = tally_votes([make_vote("A"), make_vote("A")], min_votes=2)
        assert tally.majority == Choice.A

    def test_no_votes(self):
        tally = tally_votes([])
        assert not tally.has_majority
        assert tally.total_votes == 0
        assert tally.majority_fraction == Decimal(0)

    def test_anonymous_votes_count_toward_tally(self, make_vote):
        votes = [make_vote("A"), make_vote("A", user_id=1), make_vote("B", user_id=2)]
        tally = tally_votes(votes)
        assert tally.total_votes == 3
        assert tally.majority == Choice.A

    def test_to_dict(self, make_vote):
        tally = tally_votes([make_vote("A") for _ in range(3)])
        data = tally.to_dict()
        assert data['counts'] == {'A': 3, 'B': 0, 'TIE': 0}
        assert data['majority'] == 'A'
        assert data['majority_fraction'] == '1'
