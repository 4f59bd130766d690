"""Tests for subscan.dedup — batch dedup, known-name filtering, fuzzy duplicates."""

import random
from decimal import Decimal

from subscan.dedup import (
    amounts_within,
    candidate_key,
    dedupe_candidates,
    drop_known,
    is_fuzzy_duplicate,
    known_index,
)
from subscan.extractor import extract_candidates
from subscan.models import Candidate, StatementRow


def _cand(name: str, amount: str) -> Candidate:
    return Candidate(name=name, reference_text=f"{name} {amount}", amount=Decimal(amount))


class TestDedupeCandidates:
    """Tests for exact name/amount dedup within a batch."""

    def test_key_format(self):
        assert candidate_key("Netflix", Decimal("10.5")) == "netflix__10.50"

    def test_first_occurrence_wins(self):
        first = _cand("Gym", "30.00")
        second = Candidate(name="GYM", reference_text="other", amount=Decimal("30.00"))
        result = dedupe_candidates([first, second, _cand("Spotify", "11.99")])
        assert result == [first, _cand("Spotify", "11.99")]

    def test_same_name_different_amount_kept(self):
        assert len(dedupe_candidates([_cand("Apple", "0.99"), _cand("Apple", "2.99")])) == 2

    def test_order_independent(self):
        """The same unordered set of lines yields the same candidate keys."""
        lines = [
            "Gym membership 30.00",
            "Gym membership 30.00",
            "Headspace annual renewal 49.99",
            "Cloud storage plan 2.99",
            "Cloud storage plan 2.99",
            "News premium 7.00",
        ]
        expected = None
        rng = random.Random(7)
        for _ in range(5):
            shuffled = lines[:]
            rng.shuffle(shuffled)
            rows = [StatementRow(line) for line in shuffled]
            keys = {candidate_key(c.name, c.amount) for c in dedupe_candidates(extract_candidates(rows))}
            if expected is None:
                expected = keys
            assert keys == expected
        assert len(expected) == 4


class TestKnownIndex:
    """Tests for the injected name -> amount lookup."""

    def test_names_and_aliases_lowercased(self, make_item):
        item = make_item("Netflix", "10.99", aliases=("NETFLIX.COM",))
        assert known_index([item]) == {
            "netflix": Decimal("10.99"),
            "netflix.com": Decimal("10.99"),
        }

    def test_first_item_wins(self, make_item):
        index = known_index([make_item("Gym", "30.00"), make_item("gym", "45.00")])
        assert index == {"gym": Decimal("30.00")}


class TestDropKnown:
    """Tests for dropping candidates that overlap tracked names."""

    def test_substring_either_direction(self):
        known = {"netflix": Decimal("10.99"), "gym membership": Decimal("30.00")}
        candidates = [_cand("Netflix Premium", "15.99"), _cand("Gym", "30.00"), _cand("Spotify", "11.99")]
        assert [c.name for c in drop_known(candidates, known)] == ["Spotify"]

    def test_accepts_plain_names(self):
        assert drop_known([_cand("Spotify", "11.99")], ["spotify"]) == []

    def test_nothing_known(self):
        candidates = [_cand("Spotify", "11.99")]
        assert drop_known(candidates, {}) == candidates


class TestFuzzyDuplicate:
    """Tests for the save-time duplicate check."""

    def test_amounts_within_tolerance(self):
        assert amounts_within(Decimal("9.50"), Decimal("10.00"))
        assert not amounts_within(Decimal("9.00"), Decimal("10.00"))

    def test_non_positive_amount_never_within(self):
        assert not amounts_within(Decimal("0"), Decimal("0"))

    def test_same_name_close_amount(self):
        known = {"netflix": Decimal("10.99")}
        assert is_fuzzy_duplicate("Netflix", Decimal("10.99"), known)
        assert is_fuzzy_duplicate(" NETFLIX ", Decimal("11.49"), known)

    def test_same_name_distant_amount(self):
        assert not is_fuzzy_duplicate("Netflix", Decimal("15.99"), {"netflix": Decimal("10.99")})

    def test_name_must_match_exactly(self):
        assert not is_fuzzy_duplicate("Netflix UK", Decimal("10.99"), {"netflix": Decimal("10.99")})

    def test_custom_tolerance(self):
        known = {"gym": Decimal("30.00")}
        assert is_fuzzy_duplicate("Gym", Decimal("40.00"), known, tolerance=Decimal("0.30"))
