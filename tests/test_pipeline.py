"""Integration tests for subscan.pipeline — scan, promotion, and confirmation."""

from datetime import date
from decimal import Decimal

import pytest

from subscan.models import (
    ANNUAL,
    MONTHLY,
    UNKNOWN,
    Candidate,
    EngineConfig,
    ParsedResult,
    generate_item_id,
)
from subscan.pipeline import confirm_results, promote_candidate, scan

VIRGIN_ACTIVE_TEXT = "3rd Jan\nVirgin Active Membership DD\n92.00 1,204.17\n"
PURE_FIT_TEXT = (
    "03/01/2025 DD PURE-FIT membership 30.00\n"
    "03/02/2025 DD PURE-FIT membership 30.00\n"
)
CLUB_TEXT = "03/01/2025 Club 24 membership 19.99\n03/02/2025 Club 24 membership 19.99\n"


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


class TestScan:
    """End-to-end scans of decoded statement text."""

    def test_statement(self, statement_text, today):
        result = scan(statement_text, today=today)
        assert result.errors == []
        assert result.warnings == []
        assert [(r.name, r.cost, r.confidence) for r in result.results] == [
            ("Netflix", Decimal("10.99"), 100),
            ("City Council", Decimal("120.00"), 70),
            ("Gym Membership", Decimal("30.00"), 65),
        ]
        assert all(r.frequency == MONTHLY for r in result.results)
        assert [(c.name, c.amount, c.frequency) for c in result.candidates] == [
            ("Headspace annual renewal", Decimal("49.99"), ANNUAL),
        ]

    def test_statement_stats(self, statement_text, today):
        stats = scan(statement_text, today=today).stats
        assert stats.detected_count == 3
        assert stats.monthly_total == Decimal("160.99")
        assert stats.annual_total == Decimal("0.00")
        assert stats.avg_confidence == pytest.approx((100 + 70 + 65) / 3)

    def test_known_items_filter_and_warn(self, statement_text, today, make_item):
        known = [
            make_item("Gym Membership", "30.00"),
            make_item("Headspace", "49.99", ANNUAL),
        ]
        result = scan(statement_text, known_items=known, today=today)
        assert result.candidates == []
        assert "Skipped 1 candidate(s) matching tracked items" in result.warnings
        assert "Already tracked: Gym Membership" in result.warnings

    def test_duplicate_candidates_removed(self, today):
        text = "Headspace annual renewal 49.99\nHeadspace annual renewal 49.99\n"
        result = scan(text, today=today)
        assert len(result.candidates) == 1
        assert result.warnings == ["Removed 1 duplicate candidate(s)"]

    def test_candidate_cap_applied_after_dedup(self, today):
        lines = [f"Club {i:02d} membership {10 + i}.00" for i in range(5)]
        text = "\n".join(lines + lines) + "\n"
        result = scan(text, config=EngineConfig(candidate_limit=3), today=today)
        assert [c.name for c in result.candidates] == [
            "Club 00 membership",
            "Club 01 membership",
            "Club 02 membership",
        ]
        assert result.warnings == [
            "Removed 5 duplicate candidate(s)",
            "Showing the first 3 of 5 candidates",
            "3 item(s) have an unknown frequency; confirm during review",
        ]

    def test_empty_text_is_an_error(self, today):
        result = scan("", today=today)
        assert result.errors == ["No statement rows found in the input text"]
        assert result.results == []
        assert result.candidates == []

    def test_nothing_recurring(self, today):
        result = scan("05/01/2025 SALARY ACME LTD 2,000.00 3,204.17\n", today=today)
        assert result.errors == []
        assert result.warnings == ["No recurring charges detected"]


class TestDetectedRowsNotRepeated:
    """Rows behind a detection never come back as candidates."""

    def test_punctuated_merchant(self, today):
        result = scan(PURE_FIT_TEXT, today=today)
        assert [(r.name, r.cost) for r in result.results] == [
            ("Pure Fit Membership", Decimal("30.00")),
        ]
        assert result.candidates == []

    def test_merchant_with_digits(self, today):
        result = scan(CLUB_TEXT, today=today)
        assert [r.name for r in result.results] == ["Club Membership"]
        assert result.candidates == []

    def test_confirming_everything_saves_one_item(self, today):
        result = scan(PURE_FIT_TEXT, today=today)
        reviewed = result.results + [promote_candidate(c) for c in result.candidates]
        outcome = confirm_results(reviewed, today=today)
        assert outcome.saved == 1
        assert [i.name for i in outcome.items] == ["Pure Fit Membership"]

    def test_unconsumed_rows_still_extracted(self, today):
        result = scan(PURE_FIT_TEXT + "20/01/2025 Headspace annual renewal 49.99\n", today=today)
        assert [c.name for c in result.candidates] == ["Headspace annual renewal"]


class TestVirginActive:
    """A wrapped membership row, with and without the service table."""

    def test_known_service_detected(self, today):
        result = scan(VIRGIN_ACTIVE_TEXT, today=today)
        assert result.candidates == []
        assert len(result.results) == 1
        detection = result.results[0]
        assert detection.name == "Virgin Active"
        assert detection.cost == Decimal("92.00")
        assert detection.category == "Fitness"
        assert detection.frequency == MONTHLY
        assert detection.last_used == date(2025, 1, 3)

    def test_candidate_to_item(self, today):
        result = scan(VIRGIN_ACTIVE_TEXT, config=EngineConfig(services=()), today=today)
        assert result.results == []
        assert len(result.candidates) == 1
        candidate = result.candidates[0]
        assert candidate.name == "Virgin Active Membership"
        assert candidate.amount == Decimal("92.00")
        assert candidate.frequency == UNKNOWN
        assert result.warnings == ["1 item(s) have an unknown frequency; confirm during review"]

        reviewed = promote_candidate(candidate)
        assert reviewed.frequency == UNKNOWN
        assert reviewed.confidence is None

        outcome = confirm_results([reviewed], today=today)
        assert outcome.saved == 1
        item = outcome.items[0]
        assert item.frequency == MONTHLY
        assert item.raw_amount == Decimal("92.00")
        assert item.monthly_cost == Decimal("92.00")


# ---------------------------------------------------------------------------
# promote_candidate
# ---------------------------------------------------------------------------


class TestPromoteCandidate:
    """Tests for turning a candidate into an editable result."""

    def test_large_unknown_becomes_annual(self):
        candidate = Candidate("Car insurance plan", "Car insurance plan 1200.00", Decimal("1200.00"))
        reviewed = promote_candidate(candidate)
        assert reviewed.name == "Car insurance plan"
        assert reviewed.cost == Decimal("1200.00")
        assert reviewed.frequency == ANNUAL
        assert reviewed.confidence is None

    def test_known_frequency_kept(self):
        candidate = Candidate("Headspace", "Headspace annual renewal 49.99", Decimal("49.99"), ANNUAL)
        assert promote_candidate(candidate).frequency == ANNUAL

    def test_custom_threshold(self):
        candidate = Candidate("Storage plan", "Storage plan 600.00", Decimal("600.00"))
        config = EngineConfig(annual_threshold=Decimal("500"))
        assert promote_candidate(candidate, config).frequency == ANNUAL


# ---------------------------------------------------------------------------
# confirm_results
# ---------------------------------------------------------------------------


def _netflix(**kwargs) -> ParsedResult:
    defaults = dict(
        name="Netflix",
        cost=Decimal("10.99"),
        category="Entertainment",
        frequency=MONTHLY,
        next_billing=date(2025, 1, 3),
        last_used=date(2024, 12, 3),
        confidence=100,
        billing_day=3,
    )
    defaults.update(kwargs)
    return ParsedResult(**defaults)


class TestConfirmResults:
    """Tests for turning reviewed results into recurring items."""

    def test_monthly_projection(self, today):
        outcome = confirm_results([_netflix()], today=today)
        assert outcome.saved == 1
        assert outcome.skipped == 0
        item = outcome.items[0]
        assert item.id == generate_item_id("Netflix", Decimal("10.99"), MONTHLY)
        assert item.category == "Entertainment"
        assert item.billing_day == 3
        assert item.next_billing_date == date(2025, 2, 3)
        assert item.last_used_date == today
        assert item.sign_up_date == today

    def test_annual_projection_from_next_billing(self, today):
        result = ParsedResult(
            "Adobe", Decimal("120.00"), frequency=ANNUAL, next_billing=date(2024, 3, 15)
        )
        item = confirm_results([result], today=today).items[0]
        assert item.next_billing_date == date(2025, 3, 15)
        assert item.billing_day == 15

    def test_annual_projection_from_last_used(self, today):
        result = ParsedResult(
            "Domain", Decimal("12.00"), frequency=ANNUAL, last_used=date(2024, 6, 1), billing_day=1
        )
        item = confirm_results([result], today=today).items[0]
        assert item.next_billing_date == date(2025, 6, 1)

    def test_unknown_frequency_saved_as_monthly(self, today):
        result = ParsedResult("Window cleaner", Decimal("15.00"), billing_day=20)
        item = confirm_results([result], today=today).items[0]
        assert item.frequency == MONTHLY
        assert item.billing_day == 20
        assert item.next_billing_date == today

    def test_invalid_amount_skipped(self, today):
        outcome = confirm_results(
            [ParsedResult("Bad", Decimal("0")), ParsedResult("Worse", Decimal("NaN"))],
            today=today,
        )
        assert outcome.saved == 0
        assert outcome.skipped == 2
        assert outcome.warnings[0].startswith("Skipped 'Bad': invalid amount")
        assert outcome.warnings[1].startswith("Skipped 'Worse': invalid amount")

    def test_existing_duplicate_skipped(self, today, make_item):
        existing = [make_item("Netflix", "10.99")]
        outcome = confirm_results([_netflix(cost=Decimal("11.49"))], existing=existing, today=today)
        assert outcome.saved == 0
        assert outcome.warnings == ["Skipped 'Netflix': already tracked"]

    def test_distant_amount_not_a_duplicate(self, today, make_item):
        existing = [make_item("Netflix", "10.99")]
        outcome = confirm_results([_netflix(cost=Decimal("15.99"))], existing=existing, today=today)
        assert outcome.saved == 1

    def test_duplicate_within_batch_skipped(self, today):
        spotify = ParsedResult("Spotify", Decimal("11.99"), frequency=MONTHLY)
        outcome = confirm_results([spotify, spotify], today=today)
        assert outcome.saved == 1
        assert outcome.skipped == 1

    def test_weekend_flag_and_existing_untouched(self, today, make_item):
        existing = [make_item("Gym", "30.00")]
        before = repr(existing)
        item = confirm_results(
            [_netflix()], existing=existing, today=today, shift_if_weekend=True
        ).items[0]
        assert item.shift_if_weekend is True
        assert repr(existing) == before
