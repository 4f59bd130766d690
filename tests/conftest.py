"""Shared pytest fixtures for SubScan tests.

Provides reusable fixtures for:
- today: A fixed "current date" injected wherever the engine needs one.
- netflix_rows / statement_text: Realistic statement content with a known
  monthly service, a repeated unknown merchant, and noise rows.
- make_item: Factory for RecurringItem objects with sensible defaults.
- project_dir: A temporary directory initialized with default config files.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from subscan.config import initialize
from subscan.models import MONTHLY, RecurringItem, StatementRow, generate_item_id

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@pytest.fixture
def today() -> date:
    """A fixed current date: Friday 10 January 2025."""
    return date(2025, 1, 10)


# ---------------------------------------------------------------------------
# Statement content
# ---------------------------------------------------------------------------


@pytest.fixture
def netflix_rows() -> list[StatementRow]:
    """Three monthly Netflix card payments, each followed by a running balance."""
    return [
        StatementRow("03/01/2025 CARD PAYMENT TO NETFLIX.COM 10.99 1,204.17"),
        StatementRow("03/02/2025 CARD PAYMENT TO NETFLIX.COM 10.99 1,100.00"),
        StatementRow("03/03/2025 CARD PAYMENT TO NETFLIX.COM 10.99 990.00"),
    ]


STATEMENT_TEXT = """\
--- Page 1 ---
Statement number 000123
Sort code 11-22-33
Date Description Money In Money Out Balance
03/01/2025 CARD PAYMENT TO NETFLIX.COM 10.99 1,204.17
05/01/2025 SALARY ACME LTD 2,000.00 3,204.17
10/01/2025 DIRECT DEBIT PAYMENT TO CITY COUNCIL 120.00 3,084.17
12/01/2025
CARD PAYMENT TO TESCO STORES
45.10 3,039.07
15/01/2025 Gym membership 30.00 3,009.07
20/01/2025 Headspace annual renewal 49.99 2,959.08
--- Page 2 ---
03/02/2025 CARD PAYMENT TO NETFLIX.COM 10.99 2,998.08
10/02/2025 DIRECT DEBIT PAYMENT TO CITY COUNCIL 120.00 2,878.08
15/02/2025 Gym membership 30.00 2,848.08
"""


@pytest.fixture
def statement_text() -> str:
    """Two pages of a current-account statement.

    Contains:
    - Netflix twice (known service, monthly)
    - City Council twice (unknown merchant, stable direct debit)
    - A salary credit and a one-off Tesco payment wrapped over three lines
    - "Gym membership" twice (no known service, recurrence hint)
    - A single Headspace annual renewal (candidate only)
    - Page markers and boilerplate lines
    """
    return STATEMENT_TEXT


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@pytest.fixture
def make_item():
    """Factory for RecurringItem objects with a deterministic ID."""

    def _make(
        name: str = "Netflix",
        amount: str = "10.99",
        frequency: str = MONTHLY,
        **kwargs,
    ) -> RecurringItem:
        raw_amount = Decimal(amount)
        return RecurringItem(
            id=generate_item_id(name, raw_amount, frequency),
            name=name,
            raw_amount=raw_amount,
            frequency=frequency,
            **kwargs,
        )

    return _make


# ---------------------------------------------------------------------------
# Project directory
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Temporary directory with default ``config.toml`` and ``items.toml``."""
    project = tmp_path / "subscan-project"
    initialize(project)
    return project
