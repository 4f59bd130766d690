"""Core data models for SubScan.

This module defines the dataclasses, constants, and default lookup tables
used throughout the engine. It has zero internal imports -- everything
depends on it, but it depends on nothing within the package.

Money is always :class:`~decimal.Decimal`; dates are :class:`datetime.date`.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

# ---------------------------------------------------------------------------
# Frequencies and schedule states
# ---------------------------------------------------------------------------

WEEKLY = "weekly"
MONTHLY = "monthly"
ANNUAL = "annual"
UNKNOWN = "unknown"
ONCE = "once"

FREQUENCIES = (WEEKLY, MONTHLY, ANNUAL, UNKNOWN)
PLANNED_FREQUENCIES = (ONCE, MONTHLY, ANNUAL)

SUPPRESSED = "suppressed"
NOT_DUE = "not_due"
DUE = "due"

CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round *amount* half-up to two decimal places."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_item_id(name: str, amount: Decimal, frequency: str) -> str:
    """Generate a deterministic recurring-item ID.

    The ID is a 12-character hex string derived from a SHA-256 hash of the
    pipe-delimited concatenation of the lowercased, stripped name, the
    amount rounded to pence, and the frequency. Re-confirming the same
    detection therefore yields the same ID.

    Args:
        name: Display name of the recurring item.
        amount: Raw billed amount.
        frequency: Billing frequency, e.g. ``"monthly"``.

    Returns:
        A 12-character lowercase hex string.
    """
    raw = f"{name.strip().lower()}|{round_money(amount)}|{frequency}"
    return hashlib.sha256(raw.encode()).hexdigest()[:12]


# ---------------------------------------------------------------------------
# Default lookup tables
# ---------------------------------------------------------------------------

DEFAULT_RECURRENCE_HINTS: tuple[str, ...] = (
    "premium",
    "membership",
    "subscribe",
    "subscription",
    "auto-renew",
    "autorenew",
    "auto renew",
    "direct debit",
    "annual",
    "renewal",
    "plan",
)

DEFAULT_NOISE_TOKENS: tuple[str, ...] = (
    "DIRECT DEBIT",
    "MASTERCARD",
    "VISA",
    "CARD",
    "POS",
    "DD",
)

DEFAULT_BOILERPLATE_PHRASES: tuple[str, ...] = (
    "important information",
    "compensation",
    "fscs",
    "account name",
    "sort code",
    "statement number",
    "page number",
    "date description money in money out balance",
    "authorised by the prudential regulation authority",
    "financial conduct authority",
    "registered office",
    "terms and conditions",
)

DEFAULT_CREDIT_HINTS: tuple[str, ...] = (
    "refund",
    "reversal",
    "chargeback",
    "interest",
    "paid in",
    "credit",
    "deposit",
    "cashback",
    "faster payments receipt",
    "faster payments received",
    "transfer from",
    "incoming",
    "salary",
    "wages",
    "hmrc",
    "benefit",
    "rebate",
    "receipt",
)


@dataclass(frozen=True)
class ServicePattern:
    """A known recurring-payment service.

    Attributes:
        pattern: Regular expression matched case-insensitively against a
            statement row.
        service: Canonical display name, e.g. ``"Netflix"``.
        category: Free-form category label, e.g. ``"Entertainment"``.
        frequency: Billing frequency assumed when neither the dates nor the
            text say otherwise. ``"unknown"`` if the service has no usual
            cadence.
        amount_split: True for merchants that bill several unrelated
            products under one name (app stores, carriers, PayPal); rows
            for these are grouped by amount as well as by name.
    """

    pattern: str
    service: str
    category: str
    frequency: str = UNKNOWN
    amount_split: bool = False


DEFAULT_SERVICES: tuple[ServicePattern, ...] = (
    ServicePattern(r"netflix", "Netflix", "Entertainment", MONTHLY),
    ServicePattern(r"spotify", "Spotify", "Music", MONTHLY),
    ServicePattern(r"prime\s*video", "Prime Video", "Video", MONTHLY),
    ServicePattern(r"amazon\s*prime(?!\s*video)", "Amazon Prime", "Video", MONTHLY),
    ServicePattern(r"disney", "Disney+", "Video", MONTHLY),
    ServicePattern(r"youtube.*premium", "YouTube Premium", "Video", MONTHLY),
    ServicePattern(
        r"apple(?:\s*\.?\s*com)?\s*/?\s*bill|itunes|apple\s*services|app\s*store",
        "Apple",
        "Software",
        MONTHLY,
        amount_split=True,
    ),
    ServicePattern(r"adobe", "Adobe", "Software", MONTHLY),
    ServicePattern(r"microsoft|office 365", "Microsoft", "Software"),
    ServicePattern(r"google\s*(?:one|play|storage)", "Google One", "Cloud Storage", MONTHLY, True),
    ServicePattern(r"dropbox", "Dropbox", "Cloud Storage"),
    ServicePattern(r"notion", "Notion", "Productivity", MONTHLY),
    ServicePattern(r"github", "GitHub", "Software"),
    ServicePattern(r"zoom", "Zoom", "Software"),
    ServicePattern(r"openai", "OpenAI", "Software", MONTHLY),
    ServicePattern(r"shopify", "Shopify", "Software", MONTHLY),
    ServicePattern(r"docker", "Docker", "Software", MONTHLY),
    ServicePattern(r"virgin.*active", "Virgin Active", "Fitness", MONTHLY),
    ServicePattern(r"puregym", "PureGym", "Fitness", MONTHLY),
    ServicePattern(r"\b(?:three|h3g)\b", "Three", "Telecom", MONTHLY, True),
    ServicePattern(r"vodafone", "Vodafone", "Telecom", MONTHLY, True),
    ServicePattern(r"\bee\b", "EE", "Telecom", MONTHLY, True),
    ServicePattern(r"\bo2\b", "O2", "Telecom", MONTHLY, True),
    ServicePattern(r"skillshare", "Skillshare", "Software", MONTHLY),
    ServicePattern(r"interview\s*query", "Interview Query", "Productivity", MONTHLY),
    ServicePattern(
        r"\b(?:linkedin|linked\s*in|lnkd)\b.*\b(?:premium|prem|subscription|subs|navigator|recruiter)\b",
        "LinkedIn Premium",
        "Productivity",
        MONTHLY,
    ),
    ServicePattern(r"cursor.*ai", "Cursor", "Software", MONTHLY),
    ServicePattern(r"overleaf|sharelatex", "Overleaf", "Software", MONTHLY),
    ServicePattern(r"paypal", "PayPal", "Other", UNKNOWN, True),
)


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """Immutable lookup tables and thresholds passed into every engine call.

    Attributes:
        recurrence_hints: Lowercase phrases at least one of which a row
            must contain to become a candidate.
        noise_tokens: Tokens stripped from candidate names
            (case-insensitive, whole words).
        boilerplate_phrases: Lowercase phrases marking statement
            boilerplate lines that are dropped before reconstruction.
        credit_hints: Lowercase phrases marking incoming money; such rows
            are never classified as recurring charges.
        services: Known-service patterns, checked in order.
        candidate_limit: Maximum number of candidates shown for review.
        reference_max_length: Maximum length of a candidate's
            ``reference_text``, including the ellipsis.
        annual_threshold: Amounts above this are assumed annual when a
            candidate with unknown frequency is promoted for review.
        amount_tolerance: Relative amount difference below which two
            same-named items are considered duplicates.
    """

    recurrence_hints: tuple[str, ...] = DEFAULT_RECURRENCE_HINTS
    noise_tokens: tuple[str, ...] = DEFAULT_NOISE_TOKENS
    boilerplate_phrases: tuple[str, ...] = DEFAULT_BOILERPLATE_PHRASES
    credit_hints: tuple[str, ...] = DEFAULT_CREDIT_HINTS
    services: tuple[ServicePattern, ...] = DEFAULT_SERVICES
    candidate_limit: int = 25
    reference_max_length: int = 120
    annual_threshold: Decimal = Decimal("1000")
    amount_tolerance: Decimal = Decimal("0.10")


@dataclass
class ExtractionConfig:
    """Settings for the document text-extraction collaborator.

    Attributes:
        provider: ``"plain"`` (read UTF-8 text files) or ``"http"``
            (post documents to a text-layer service).
        url: Endpoint of the text-layer service (``"http"`` only).
        api_key_env: Name of the environment variable holding the
            service's API key. Empty means no key is sent.
        timeout: HTTP timeout in seconds.
    """

    provider: str = "plain"
    url: str = ""
    api_key_env: str = ""
    timeout: float = 60.0


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        engine: Lookup tables and thresholds for the engine.
        extraction: Text-extraction collaborator settings.
        items_file: Path of the local item store, relative to the project
            root. Default: ``"items.toml"``.
        shift_if_weekend: Default weekend-shift flag for newly confirmed
            items.
    """

    engine: EngineConfig = field(default_factory=EngineConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    items_file: str = "items.toml"
    shift_if_weekend: bool = False


# ---------------------------------------------------------------------------
# Pipeline entities
# ---------------------------------------------------------------------------


@dataclass
class StatementRow:
    """A logical transaction-like row assembled from one or more lines."""

    text: str


@dataclass
class Candidate:
    """An unconfirmed, low-confidence recurring-charge guess.

    Attributes:
        name: Merchant name with dates and noise tokens stripped.
        reference_text: Original row text, truncated for display.
        amount: Billed amount, always positive.
        frequency: One of :data:`FREQUENCIES`.
    """

    name: str
    reference_text: str
    amount: Decimal
    frequency: str = UNKNOWN


@dataclass
class ParsedResult:
    """A structured detection ready for review.

    Attributes:
        name: Service or merchant name.
        cost: Raw billed amount (not monthly-normalized).
        category: Free-form category label.
        frequency: One of :data:`FREQUENCIES`.
        next_billing: Best guess of the next charge date, if any.
        last_used: Date of the most recent charge seen.
        confidence: 0-100, or ``None`` when the entry was not scored
            (e.g. added by the reviewer from a candidate).
        billing_day: Day of month of the most recent charge.
        sign_up: Date of the earliest charge seen.
        source_rows: Statement rows the detection was built from. Not
            part of equality or the review CSV.
    """

    name: str
    cost: Decimal
    category: str = "other"
    frequency: str = UNKNOWN
    next_billing: date | None = None
    last_used: date | None = None
    confidence: int | None = None
    billing_day: int | None = None
    sign_up: date | None = None
    source_rows: tuple[str, ...] = field(default=(), repr=False, compare=False)


@dataclass
class RecurringItem:
    """A confirmed recurring charge owned by the external record store.

    The engine reads these but never mutates them.

    Attributes:
        id: Stable identifier.
        name: Display name.
        raw_amount: Amount billed per period.
        frequency: One of :data:`FREQUENCIES`.
        category: Free-form category label.
        billing_day: Explicit day of month (1-31), if known.
        next_billing_date: Projected next charge date.
        last_used_date: Most recent charge or confirmation date.
        sign_up_date: First charge date; also the effective start.
        paused_until: A date inside the month in which the item is
            suppressed.
        shift_if_weekend: Show weekend charges on the preceding Friday.
        aliases: Other names the same item is known by (service name,
            merchant string).
    """

    id: str
    name: str
    raw_amount: Decimal
    frequency: str = MONTHLY
    category: str = "other"
    billing_day: int | None = None
    next_billing_date: date | None = None
    last_used_date: date | None = None
    sign_up_date: date | None = None
    paused_until: date | None = None
    shift_if_weekend: bool = False
    aliases: tuple[str, ...] = ()

    @property
    def monthly_cost(self) -> Decimal:
        """Monthly-equivalent cost, recomputed from amount and frequency."""
        from subscan.normalize import normalize_monthly

        return normalize_monthly(self.raw_amount, self.frequency)


@dataclass
class PlannedItem:
    """A planned expense: one-off, or recurring within optional bounds.

    Attributes:
        id: Stable identifier.
        name: Display name.
        amount: Planned amount.
        frequency: ``"once"``, ``"monthly"`` or ``"annual"``.
        category: Free-form category label.
        date: The exact date of a one-off item; reference month for an
            annual item without a start.
        day_of_month: Day used for recurring planned items. Default 1.
        start: First date of the recurrence window, if bounded.
        end: Last date of the recurrence window, if bounded.
        shift_if_weekend: Show weekend dates on the preceding Friday.
    """

    id: str
    name: str
    amount: Decimal
    frequency: str = ONCE
    category: str = "other"
    date: date | None = None
    day_of_month: int | None = None
    start: date | None = None
    end: date | None = None
    shift_if_weekend: bool = False


@dataclass
class ScheduleResult:
    """Outcome of resolving one item against one month.

    Attributes:
        state: ``"suppressed"``, ``"not_due"`` or ``"due"``.
        day: Canonical billing day within the month when due.
        display_day: Day shown on a calendar; differs from *day* only
            when a weekend shift applies.
    """

    state: str
    day: int | None = None
    display_day: int | None = None

    @property
    def occurs(self) -> bool:
        return self.state == DUE


@dataclass
class ScheduleEntry:
    """A due item placed on a calendar day."""

    name: str
    amount: Decimal
    day: int
    display_day: int
    kind: str = "recurring"
    monthly_cost: Decimal = Decimal("0.00")


@dataclass
class MonthSchedule:
    """Everything a calendar view needs for one month.

    Attributes:
        year: Calendar year.
        month: Calendar month (1-12).
        entries: Due items, ordered by display day then name.
        suppressed: Number of paused items.
        not_due: Number of items not due this month (including hidden
            past months).
        monthly_total: Sum of monthly-normalized costs of the due
            recurring items.
        planned_total: Sum of due planned amounts.
    """

    year: int
    month: int
    entries: list[ScheduleEntry] = field(default_factory=list)
    suppressed: int = 0
    not_due: int = 0
    monthly_total: Decimal = Decimal("0.00")
    planned_total: Decimal = Decimal("0.00")


@dataclass
class BatchStats:
    """Summary statistics for a parsed batch, shown to the reviewer."""

    detected_count: int = 0
    monthly_total: Decimal = Decimal("0.00")
    annual_total: Decimal = Decimal("0.00")
    avg_confidence: float = 0.0


@dataclass
class ScanResult:
    """Final output of :func:`subscan.pipeline.scan`.

    Attributes:
        results: Higher-confidence detections of known recurring rows.
        candidates: Lower-confidence guesses awaiting review.
        stats: Summary statistics over *results*.
        warnings: Non-fatal notes for the reviewer, such as removed
            duplicates or frequencies needing confirmation.
        errors: Problems that prevented part of the batch from being
            processed.
    """

    results: list[ParsedResult] = field(default_factory=list)
    candidates: list[Candidate] = field(default_factory=list)
    stats: BatchStats = field(default_factory=BatchStats)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class ConfirmResult:
    """Return type of :func:`subscan.pipeline.confirm_results`.

    Attributes:
        items: Newly created recurring items.
        saved: Number of items created.
        skipped: Number of reviewed results skipped as duplicates or
            invalid.
        warnings: One line per skipped result.
    """

    items: list[RecurringItem] = field(default_factory=list)
    saved: int = 0
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)
