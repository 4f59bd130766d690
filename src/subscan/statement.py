"""Token-level helpers for free-text bank statements.

Statements decoded from PDFs arrive as loosely wrapped lines such as::

    3rd Jan Virgin Active Membership DD 92.00 1,204.17
    03/01/2025 CARD PAYMENT TO NETFLIX.COM 10.99

This module recognizes the pieces of such lines -- date tokens, money
amounts, merchant text -- and is shared by the line reconstructor, the
candidate extractor, and the known-service classifier. All functions are
pure.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
_MONTH_WORD = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

# "3rd Jan", "27 Jul" at the start of a line.
_ORDINAL_DATE_START_RE = re.compile(
    rf"^\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTH_WORD}\b", re.IGNORECASE
)
# 03/01/2025, 3-1-25 anywhere in a line.
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})[-/](\d{2})[-/](\d{2})\b")
_ORDINAL_DATE_RE = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?[\s\-]+({_MONTH_WORD})\b(?:[\s\-]+(\d{{4}}|\d{{2}})(?![\d.,]))?",
    re.IGNORECASE,
)
_LEADING_DATE_RE = re.compile(
    rf"^\s*(?:\d{{4}}-\d{{2}}-\d{{2}}"
    rf"|\d{{1,2}}[/\-]\d{{1,2}}[/\-]\d{{2,4}}"
    rf"|\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTH_WORD}(?:\s+\d{{4}}|\s+\d{{2}}(?![\d.,]))?)\b\s*",
    re.IGNORECASE,
)
_YEAR_RE = re.compile(r"\b(20\d{2})\b")

# A price with pence: 1,204.17 or 1204.17 or 92.00
MONEY_RE = re.compile(r"(?<![\d.,])(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}(?!\d)")
_TRAILING_MONEY_RE = re.compile(r"\d{1,3}(?:,\d{3})*\.\d{2}\)?$")
_AMOUNT_TOKEN_RE = re.compile(r"£?\s*(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?(?!\d)")
_TRAILING_AMOUNTS_RE = re.compile(
    r"(?:\s*\(?[-–−]?\s*£?\s*(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)?)+\s*$"
)

_MAX_AMOUNT = Decimal("200000")
_SMALL_AMOUNT = Decimal("5")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def is_date_like(line: str) -> bool:
    """True if *line* starts a statement row.

    A line is date-like when it starts with an ordinal day and a month
    name (``"3rd Jan ..."``) or contains a numeric ``D/M/Y`` date.
    """
    return bool(_ORDINAL_DATE_START_RE.match(line.strip()) or _NUMERIC_DATE_RE.search(line))


def strip_leading_date(text: str) -> str:
    """Remove one leading date token (with an optional year) from *text*."""
    return _LEADING_DATE_RE.sub("", text, count=1).strip()


def detect_statement_year(text: str) -> int | None:
    """Return the most recent ``20xx`` year mentioned in *text*, if any."""
    years = [int(y) for y in _YEAR_RE.findall(text)]
    return max(years) if years else None


def _full_year(raw: str | None, fallback_year: int) -> int:
    if not raw:
        return fallback_year
    year = int(raw)
    return year + 2000 if len(raw) <= 2 else year


def parse_statement_date(text: str, fallback_year: int | None = None) -> date | None:
    """Parse the first statement date found in *text*.

    Supported forms, tried in order: ``2025-08-03`` / ``2025/08/03``,
    ``03/08/2025`` / ``03-08-25`` (day first), and ``27th Jul 2025`` /
    ``27 Jul`` / ``27-Jul-25``. A missing year falls back to
    *fallback_year*, or the current year.

    Returns:
        The parsed date, or ``None`` if no valid date is present.
    """
    year_default = fallback_year if fallback_year is not None else date.today().year

    m = _ISO_DATE_RE.search(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _NUMERIC_DATE_RE.search(text)
    if m:
        return _safe_date(_full_year(m.group(3), year_default), int(m.group(2)), int(m.group(1)))

    for m in _ORDINAL_DATE_RE.finditer(text):
        month_index = _MONTHS.index(m.group(2)[:3].lower()) + 1
        parsed = _safe_date(_full_year(m.group(3), year_default), month_index, int(m.group(1)))
        if parsed is not None:
            return parsed
    return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


def parse_money(token: str) -> Decimal | None:
    """Convert a money token such as ``"£1,204.17"`` to a positive Decimal."""
    cleaned = re.sub(r"[()£,\s]", "", token).replace("−", "-").replace("–", "-")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return abs(value)


def ends_with_money(text: str) -> bool:
    """True if *text* ends in a price with pence."""
    return _TRAILING_MONEY_RE.search(text.strip()) is not None


def first_money(text: str) -> re.Match[str] | None:
    """Return the first price-with-pence match in *text*."""
    return MONEY_RE.search(text)


def extract_amount(text: str) -> Decimal | None:
    """Pick the transaction amount out of a statement row.

    Statement rows often end in ``[money in] [money out] balance``. The
    heuristic looks at the tail of the row, keeps only real prices (a
    ``£`` sign or two decimals), drops tiny artefacts when a bigger value
    exists, and then:

    - with three or more values, returns the middle of the last three
      when the last one looks like a running balance (the largest);
    - with two values, returns the first when the second is much larger
      (amount followed by balance), else the smaller one;
    - otherwise returns the only value.

    Returns:
        The amount as a positive Decimal, or ``None`` if the row holds no
        usable price.
    """
    tail = text[-140:]
    values: list[Decimal] = []
    for token in _AMOUNT_TOKEN_RE.findall(tail):
        if "£" not in token and not re.search(r"\.\d{2}$", token):
            continue
        value = parse_money(token)
        if value is None or value <= 0 or value > _MAX_AMOUNT:
            continue
        values.append(value)

    if not values:
        return None

    if any(v >= _SMALL_AMOUNT for v in values):
        values = [v for v in values if v >= _SMALL_AMOUNT]

    if len(values) >= 3:
        a, b, c = values[-3:]
        if c >= max(a, b):
            return b

    if len(values) >= 2:
        prev, last = values[-2:]
        if last > prev * Decimal("1.5"):
            return prev
        return min(prev, last)

    return values[0]


# ---------------------------------------------------------------------------
# Merchant text
# ---------------------------------------------------------------------------


def strip_description(text: str) -> str:
    """Return *text* without its leading date and trailing amount columns."""
    without_date = strip_leading_date(text)
    return _TRAILING_AMOUNTS_RE.sub("", without_date).strip()


_SANITIZE_STEPS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bfaster\s*payments?\s*(?:receipt|received|to|from)\b", re.I), ""),
    (
        re.compile(
            r"^(?:CARD PAYMENT TO|BILL PAYMENT VIA FASTER PAYMENT TO|DIRECT DEBIT PAYMENT TO)\s*",
            re.I,
        ),
        "",
    ),
    (re.compile(r"\(VIA (?:APPLE|GOOGLE) PAY\)", re.I), ""),
    (re.compile(r"\bpaypal(?:\s*\*|\s+payment|\s+ecom|\s+intl)?\s*", re.I), ""),
    (re.compile(r"\bpp\*\s*", re.I), ""),
    (re.compile(r"\b(?:REF|REFERENCE|CARD|POS|CONTACTLESS|ONLINE|ECOM|E-COMMERCE)\b", re.I), ""),
    (re.compile(r"\b(?:UK|GB|GBP)\b", re.I), ""),
    (re.compile(r"\b(?:LTD|LIMITED|PLC|LLC|INC)\b", re.I), ""),
    (re.compile(r"[0-9]{2,}"), ""),
    (re.compile(r"[^a-zA-Z\s+]"), " "),
    (re.compile(r"\s+"), " "),
)


def sanitize_merchant(raw: str) -> str:
    """Reduce a raw payee string to a title-cased merchant name.

    Strips payment-rail prefixes (``CARD PAYMENT TO``), wallet and PayPal
    wrappers, references, country codes, company suffixes, and digit runs.

    Returns:
        The cleaned name, or an empty string if nothing meaningful is left.
    """
    s = raw or ""
    for pattern, replacement in _SANITIZE_STEPS:
        s = pattern.sub(replacement, s)
    words = [w[0].upper() + w[1:].lower() for w in s.strip().split(" ") if w]
    return " ".join(words)
