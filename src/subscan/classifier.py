"""Known-service classification of reconstructed statement rows.

Rows are turned into dated charges, grouped by merchant, and each group is
either accepted as a recurring detection (:class:`~subscan.models.ParsedResult`)
or left for the lower-confidence candidate extractor.

A group is accepted when:

- it matches a known service pattern (Netflix, Spotify, ...), or
- it appears at least twice with stable amounts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from subscan.extractor import clean_name
from subscan.frequency import classify_frequency, infer_frequency_from_dates
from subscan.models import (
    UNKNOWN,
    EngineConfig,
    ParsedResult,
    ServicePattern,
    StatementRow,
    round_money,
)
from subscan.schedule import next_billing_guess
from subscan.statement import (
    detect_statement_year,
    extract_amount,
    parse_statement_date,
    sanitize_merchant,
    strip_description,
)

logger = logging.getLogger(__name__)

BALANCE_LINE_RE = re.compile(
    r"balance\s*(?:carried|brought)\s*forward|opening\s*balance|closing\s*balance"
    r"|balance\s*[cb]/f|\bb/f\b|\bc/f\b|balance\s+forward|carried\s+forward",
    re.IGNORECASE,
)
_DIRECT_DEBIT_RE = re.compile(r"\b(?:direct\s*debit|mandate\s*no)\b", re.IGNORECASE)
_MANDATE_RE = re.compile(r"\bmandate\s*no\b", re.IGNORECASE)

KNOWN_CONFIDENCE = 95
UNKNOWN_CONFIDENCE = 60
FREQUENCY_BONUS = 5
DIRECT_DEBIT_BONUS = 5

_KNOWN_VARIANCE = Decimal("0.12")
_UNKNOWN_VARIANCE = Decimal("0.06")
_MIN_SPREAD = Decimal("1")
_MIN_SINGLE_KNOWN = Decimal("2")


@dataclass
class _Charge:
    when: date
    amount: Decimal
    description: str
    text: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def match_service(text: str, services: Sequence[ServicePattern]) -> ServicePattern | None:
    """Return the first service whose pattern matches *text*, if any."""
    for service in services:
        if re.search(service.pattern, text, re.IGNORECASE):
            return service
    return None


def merchant_name(description: str, noise_tokens: Sequence[str] = ()) -> str:
    """Sanitize a payee string and drop noise tokens such as ``DD`` or ``VISA``."""
    return clean_name(sanitize_merchant(description), noise_tokens)


def _is_skipped(text: str, config: EngineConfig) -> bool:
    if match_service(text, config.services) is not None:
        return False
    lowered = text.lower()
    if BALANCE_LINE_RE.search(lowered):
        return True
    return any(hint in lowered for hint in config.credit_hints)


def _median(values: Sequence[Decimal]) -> Decimal:
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def amounts_stable(amounts: Sequence[Decimal], variance: Decimal) -> bool:
    """True if every amount lies within *variance* (at least 1 unit) of the median."""
    base = _median(amounts)
    spread = max(_MIN_SPREAD, base * variance)
    return all(abs(a - base) <= spread for a in amounts)


def _to_charges(rows: Sequence[StatementRow], config: EngineConfig, year: int) -> list[_Charge]:
    charges: list[_Charge] = []
    for row in rows:
        text = row.text
        if _is_skipped(text, config):
            continue
        when = parse_statement_date(text, fallback_year=year)
        amount = extract_amount(text)
        if when is None or amount is None:
            continue
        description = strip_description(text) or text
        charges.append(_Charge(when=when, amount=amount, description=description, text=text))
    return charges


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_rows(
    rows: Sequence[StatementRow],
    config: EngineConfig | None = None,
    today: date | None = None,
) -> list[ParsedResult]:
    """Detect recurring charges from known services and repeated merchants.

    Args:
        rows: Reconstructed statement rows.
        config: Engine configuration (service table, credit hints).
        today: Supplies the fallback year when the statement names none.

    Returns:
        One :class:`ParsedResult` per accepted merchant group, in the order
        the groups were first seen.
    """
    if config is None:
        config = EngineConfig()
    if today is None:
        today = date.today()

    year = detect_statement_year("\n".join(r.text for r in rows)) or today.year
    charges = _to_charges(rows, config, year)

    groups: dict[str, list[tuple[_Charge, ServicePattern | None]]] = {}
    for charge in charges:
        service = match_service(charge.text, config.services)
        if service is not None:
            name = service.service
        else:
            name = merchant_name(charge.description, config.noise_tokens)
        if not name:
            continue
        amount_key = str(int(charge.amount * 100)) if service and service.amount_split else "all"
        groups.setdefault(f"{name.lower()}__{amount_key}", []).append((charge, service))

    results: list[ParsedResult] = []
    for members in groups.values():
        result = _classify_group(members, config)
        if result is not None:
            results.append(result)

    logger.info(
        "Classified %d row(s) into %d charge(s) and %d detection(s)",
        len(rows),
        len(charges),
        len(results),
    )
    return results


def _classify_group(
    members: list[tuple[_Charge, ServicePattern | None]],
    config: EngineConfig,
) -> ParsedResult | None:
    charges = [c for c, _ in members]
    service = members[0][1]
    blob = " ".join(c.text for c in charges)

    amounts = [c.amount for c in charges]
    known = service is not None
    variance = _KNOWN_VARIANCE if known or _MANDATE_RE.search(blob) else _UNKNOWN_VARIANCE
    recurring = len(charges) >= 2 and amounts_stable(amounts, variance)

    if known and len(charges) < 2 and amounts[0] < _MIN_SINGLE_KNOWN:
        return None
    if not (known or recurring):
        return None

    cost = round_money(_median(amounts) if recurring else amounts[0])
    if cost <= 0:
        return None

    dates = sorted(c.when for c in charges)
    frequency = infer_frequency_from_dates(dates) if recurring else UNKNOWN
    if frequency == UNKNOWN:
        frequency = classify_frequency(blob)
    if frequency == UNKNOWN and service is not None:
        frequency = service.frequency

    confidence = KNOWN_CONFIDENCE if known else UNKNOWN_CONFIDENCE
    if frequency != UNKNOWN:
        confidence += FREQUENCY_BONUS
    if _DIRECT_DEBIT_RE.search(blob):
        confidence += DIRECT_DEBIT_BONUS

    first, last = dates[0], dates[-1]
    if service is not None:
        name = service.service
    else:
        name = merchant_name(charges[0].description, config.noise_tokens)
    return ParsedResult(
        name=name,
        cost=cost,
        category=service.category if service else "other",
        frequency=frequency,
        next_billing=next_billing_guess(last, frequency),
        last_used=last,
        confidence=min(100, confidence),
        billing_day=last.day,
        sign_up=first,
        source_rows=tuple(c.text for c in charges),
    )
