"""Candidate extraction from reconstructed statement rows.

A row becomes a :class:`~subscan.models.Candidate` when it carries both a
money amount and a recurrence hint (``membership``, ``direct debit``,
``renewal`` ...). Candidates are low-confidence guesses: the reviewer
confirms, edits, or discards them.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from subscan.frequency import classify_frequency
from subscan.models import Candidate, EngineConfig, StatementRow
from subscan.statement import first_money, parse_money, strip_leading_date

ELLIPSIS = "…"


def _noise_pattern(tokens: Iterable[str]) -> re.Pattern[str]:
    # Longest first so "DIRECT DEBIT" wins over "DD"-style prefixes.
    ordered = sorted(tokens, key=len, reverse=True)
    alternatives = "|".join(r"\s+".join(map(re.escape, t.split())) for t in ordered)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


def has_recurrence_hint(text: str, hints: Iterable[str]) -> bool:
    """True if *text* contains any of the lowercase *hints*."""
    lowered = text.lower()
    return any(hint in lowered for hint in hints)


def clean_name(raw: str, noise_tokens: Iterable[str]) -> str:
    """Strip a leading date and noise tokens from a raw merchant string."""
    name = strip_leading_date(raw)
    tokens = list(noise_tokens)
    if tokens:
        name = _noise_pattern(tokens).sub(" ", name)
    name = re.sub(r"\s+", " ", name)
    return name.strip(" -*:,.")


def truncate_reference(text: str, max_length: int = 120) -> str:
    """Truncate *text* to *max_length* characters, ending with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)].rstrip() + ELLIPSIS


def matches_known(name: str, known_names: Iterable[str]) -> bool:
    """True if *name* contains, or is contained in, any known name."""
    lowered = name.lower()
    for known in known_names:
        other = known.lower().strip()
        if other and (other in lowered or lowered in other):
            return True
    return False


def extract_candidate(
    row: StatementRow,
    known_names: Iterable[str] = (),
    config: EngineConfig | None = None,
) -> Candidate | None:
    """Turn one row into a candidate, or ``None`` if the row does not qualify.

    A row is rejected when it has no price with pence, carries no
    recurrence hint, yields a cleaned name shorter than three characters,
    or names a merchant that is already known.
    """
    if config is None:
        config = EngineConfig()

    text = row.text
    match = first_money(text)
    if match is None:
        return None
    if not has_recurrence_hint(text, config.recurrence_hints):
        return None

    amount = parse_money(match.group(0))
    if amount is None or amount <= 0:
        return None

    name = clean_name(text[: match.start()], config.noise_tokens)
    if len(name) < 3:
        return None
    if matches_known(name, known_names):
        return None

    return Candidate(
        name=name,
        reference_text=truncate_reference(text, config.reference_max_length),
        amount=amount,
        frequency=classify_frequency(text),
    )


def extract_candidates(
    rows: Iterable[StatementRow],
    known_names: Iterable[str] = (),
    config: EngineConfig | None = None,
    capped: bool = True,
) -> list[Candidate]:
    """Scan *rows* for recurring-looking charges.

    Args:
        rows: Reconstructed statement rows, in statement order.
        known_names: Names already reported for this batch (e.g. the
            names of the parsed results), matched by substring
            containment in either direction.
        config: Engine configuration (hints, noise tokens, limits).
        capped: Stop after ``config.candidate_limit`` candidates, keeping
            the earliest. Pass False to collect every candidate.

    Returns:
        The candidates in the order their rows were encountered.
    """
    if config is None:
        config = EngineConfig()
    limit = config.candidate_limit if capped else None

    known = [n for n in known_names if n]
    candidates: list[Candidate] = []
    for row in rows:
        candidate = extract_candidate(row, known, config)
        if candidate is None:
            continue
        candidates.append(candidate)
        if limit is not None and len(candidates) >= limit:
            break
    return candidates
