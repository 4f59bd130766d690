"""Duplicate suppression for candidates and reviewed results.

Three layers, applied at different points:

1. :func:`dedupe_candidates` -- exact ``name + amount`` key within one
   batch; first occurrence wins.
2. :func:`drop_known` -- drop candidates whose name overlaps a name the
   user already tracks (substring containment in either direction).
3. :func:`is_fuzzy_duplicate` -- when reviewed results are confirmed, skip
   an entry whose name equals a known name or alias and whose amount is
   within the tolerance of the known amount.

The record store is never consulted directly: callers build a
``name -> amount`` lookup with :func:`known_index` and pass it in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from subscan.models import Candidate, RecurringItem, round_money

DEFAULT_AMOUNT_TOLERANCE = Decimal("0.10")


def candidate_key(name: str, amount: Decimal) -> str:
    """Return the within-batch dedup key ``"<lowercase name>__<amount>"``."""
    return f"{name.lower()}__{round_money(amount)}"


def known_index(items: Iterable[RecurringItem]) -> dict[str, Decimal]:
    """Build the lowercase ``name -> raw amount`` lookup for *items*.

    Each item contributes its name and every alias. When two items share
    a name, the first one seen wins.
    """
    index: dict[str, Decimal] = {}
    for item in items:
        for name in (item.name, *item.aliases):
            key = name.strip().lower()
            if key and key not in index:
                index[key] = item.raw_amount
    return index


def dedupe_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Keep the first candidate for each name/amount key, preserving order."""
    seen: set[str] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        key = candidate_key(candidate.name, candidate.amount)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def drop_known(
    candidates: Iterable[Candidate],
    known: Mapping[str, Decimal] | Iterable[str],
) -> list[Candidate]:
    """Remove candidates whose name overlaps an already-known name.

    Args:
        candidates: Candidates to filter.
        known: Known lowercase names (a lookup from :func:`known_index`, or
            any iterable of names).

    Returns:
        The candidates whose lowercase name neither contains nor is
        contained in any known name.
    """
    known_names = [k.lower() for k in known if k]
    kept: list[Candidate] = []
    for candidate in candidates:
        name = candidate.name.lower()
        if any(k in name or name in k for k in known_names):
            continue
        kept.append(candidate)
    return kept


def amounts_within(
    existing: Decimal,
    amount: Decimal,
    tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
) -> bool:
    """True if *existing* differs from *amount* by less than *tolerance* of *amount*."""
    if amount <= 0:
        return False
    return abs(existing - amount) / amount < tolerance


def is_fuzzy_duplicate(
    name: str,
    amount: Decimal,
    known: Mapping[str, Decimal],
    tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
) -> bool:
    """True if *name*/*amount* duplicates an entry of *known*.

    The name must equal a known name or alias (case-insensitive) **and**
    the amounts must be within *tolerance* of each other.
    """
    existing = known.get(name.strip().lower())
    if existing is None:
        return False
    return amounts_within(existing, amount, tolerance)
