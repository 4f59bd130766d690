"""Billing frequency inference.

Two sources of evidence are used:

- Text cues (:func:`classify_frequency`): words and unit tokens such as
  ``annual``, ``/mo`` or ``per week``. This is the pure classifier used
  for every candidate.
- Date gaps (:func:`infer_frequency_from_dates`): the median spacing of
  repeated charges from the same merchant.

:func:`promote_frequency` holds the review-time policy that treats large
amounts of unknown cadence as annual. It is not part of the pure
classifier.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from subscan.models import ANNUAL, MONTHLY, UNKNOWN, WEEKLY

_ANNUAL_RE = re.compile(r"annual|yearly|\byrs?\b|\byear\b|/y(?:ea)?r\b|per\s+year")
_MONTHLY_RE = re.compile(r"monthly|/mo?\b|/month\b|per\s+month|\bpcm\b")
_WEEKLY_RE = re.compile(r"weekly|/wk\b|/week\b|per\s+week")

DEFAULT_ANNUAL_THRESHOLD = Decimal("1000")


def classify_frequency(text: str) -> str:
    """Infer a billing frequency from textual cues.

    Rules are checked in order and the first match wins: annual cues,
    then monthly cues, then weekly cues.

    Args:
        text: Any statement text, e.g. a reconstructed row.

    Returns:
        ``"annual"``, ``"monthly"``, ``"weekly"`` or ``"unknown"``.
    """
    lowered = text.lower()
    if _ANNUAL_RE.search(lowered):
        return ANNUAL
    if _MONTHLY_RE.search(lowered):
        return MONTHLY
    if _WEEKLY_RE.search(lowered):
        return WEEKLY
    return UNKNOWN


def promote_frequency(
    frequency: str,
    amount: Decimal,
    threshold: Decimal = DEFAULT_ANNUAL_THRESHOLD,
) -> str:
    """Apply the review-entry policy to a classified frequency.

    An ``"unknown"`` frequency on an amount above *threshold* is assumed
    to be annual; everything else is returned unchanged.
    """
    if frequency == UNKNOWN and amount > threshold:
        return ANNUAL
    return frequency


def infer_frequency_from_dates(dates: Sequence[date]) -> str:
    """Infer a frequency from the median gap between charge dates.

    Gaps of 6-8 days are weekly, 26-35 monthly, and 360-380 annual.
    Fewer than two dates, or any other median, gives ``"unknown"``.
    """
    if len(dates) < 2:
        return UNKNOWN
    ordered = sorted(dates)
    gaps = sorted((b - a).days for a, b in zip(ordered, ordered[1:]))
    median = gaps[len(gaps) // 2]
    if 6 <= median <= 8:
        return WEEKLY
    if 26 <= median <= 35:
        return MONTHLY
    if 360 <= median <= 380:
        return ANNUAL
    return UNKNOWN
