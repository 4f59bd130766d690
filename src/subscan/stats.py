"""Batch summary statistics shown to the reviewer."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from subscan.models import ANNUAL, BatchStats, ParsedResult
from subscan.normalize import sum_monthly

# Entries without a score (e.g. added by hand during review) count as this.
DEFAULT_CONFIDENCE = 85


def compute_stats(results: Sequence[ParsedResult]) -> BatchStats:
    """Summarize a batch of parsed results.

    Returns:
        A :class:`BatchStats` with the number of detections, the sum of
        their monthly-normalized costs, the sum of the raw costs of annual
        items, and the mean confidence (missing scores count as 85).
    """
    annual_total = Decimal("0.00")
    confidence_sum = 0

    for result in results:
        if result.frequency == ANNUAL:
            annual_total += result.cost
        confidence_sum += (
            result.confidence if result.confidence is not None else DEFAULT_CONFIDENCE
        )

    return BatchStats(
        detected_count=len(results),
        monthly_total=sum_monthly((r.cost, r.frequency) for r in results),
        annual_total=annual_total,
        avg_confidence=confidence_sum / max(1, len(results)),
    )
