"""Pipeline orchestration for SubScan.

:func:`scan` composes the engine stages: reconstruct rows, classify known
services, extract candidates, deduplicate, and aggregate stats.  Every
stage is pure; the pipeline accumulates warnings and errors into a final
:class:`~subscan.models.ScanResult`.

After human review, :func:`promote_candidate` turns a candidate into an
editable :class:`~subscan.models.ParsedResult` and :func:`confirm_results`
turns reviewed results into :class:`~subscan.models.RecurringItem` records
ready for the item store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date

from subscan.classifier import classify_rows
from subscan.dedup import dedupe_candidates, drop_known, is_fuzzy_duplicate, known_index
from subscan.extractor import extract_candidates
from subscan.frequency import promote_frequency
from subscan.models import (
    ANNUAL,
    MONTHLY,
    UNKNOWN,
    Candidate,
    ConfirmResult,
    EngineConfig,
    ParsedResult,
    RecurringItem,
    ScanResult,
    generate_item_id,
    round_money,
)
from subscan.normalize import as_decimal
from subscan.reconstruct import reconstruct_rows
from subscan.schedule import add_months, project_annual_billing, project_next_billing
from subscan.stats import compute_stats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def scan(
    text: str,
    known_items: Iterable[RecurringItem] = (),
    config: EngineConfig | None = None,
    today: date | None = None,
) -> ScanResult:
    """Run the extraction pipeline over decoded statement *text*.

    Stages executed in order:

    1. **Reconstruct** -- merge wrapped lines into logical rows.
    2. **Classify** -- detect known services and repeated merchants.
    3. **Extract** -- collect recurrence-hinted candidates from rows that
       stage 2 did not consume, skipping names it already reported.
    4. **Deduplicate** -- drop exact name/amount repeats, then names the
       user already tracks.
    5. **Cap** -- keep the earliest ``config.candidate_limit`` candidates.
    6. **Stats** -- summarize the detections.

    Args:
        text: Statement text (UTF-8, page breaks as newlines).
        known_items: Items already in the record store.
        config: Engine configuration; defaults to the built-in tables.
        today: Current date, used for the fallback statement year.

    Returns:
        A :class:`ScanResult` with detections, candidates, stats, and all
        accumulated warnings and errors.
    """
    if config is None:
        config = EngineConfig()
    if today is None:
        today = date.today()

    warnings: list[str] = []
    errors: list[str] = []

    # -- Stage 1: Reconstruct -------------------------------------------------
    rows = reconstruct_rows(text, config)
    if not rows:
        errors.append("No statement rows found in the input text")
        logger.warning("No statement rows found")
        return ScanResult(warnings=warnings, errors=errors)

    # -- Stage 2: Classify ----------------------------------------------------
    results = classify_rows(rows, config, today)

    # -- Stage 3: Extract candidates ------------------------------------------
    consumed = {text for r in results for text in r.source_rows}
    remaining = [row for row in rows if row.text not in consumed]
    raw = extract_candidates(
        remaining, known_names=[r.name for r in results], config=config, capped=False
    )

    # -- Stage 4: Deduplicate -------------------------------------------------
    unique = dedupe_candidates(raw)
    dup_count = len(raw) - len(unique)
    if dup_count:
        warnings.append(f"Removed {dup_count} duplicate candidate(s)")

    known = known_index(known_items)
    candidates = drop_known(unique, known)
    tracked = len(unique) - len(candidates)
    if tracked:
        warnings.append(f"Skipped {tracked} candidate(s) matching tracked items")

    already = [
        r.name
        for r in results
        if is_fuzzy_duplicate(r.name, r.cost, known, config.amount_tolerance)
    ]
    if already:
        warnings.append(f"Already tracked: {', '.join(already)}")

    # -- Stage 5: Cap ---------------------------------------------------------
    limit = config.candidate_limit
    if len(candidates) > limit:
        warnings.append(f"Showing the first {limit} of {len(candidates)} candidates")
        candidates = candidates[:limit]

    # -- Stage 6: Stats -------------------------------------------------------
    stats = compute_stats(results)

    unknown = sum(1 for r in results if r.frequency == UNKNOWN) + sum(
        1 for c in candidates if c.frequency == UNKNOWN
    )
    if unknown:
        warnings.append(f"{unknown} item(s) have an unknown frequency; confirm during review")
    if not results and not candidates:
        warnings.append("No recurring charges detected")

    logger.info(
        "Scan complete: %d row(s), %d detection(s), %d candidate(s)",
        len(rows),
        len(results),
        len(candidates),
    )
    return ScanResult(
        results=results,
        candidates=candidates,
        stats=stats,
        warnings=warnings,
        errors=errors,
    )


def promote_candidate(candidate: Candidate, config: EngineConfig | None = None) -> ParsedResult:
    """Turn a reviewed *candidate* into an editable :class:`ParsedResult`.

    An unknown frequency on an amount above ``config.annual_threshold``
    is promoted to annual.  The result is unscored (``confidence=None``).
    """
    if config is None:
        config = EngineConfig()
    return ParsedResult(
        name=candidate.name,
        cost=candidate.amount,
        frequency=promote_frequency(
            candidate.frequency, candidate.amount, config.annual_threshold
        ),
        confidence=None,
    )


def confirm_results(
    results: Sequence[ParsedResult],
    existing: Iterable[RecurringItem] = (),
    today: date | None = None,
    config: EngineConfig | None = None,
    shift_if_weekend: bool = False,
) -> ConfirmResult:
    """Turn reviewed results into new :class:`RecurringItem` records.

    Results with a missing, non-finite, or non-positive cost are rejected.
    A result whose name matches an existing item (or one confirmed earlier
    in the same batch) with an amount within ``config.amount_tolerance``
    is skipped, never merged.

    Args:
        results: Reviewed results, in review order.
        existing: Items already in the record store (never modified).
        today: Current date; defaults to today.
        config: Engine configuration (amount tolerance).
        shift_if_weekend: Weekend-shift flag for the new items.

    Returns:
        A :class:`ConfirmResult` with the new items and skip counts.
    """
    if config is None:
        config = EngineConfig()
    if today is None:
        today = date.today()

    known = known_index(existing)
    outcome = ConfirmResult()

    for result in results:
        cost = as_decimal(result.cost) if result.cost is not None else None
        if cost is None or cost <= 0:
            outcome.skipped += 1
            outcome.warnings.append(f"Skipped {result.name!r}: invalid amount {result.cost!r}")
            continue
        cost = round_money(cost)

        if is_fuzzy_duplicate(result.name, cost, known, config.amount_tolerance):
            outcome.skipped += 1
            outcome.warnings.append(f"Skipped {result.name!r}: already tracked")
            continue

        frequency = MONTHLY if result.frequency == UNKNOWN else result.frequency
        if result.next_billing is not None:
            billing_day = result.next_billing.day
        else:
            billing_day = result.billing_day or 1

        anchor = result.last_used or today
        if frequency == ANNUAL:
            next_billing = project_annual_billing(
                result.next_billing or add_months(anchor, 12), today
            )
        else:
            next_billing = project_next_billing(anchor, today)

        item = RecurringItem(
            id=generate_item_id(result.name, cost, frequency),
            name=result.name,
            raw_amount=cost,
            frequency=frequency,
            category=result.category,
            billing_day=billing_day,
            next_billing_date=next_billing,
            last_used_date=today,
            sign_up_date=today,
            shift_if_weekend=shift_if_weekend,
        )
        outcome.items.append(item)
        outcome.saved += 1
        known.setdefault(result.name.strip().lower(), cost)
        logger.debug("Confirmed %s (%s %s)", item.name, item.raw_amount, item.frequency)

    logger.info("Confirmed %d item(s), skipped %d", outcome.saved, outcome.skipped)
    return outcome
