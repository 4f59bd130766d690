"""CSV review export and summary printers.

- :func:`export_results` writes detections to a CSV for offline review.
- :func:`print_review` prints a scan summary: detections, candidates,
  batch stats, warnings and errors.
- :func:`print_calendar` prints one month of the payment calendar.
"""

from __future__ import annotations

import calendar
import csv
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from subscan.models import MonthSchedule, ParsedResult, ScanResult
from subscan.normalize import normalize_monthly

CSV_COLUMNS = [
    "name",
    "category",
    "cost",
    "frequency",
    "monthly_cost",
    "billing_day",
    "confidence",
    "last_used",
    "sign_up",
    "next_billing",
]


def _iso(d: date | None) -> str:
    return d.isoformat() if d is not None else ""


def _blank(value: object) -> str:
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def export_results(results: Sequence[ParsedResult], path: str | Path) -> Path:
    """Write *results* to a CSV file at *path*, overwriting it.

    Rows keep the order of *results*.  Unset values are written as empty
    cells; ``monthly_cost`` is recomputed from cost and frequency.

    Returns:
        The :class:`~pathlib.Path` of the written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for r in results:
            writer.writerow(
                {
                    "name": r.name,
                    "category": r.category,
                    "cost": str(r.cost),
                    "frequency": r.frequency,
                    "monthly_cost": str(normalize_monthly(r.cost, r.frequency)),
                    "billing_day": _blank(r.billing_day),
                    "confidence": _blank(r.confidence),
                    "last_used": _iso(r.last_used),
                    "sign_up": _iso(r.sign_up),
                    "next_billing": _iso(r.next_billing),
                }
            )

    return path


# ---------------------------------------------------------------------------
# Summary printers
# ---------------------------------------------------------------------------


def print_review(scan_result: ScanResult) -> None:
    """Print a human-readable scan summary to stdout."""
    stats = scan_result.stats

    print()
    print("== Scan Summary ==")
    print(f"Detected: {stats.detected_count} recurring charge(s)")
    print(f"Monthly:  £{stats.monthly_total:,.2f}")
    print(f"Annual:   £{stats.annual_total:,.2f}")
    print(f"Avg confidence: {stats.avg_confidence:.0f}%")

    if scan_result.results:
        print()
        print("Detections:")
        for r in scan_result.results:
            conf = f"{r.confidence}%" if r.confidence is not None else "-"
            print(f"  {r.name:<28} £{r.cost:>9,.2f}  {r.frequency:<8} {conf:>5}")

    if scan_result.candidates:
        print()
        print(f"Candidates for review: {len(scan_result.candidates)}")
        for i, c in enumerate(scan_result.candidates, start=1):
            print(f"  {i:>2}. {c.name:<28} £{c.amount:>9,.2f}  {c.frequency}")
            print(f"      {c.reference_text}")

    if scan_result.warnings:
        print()
        print(f"Warnings: {len(scan_result.warnings)}")
        for w in scan_result.warnings:
            print(f"  - {w}")

    if scan_result.errors:
        print()
        print(f"Errors: {len(scan_result.errors)}")
        for e in scan_result.errors:
            print(f"  - {e}")

    print()


def print_calendar(schedule: MonthSchedule) -> None:
    """Print the due entries of one month, grouped by display day."""
    title = f"{calendar.month_name[schedule.month]} {schedule.year}"

    print()
    print(f"== Payments: {title} ==")
    if not schedule.entries:
        print("Nothing due.")

    current_day = None
    for entry in schedule.entries:
        if entry.display_day != current_day:
            current_day = entry.display_day
            weekday = calendar.day_abbr[
                date(schedule.year, schedule.month, entry.display_day).weekday()
            ]
            print(f"{weekday} {entry.display_day:>2}")
        moved = f" (due {entry.day})" if entry.day != entry.display_day else ""
        tag = " [planned]" if entry.kind == "planned" else ""
        print(f"  {entry.name:<28} £{entry.amount:>9,.2f}{tag}{moved}")

    print()
    print(f"Monthly total: £{schedule.monthly_total:,.2f}")
    if schedule.planned_total:
        print(f"Planned:       £{schedule.planned_total:,.2f}")
    print(f"Paused: {schedule.suppressed}  Not due: {schedule.not_due}")
    print()
