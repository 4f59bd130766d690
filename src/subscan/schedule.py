"""Month-by-month schedule resolution for recurring and planned items.

For one ``(item, month)`` pair :func:`resolve` returns one of three states:

- ``suppressed`` -- the item is paused this month;
- ``not_due`` -- its frequency or start date excludes this month;
- ``due`` -- it appears on ``day`` (and is shown on ``display_day``).

Weekend shifting only ever changes the displayed day. It never moves a
charge into the previous month: a Saturday 1st or a Sunday 1st/2nd is
shown on the 1st.

All functions are pure; "today" is a parameter wherever it matters.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date, timedelta

from subscan.models import (
    ANNUAL,
    DUE,
    MONTHLY,
    NOT_DUE,
    ONCE,
    SUPPRESSED,
    WEEKLY,
    MonthSchedule,
    PlannedItem,
    RecurringItem,
    ScheduleEntry,
    ScheduleResult,
)
from subscan.normalize import sum_monthly

# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def days_in_month(year: int, month: int) -> int:
    """Number of days in *month* of *year*."""
    return calendar.monthrange(year, month)[1]


def first_of_month(year: int, month: int) -> date:
    return date(year, month, 1)


def last_of_month(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def clamp_day(year: int, month: int, day: int) -> int:
    """Clamp *day* into ``1..days_in_month(year, month)``."""
    return max(1, min(day, days_in_month(year, month)))


def add_months(d: date, months: int) -> date:
    """Move *d* by *months*, keeping its day where the target month allows."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, clamp_day(year, month, d.day))


def shift_weekend(year: int, month: int, day: int) -> int:
    """Move a weekend *day* back to the preceding Friday.

    Saturday moves back one day and Sunday two. A shift that would leave
    the month is clamped to day 1 instead of rolling into the previous
    month.
    """
    weekday = date(year, month, day).weekday()
    if weekday == calendar.SATURDAY:
        day -= 1
    elif weekday == calendar.SUNDAY:
        day -= 2
    return max(1, day)


def is_forward_visible(year: int, month: int, today: date | None = None) -> bool:
    """Presentation policy: hide months before the current calendar month."""
    if today is None:
        today = date.today()
    return (year, month) >= (today.year, today.month)


# ---------------------------------------------------------------------------
# Recurring items
# ---------------------------------------------------------------------------


def billing_day_for(item: RecurringItem) -> int:
    """Resolve the canonical billing day of *item* (1-31).

    Preference order: the explicit ``billing_day``, the day of
    ``next_billing_date``, the day of ``last_used_date`` or
    ``sign_up_date``, and finally 1.
    """
    if item.billing_day is not None and 1 <= item.billing_day <= 31:
        return item.billing_day
    for anchor in (item.next_billing_date, item.last_used_date, item.sign_up_date):
        if anchor is not None:
            return anchor.day
    return 1


def _same_month(d: date | None, year: int, month: int) -> bool:
    return d is not None and d.year == year and d.month == month


def resolve(
    item: RecurringItem,
    year: int,
    month: int,
    today: date | None = None,
) -> ScheduleResult:
    """Decide whether and on which day *item* occurs in *month* of *year*.

    Args:
        item: The recurring item (never modified).
        year: Target year.
        month: Target month (1-12).
        today: Reference date for annual items without a
            ``next_billing_date``. Defaults to the current date.

    Returns:
        A :class:`ScheduleResult`. ``day`` and ``display_day`` are set
        only when the item is due.
    """
    if today is None:
        today = date.today()

    if _same_month(item.paused_until, year, month):
        return ScheduleResult(state=SUPPRESSED)

    day = clamp_day(year, month, billing_day_for(item))

    if item.frequency == ANNUAL:
        reference = item.next_billing_date or today
        if reference.month != month:
            return ScheduleResult(state=NOT_DUE)
    elif item.sign_up_date is not None and (year, month) < (
        item.sign_up_date.year,
        item.sign_up_date.month,
    ):
        return ScheduleResult(state=NOT_DUE)

    display_day = shift_weekend(year, month, day) if item.shift_if_weekend else day
    return ScheduleResult(state=DUE, day=day, display_day=display_day)


def project_next_billing(anchor: date, today: date | None = None) -> date:
    """Project the next billing date from a historical *anchor* date.

    The anchor's day of month is placed in the current month (clamped to
    the month's length). If that date is already behind *today* it moves
    one month on. The result is always today or later and keeps the
    original billing day wherever the month allows.

    Example:
        An anchor of 2024-11-05 with today 2025-01-10 projects to
        2025-02-05.
    """
    if today is None:
        today = date.today()
    candidate = date(today.year, today.month, clamp_day(today.year, today.month, anchor.day))
    if candidate < today:
        index = today.year * 12 + today.month  # next month, zero-based
        year, month = divmod(index, 12)
        month += 1
        candidate = date(year, month, clamp_day(year, month, anchor.day))
    return candidate


def project_annual_billing(anchor: date, today: date | None = None) -> date:
    """Roll an annual *anchor* forward whole years until it is today or later."""
    if today is None:
        today = date.today()
    years = 0
    projected = anchor
    while projected < today:
        years += 1
        projected = add_months(anchor, 12 * years)
    return projected


def next_billing_guess(last_seen: date, frequency: str) -> date | None:
    """One billing period after *last_seen*, or ``None`` for unknown cadence."""
    if frequency == MONTHLY:
        return add_months(last_seen, 1)
    if frequency == ANNUAL:
        return add_months(last_seen, 12)
    if frequency == WEEKLY:
        return last_seen + timedelta(days=7)
    return None


# ---------------------------------------------------------------------------
# Planned items
# ---------------------------------------------------------------------------


def _in_window(item: PlannedItem, year: int, month: int) -> bool:
    after_start = item.start is None or item.start <= first_of_month(year, month)
    before_end = item.end is None or item.end >= last_of_month(year, month)
    return after_start and before_end


def resolve_planned(item: PlannedItem, year: int, month: int) -> ScheduleResult:
    """Decide whether and on which day a planned item falls in *month*.

    One-off items occur only in the month of their exact date. Monthly
    items occur in every month fully inside their optional
    ``start``/``end`` window. Annual items additionally require the month
    of ``start`` (or of ``date``) to match.
    """
    if item.frequency == ONCE:
        if not _same_month(item.date, year, month):
            return ScheduleResult(state=NOT_DUE)
        day = item.date.day
    elif item.frequency in (MONTHLY, ANNUAL):
        if not _in_window(item, year, month):
            return ScheduleResult(state=NOT_DUE)
        if item.frequency == ANNUAL:
            reference = item.start or item.date
            if reference is None or reference.month != month:
                return ScheduleResult(state=NOT_DUE)
        day = clamp_day(year, month, item.day_of_month or 1)
    else:
        return ScheduleResult(state=NOT_DUE)

    display_day = shift_weekend(year, month, day) if item.shift_if_weekend else day
    return ScheduleResult(state=DUE, day=day, display_day=display_day)


# ---------------------------------------------------------------------------
# Calendar view
# ---------------------------------------------------------------------------


def month_schedule(
    items: Iterable[RecurringItem],
    year: int,
    month: int,
    today: date | None = None,
    planned: Iterable[PlannedItem] = (),
    forward_only: bool = True,
) -> MonthSchedule:
    """Place every due item of *month* on its display day.

    Args:
        items: Recurring items.
        year: Target year.
        month: Target month (1-12).
        today: Current date; defaults to today.
        planned: Planned items to place alongside the recurring ones.
        forward_only: Hide recurring items in months before the current
            one (they count as not due).

    Returns:
        A :class:`MonthSchedule`; ``monthly_total`` sums the
        monthly-normalized costs of the due recurring items.
    """
    if today is None:
        today = date.today()

    schedule = MonthSchedule(year=year, month=month)
    visible = not forward_only or is_forward_visible(year, month, today)
    due: list[RecurringItem] = []

    for item in items:
        result = resolve(item, year, month, today)
        if result.state == SUPPRESSED:
            schedule.suppressed += 1
            continue
        if not result.occurs or not visible:
            schedule.not_due += 1
            continue
        due.append(item)
        schedule.entries.append(
            ScheduleEntry(
                name=item.name,
                amount=item.raw_amount,
                day=result.day,
                display_day=result.display_day,
                monthly_cost=item.monthly_cost,
            )
        )
    schedule.monthly_total = sum_monthly((i.raw_amount, i.frequency) for i in due)

    for plan in planned:
        result = resolve_planned(plan, year, month)
        if not result.occurs:
            schedule.not_due += 1
            continue
        schedule.entries.append(
            ScheduleEntry(
                name=plan.name,
                amount=plan.amount,
                day=result.day,
                display_day=result.display_day,
                kind="planned",
            )
        )
        schedule.planned_total += plan.amount

    schedule.entries.sort(key=lambda e: (e.display_day, e.name.lower()))
    return schedule
