"""Duration, earnings and monthly report calculations.

Everything here is pure: no storage, no logging, no shared state. Values
are kept at full precision while computing and rounded with ``round2``
only when they become stored fields.
"""

from __future__ import annotations

import re
from calendar import monthrange
from dataclasses import replace
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from errors import ValidationError
from models import MonthlyReport, TimeEntry

MINUTES_PER_DAY = 24 * 60
CENT = Decimal("0.01")

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def round2(value: Decimal) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | float | str, field: str = "value") -> Decimal:
    """Convert a rate/hours input to Decimal, rejecting non-numeric input."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number, got {value!r}", field=field) from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


def parse_time(value: str | time, field: str = "time") -> time:
    """Parse 'HH:MM' (24h) into a time."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be HH:MM", field=field)
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValidationError(f"{field} must be HH:MM, got {value!r}", field=field)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour >= 24 or minute >= 60:
        raise ValidationError(f"{field} out of range: {value!r}", field=field)
    return time(hour, minute)


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def compute_duration(start_time: str | time, end_time: str | time) -> Decimal:
    """Hours between start and end, unrounded.

    An end earlier than the start means the session ran past midnight.
    Equal times are a zero-length session, not a full day.
    """
    start = _minutes(parse_time(start_time, "start_time"))
    end = _minutes(parse_time(end_time, "end_time"))
    if start == end:
        return Decimal("0")
    delta = end - start
    if delta < 0:
        delta += MINUTES_PER_DAY
    return Decimal(delta) / Decimal(60)


def compute_earnings(duration_hours, hourly_rate) -> Decimal:
    """Earnings for a duration at a rate, rounded to cents."""
    hours = to_decimal(duration_hours, "duration")
    rate = to_decimal(hourly_rate, "hourly_rate")
    return round2(hours * rate)


def price_entry(entry: TimeEntry) -> TimeEntry:
    """Return a copy of ``entry`` with duration and earnings recomputed.

    The rate is rounded to cents first so stored earnings always match the
    stored rate.
    """
    hours = compute_duration(entry.start_time, entry.end_time)
    rate = round2(to_decimal(entry.hourly_rate, "hourly_rate"))
    return replace(
        entry,
        start_time=parse_time(entry.start_time, "start_time"),
        end_time=parse_time(entry.end_time, "end_time"),
        hourly_rate=rate,
        duration=round2(hours),
        earnings=compute_earnings(hours, rate),
    )


def compute_monthly_report(
    entries: Iterable[TimeEntry],
    user_id: int,
    year: int,
    month: int,
    existing: MonthlyReport | None = None,
) -> MonthlyReport:
    """Fold one month's entries into a report.

    Entries dated outside the month are ignored. ``is_completed`` and the
    report id carry over from ``existing``; recomputing never changes them.
    """
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be 1-12, got {month}", field="month")
    first = date(year, month, 1)
    last = date(year, month, monthrange(year, month)[1])

    hours = Decimal("0")
    earnings = Decimal("0")
    days: set[date] = set()
    for entry in entries:
        if not first <= entry.date <= last:
            continue
        hours += entry.duration
        earnings += entry.earnings
        days.add(entry.date)

    days_worked = len(days)
    average = hours / days_worked if days_worked else Decimal("0")

    return MonthlyReport(
        user_id=user_id,
        year=year,
        month=month,
        hours_worked=round2(hours),
        days_worked=days_worked,
        daily_average=round2(average),
        total_earnings=round2(earnings),
        is_completed=existing.is_completed if existing else False,
        id=existing.id if existing else None,
    )


def monthly_progress(hours_worked, goal_hours) -> int:
    """Percentage of the monthly goal reached, capped at 100."""
    goal = to_decimal(goal_hours, "monthly_goal_hours")
    if goal <= 0:
        return 0
    pct = to_decimal(hours_worked, "hours_worked") / goal * 100
    return min(100, int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))
