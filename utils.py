"""Calendar and formatting helpers."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from calculations import round2, to_decimal


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def get_public_holidays(years: list[int], country: str, subdiv: str | None = None) -> dict[date, str]:
    """Public holidays for the given years."""
    import holidays
    found = holidays.country_holidays(country, subdiv=subdiv, years=years)
    return {d: name for d, name in found.items()}


def get_working_days(start: date, end: date, country: str = "GB", subdiv: str | None = "ENG") -> list[date]:
    """Weekdays minus public holidays in a date range (inclusive)."""
    public = get_public_holidays(sorted({start.year, end.year}), country, subdiv)

    working_days = []
    current = start
    while current <= end:
        # Monday=0 to Friday=4 are weekdays
        if current.weekday() < 5 and current not in public:
            working_days.append(current)
        current += timedelta(days=1)

    return working_days


def count_working_days(year: int, month: int, country: str = "GB", subdiv: str | None = "ENG") -> int:
    start, end = month_bounds(year, month)
    return len(get_working_days(start, end, country, subdiv))


def format_decimal(value) -> str:
    """Two-decimal rendering used for every hour and money value shown or exported."""
    return f"{round2(to_decimal(value)):.2f}"


def format_money(value, currency: str) -> str:
    """Amount with its currency code, e.g. '160.00 GBP'."""
    return f"{format_decimal(value)} {currency}"


def format_duration(hours) -> str:
    """Render hours as '5h 30m' (or '5h' on the hour)."""
    total_minutes = int((to_decimal(hours, "hours") * 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    whole, minutes = divmod(total_minutes, 60)
    if minutes == 0:
        return f"{whole}h"
    return f"{whole}h {minutes}m"

