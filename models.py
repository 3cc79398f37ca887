from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal


@dataclass
class TimeEntry:
    user_id: int
    project_id: int
    date: date
    start_time: time
    end_time: time
    hourly_rate: Decimal
    duration: Decimal = Decimal("0")
    earnings: Decimal = Decimal("0")
    notes: str | None = None
    id: int | None = None

    @property
    def day_of_week(self) -> str:
        return self.date.strftime("%a")

    @property
    def is_overnight(self) -> bool:
        """True when the session ends on the following day."""
        return self.end_time < self.start_time


@dataclass
class MonthlyReport:
    user_id: int
    year: int
    month: int
    hours_worked: Decimal = Decimal("0")
    days_worked: int = 0
    daily_average: Decimal = Decimal("0")
    total_earnings: Decimal = Decimal("0")
    is_completed: bool = False
    id: int | None = None

    @property
    def period(self) -> str:
        """Month label, e.g. 'January 2026'."""
        return date(self.year, self.month, 1).strftime("%B %Y")

    @property
    def status(self) -> str:
        return "completed" if self.is_completed else "in progress"


@dataclass
class Project:
    name: str
    user_id: int
    color: str = "#3b82f6"
    id: int | None = None


@dataclass
class User:
    username: str
    password_hash: str
    name: str
    email: str
    hourly_rate: Decimal = Decimal("25")
    monthly_goal_hours: Decimal = Decimal("160")
    initials: str | None = None
    id: int | None = None

    @property
    def display_initials(self) -> str:
        """Stored initials, or the first letters of the name."""
        if self.initials:
            return self.initials
        return "".join(part[0] for part in self.name.split()[:2]).upper()


@dataclass
class Config:
    currency: str = "GBP"
    standard_day_hours: Decimal = Decimal("7.5")
    holiday_country: str = "GB"
    holiday_subdiv: str | None = "ENG"
