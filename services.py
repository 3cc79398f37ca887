"""Operations behind the UI and CLI.

Entry writes always go through ``calculations.price_entry`` so stored
duration and earnings match the stored start, end and rate. Monthly
reports are recomputed lazily when a month is viewed or exported.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date
from decimal import Decimal

import storage
from auth import hash_password, verify_password
from calculations import compute_monthly_report, parse_time, price_entry, round2, to_decimal
from errors import NotFoundError, ValidationError
from models import MonthlyReport, Project, TimeEntry, User

logger = logging.getLogger(__name__)

ENTRY_FIELDS = {"project_id", "date", "start_time", "end_time", "hourly_rate", "notes"}
DERIVED_FIELDS = {"duration", "earnings"}
PROFILE_FIELDS = {"name", "email", "initials", "hourly_rate", "monthly_goal_hours"}

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be 1-12, got {month}", field="month")
    if not 1 <= year <= 9999:
        raise ValidationError(f"year out of range: {year}", field="year")


def _parse_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"date must be YYYY-MM-DD, got {value!r}", field="date") from None


def _entry_rate(user_id: int, value) -> Decimal:
    """A blank rate means the user's default hourly rate."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return get_user(user_id).hourly_rate
    return to_decimal(value, "hourly_rate")


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    return notes.strip() or None


# --- Users ---


def get_user(user_id: int) -> User:
    user = storage.get_user(user_id)
    if not user:
        raise NotFoundError("user", user_id)
    return user


def update_profile(user_id: int, **fields) -> User:
    """Update name, email, initials, default rate or monthly goal."""
    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise ValidationError(f"unknown profile fields: {', '.join(sorted(unknown))}")
    user = get_user(user_id)

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        fields["name"] = name
    if "email" in fields:
        email = (fields["email"] or "").strip()
        if not email or "@" not in email:
            raise ValidationError("email must be an address", field="email")
        fields["email"] = email
    if "initials" in fields:
        fields["initials"] = (fields["initials"] or "").strip().upper() or None
    if "hourly_rate" in fields:
        rate = to_decimal(fields["hourly_rate"], "hourly_rate")
        if rate < 0:
            raise ValidationError("hourly_rate must be >= 0", field="hourly_rate")
        fields["hourly_rate"] = round2(rate)
    if "monthly_goal_hours" in fields:
        goal = to_decimal(fields["monthly_goal_hours"], "monthly_goal_hours")
        if goal <= 0:
            raise ValidationError("monthly_goal_hours must be > 0", field="monthly_goal_hours")
        fields["monthly_goal_hours"] = round2(goal)

    updated = replace(user, **fields)
    storage.save_user(updated)
    logger.info("Updated profile for user %s: %s", user_id, ", ".join(sorted(fields)))
    return updated


def change_password(user_id: int, current: str, new: str) -> None:
    user = get_user(user_id)
    if not verify_password(current, user.password_hash):
        logger.warning("Rejected password change for user %s: wrong current password", user_id)
        raise ValidationError("current password is incorrect", field="password")
    if len(new) < 6:
        raise ValidationError("new password must be at least 6 characters", field="password")
    storage.save_user(replace(user, password_hash=hash_password(new)))
    logger.info("Changed password for user %s", user_id)


# --- Projects ---


def get_project(project_id: int) -> Project:
    project = storage.get_project(project_id)
    if not project:
        raise NotFoundError("project", project_id)
    return project


def _validate_project(name: str, color: str) -> tuple[str, str]:
    name = (name or "").strip()
    if not name:
        raise ValidationError("project name is required", field="name")
    color = (color or "").strip()
    if not _COLOR_RE.match(color):
        raise ValidationError(f"color must be #RRGGBB, got {color!r}", field="color")
    return name, color.lower()


def create_project(user_id: int, name: str, color: str = "#3b82f6") -> Project:
    get_user(user_id)
    name, color = _validate_project(name, color)
    project = storage.save_project(Project(name=name, color=color, user_id=user_id))
    logger.info("Created project %s (%s)", project.id, project.name)
    return project


def update_project(project_id: int, name: str | None = None, color: str | None = None) -> Project:
    project = get_project(project_id)
    name, color = _validate_project(
        project.name if name is None else name,
        project.color if color is None else color,
    )
    updated = storage.save_project(replace(project, name=name, color=color))
    logger.info("Updated project %s", project_id)
    return updated


def delete_project(project_id: int) -> None:
    get_project(project_id)
    if not storage.delete_project(project_id):
        logger.warning("Refused to delete project %s: it has time entries", project_id)
        raise ValidationError("project has time entries and cannot be deleted", field="project_id")
    logger.info("Deleted project %s", project_id)


# --- Time entries ---


def get_entry(entry_id: int) -> TimeEntry:
    entry = storage.get_entry(entry_id)
    if not entry:
        raise NotFoundError("time entry", entry_id)
    return entry


def create_entry(
    user_id: int,
    project_id: int,
    entry_date: date | str,
    start_time: str,
    end_time: str,
    hourly_rate=None,
    notes: str | None = None,
) -> TimeEntry:
    """Validate, price and store a new entry.

    A missing or blank rate means the user's default hourly rate.
    """
    get_user(user_id)
    get_project(project_id)
    if start_time is None or end_time is None:
        raise ValidationError("start_time and end_time are required")

    entry = price_entry(TimeEntry(
        user_id=user_id,
        project_id=project_id,
        date=_parse_date(entry_date),
        start_time=parse_time(start_time, "start_time"),
        end_time=parse_time(end_time, "end_time"),
        hourly_rate=_entry_rate(user_id, hourly_rate),
        notes=_clean_notes(notes),
    ))
    stored = storage.save_entry(entry)
    logger.info(
        "Created entry %s on %s: %s h, %s earned",
        stored.id, stored.date, stored.duration, stored.earnings,
    )
    return stored


def update_entry(entry_id: int, **changes) -> TimeEntry:
    """Apply changes to an entry and recompute its derived fields.

    Caller-supplied duration or earnings are discarded. A blank rate resets
    the entry to the user's default hourly rate, as in ``create_entry``.
    """
    derived = DERIVED_FIELDS & set(changes)
    if derived:
        logger.debug("Ignoring client-supplied %s for entry %s", ", ".join(sorted(derived)), entry_id)
        for key in derived:
            del changes[key]
    unknown = set(changes) - ENTRY_FIELDS
    if unknown:
        raise ValidationError(f"unknown entry fields: {', '.join(sorted(unknown))}")

    entry = get_entry(entry_id)
    if "project_id" in changes:
        get_project(changes["project_id"])
    if "date" in changes:
        changes["date"] = _parse_date(changes["date"])
    if "start_time" in changes:
        changes["start_time"] = parse_time(changes["start_time"], "start_time")
    if "end_time" in changes:
        changes["end_time"] = parse_time(changes["end_time"], "end_time")
    if "hourly_rate" in changes:
        changes["hourly_rate"] = _entry_rate(entry.user_id, changes["hourly_rate"])
    if "notes" in changes:
        changes["notes"] = _clean_notes(changes["notes"])

    stored = storage.save_entry(price_entry(replace(entry, **changes)))
    logger.info("Updated entry %s: %s h, %s earned", entry_id, stored.duration, stored.earnings)
    return stored


def delete_entry(entry_id: int) -> None:
    if not storage.delete_entry(entry_id):
        raise NotFoundError("time entry", entry_id)
    logger.info("Deleted entry %s", entry_id)


def month_entries(user_id: int, year: int, month: int) -> list[TimeEntry]:
    _check_month(year, month)
    return storage.list_entries_for_month(user_id, year, month)


# --- Monthly reports ---


def refresh_monthly_report(user_id: int, year: int, month: int) -> MonthlyReport:
    """Recompute a month from its entries and store the result.

    The completion flag of an existing report is kept as is.
    """
    _check_month(year, month)
    entries = storage.list_entries_for_month(user_id, year, month)
    existing = storage.get_report(user_id, year, month)
    report = compute_monthly_report(entries, user_id, year, month, existing=existing)
    stored = storage.upsert_report(report)
    logger.debug(
        "Refreshed report %04d-%02d for user %s: %s h over %s days",
        year, month, user_id, stored.hours_worked, stored.days_worked,
    )
    return stored


def get_monthly_report(user_id: int, year: int, month: int) -> MonthlyReport:
    _check_month(year, month)
    report = storage.get_report(user_id, year, month)
    if not report:
        raise NotFoundError("monthly report", f"{year:04d}-{month:02d}")
    return report


def set_month_completed(user_id: int, year: int, month: int, completed: bool = True) -> MonthlyReport:
    """Mark a month finalized (or reopen it). The only way the flag changes."""
    report = refresh_monthly_report(user_id, year, month)
    stored = storage.upsert_report(replace(report, is_completed=completed))
    logger.info(
        "Marked %04d-%02d %s for user %s",
        year, month, "completed" if completed else "in progress", user_id,
    )
    return stored


def year_reports(user_id: int, year: int) -> list[MonthlyReport]:
    """Refresh and return reports for months that have entries or a stored report."""
    if not 1 <= year <= 9999:
        raise ValidationError(f"year out of range: {year}", field="year")
    months = {r.month for r in storage.get_reports(user_id, year)}
    months.update(
        e.date.month
        for e in storage.get_entries_range(user_id, date(year, 1, 1), date(year, 12, 31))
    )
    return [refresh_monthly_report(user_id, year, m) for m in sorted(months)]


def hours_by_project(entries: list[TimeEntry]) -> dict[int, Decimal]:
    """Total stored hours per project id."""
    totals: dict[int, Decimal] = {}
    for entry in entries:
        totals[entry.project_id] = totals.get(entry.project_id, Decimal("0")) + entry.duration
    return totals
