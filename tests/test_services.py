"""Tests for services.py - validated operations over storage."""

from datetime import date, time
from decimal import Decimal

import pytest

import services
from auth import verify_password
from calculations import compute_duration, compute_earnings, price_entry
from errors import NotFoundError, TimesheetError, ValidationError


class TestCreateEntry:
    """Tests for create_entry."""

    def test_computes_duration_and_earnings(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:30", "20")
        assert entry.duration == Decimal("8.50")
        assert entry.earnings == Decimal("170.00")
        assert db.get_entry(entry.id) == entry

    def test_overnight(self, db, user, project):
        entry = services.create_entry(user.id, project.id, date(2026, 1, 5), "22:00", "06:00", "20")
        assert entry.duration == Decimal("8.00")
        assert entry.earnings == Decimal("160.00")
        assert entry.date == date(2026, 1, 5)

    def test_uses_default_rate(self, db, user, project):
        """Test that a missing rate falls back to the user's hourly rate."""
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:00")
        assert entry.hourly_rate == Decimal("20.00")
        assert entry.earnings == Decimal("20.00")

    def test_blank_notes_stored_as_none(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:00", notes="   ")
        assert entry.notes is None

    @pytest.mark.parametrize("start,end", [("9am", "17:00"), ("09:00", "24:00"), ("", "17:00")])
    def test_rejects_bad_times(self, db, user, project, start, end):
        with pytest.raises(ValidationError):
            services.create_entry(user.id, project.id, "2026-01-05", start, end)
        assert db.list_entries_for_month(user.id, 2026, 1) == []

    def test_rejects_bad_rate(self, db, user, project):
        with pytest.raises(ValidationError):
            services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:00", "lots")

    def test_rejects_bad_date(self, db, user, project):
        with pytest.raises(ValidationError) as exc:
            services.create_entry(user.id, project.id, "05/01/2026", "09:00", "10:00")
        assert exc.value.field == "date"

    def test_unknown_project(self, db, user):
        with pytest.raises(NotFoundError):
            services.create_entry(user.id, 999, "2026-01-05", "09:00", "10:00")

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            services.create_entry(999, 1, "2026-01-05", "09:00", "10:00")


class TestUpdateEntry:
    """Tests for update_entry."""

    def test_recomputes_on_time_change(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        updated = services.update_entry(entry.id, end_time="12:00")
        assert updated.duration == Decimal("3.00")
        assert updated.earnings == Decimal("60.00")

    def test_recomputes_on_rate_change(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        updated = services.update_entry(entry.id, hourly_rate="25.50")
        assert updated.earnings == Decimal("204.00")

    def test_discards_client_derived_values(self, db, user, project):
        """Test that supplied duration and earnings are ignored."""
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        updated = services.update_entry(
            entry.id, duration=Decimal("99"), earnings=Decimal("1000000"), notes="hack",
        )
        assert updated.duration == Decimal("8.00")
        assert updated.earnings == Decimal("160.00")
        assert updated.notes == "hack"

    def test_unknown_field(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00")
        with pytest.raises(ValidationError):
            services.update_entry(entry.id, user_id=2)

    def test_invalid_change_leaves_entry(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00")
        with pytest.raises(ValidationError):
            services.update_entry(entry.id, start_time="late")
        assert db.get_entry(entry.id) == entry

    def test_missing(self, db):
        with pytest.raises(NotFoundError):
            services.update_entry(999, notes="x")

    def test_accepts_time_objects(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        updated = services.update_entry(entry.id, start_time=time(8, 0), date=date(2026, 1, 6))
        assert updated.duration == Decimal("9.00")
        assert updated.date == date(2026, 1, 6)

    @pytest.mark.parametrize("start,end,rate", [
        ("09:00", "17:00", "20"),
        ("08:00", "18:00", "10.004"),
        ("22:00", "06:15", "97.125"),
        ("09:00", "09:20", "33.335"),
    ])
    def test_round_trip_recompute_is_stable(self, db, user, project, start, end, rate):
        """Test that repricing a stored entry reproduces its stored values."""
        entry = services.create_entry(user.id, project.id, "2026-01-05", start, end, rate)
        reloaded = db.get_entry(entry.id)
        repriced = price_entry(reloaded)

        assert repriced.duration == reloaded.duration
        assert repriced.earnings == reloaded.earnings
        assert repriced.hourly_rate == reloaded.hourly_rate
        assert reloaded.earnings == compute_earnings(compute_duration(start, end), reloaded.hourly_rate)

    def test_blank_rate_resets_to_default(self, db, user, project):
        """Test that clearing the rate on edit falls back to the user's rate, as on create."""
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "35")
        assert entry.earnings == Decimal("280.00")

        updated = services.update_entry(entry.id, hourly_rate="  ")
        assert updated.hourly_rate == Decimal("20.00")
        assert updated.earnings == Decimal("160.00")

        created = services.create_entry(user.id, project.id, "2026-01-06", "09:00", "17:00", "")
        assert created.hourly_rate == updated.hourly_rate


class TestDeleteEntry:
    """Tests for delete_entry."""

    def test_delete(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00")
        services.delete_entry(entry.id)
        assert db.get_entry(entry.id) is None

    def test_missing(self, db):
        with pytest.raises(NotFoundError):
            services.delete_entry(999)

    def test_get_missing(self, db):
        with pytest.raises(NotFoundError) as exc:
            services.get_entry(42)
        assert "42" in str(exc.value)
        assert isinstance(exc.value, TimesheetError)


class TestMonthlyReports:
    """Tests for report refresh, lookup and completion."""

    def test_refresh_example_month(self, db, user, project):
        """Test two entries on one day: 7 h, 140.00, 1 day, 7 h average."""
        services.create_entry(user.id, project.id, "2026-01-05", "09:00", "12:00", "20")
        services.create_entry(user.id, project.id, "2026-01-05", "13:00", "17:00", "20")
        report = services.refresh_monthly_report(user.id, 2026, 1)
        assert report.hours_worked == Decimal("7.00")
        assert report.total_earnings == Decimal("140.00")
        assert report.days_worked == 1
        assert report.daily_average == Decimal("7.00")
        assert db.get_report(user.id, 2026, 1) == report

    def test_refresh_empty_month(self, db, user):
        report = services.refresh_monthly_report(user.id, 2026, 2)
        assert report.hours_worked == Decimal("0.00")
        assert report.days_worked == 0
        assert report.daily_average == Decimal("0.00")

    def test_refresh_reflects_edits(self, db, user, project):
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        services.refresh_monthly_report(user.id, 2026, 1)
        services.update_entry(entry.id, end_time="10:00")
        report = services.refresh_monthly_report(user.id, 2026, 1)
        assert report.hours_worked == Decimal("1.00")

    def test_get_missing_report(self, db, user):
        with pytest.raises(NotFoundError):
            services.get_monthly_report(user.id, 2026, 1)

    def test_invalid_month(self, db, user):
        with pytest.raises(ValidationError):
            services.refresh_monthly_report(user.id, 2026, 0)

    def test_set_completed(self, db, user, project):
        services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        report = services.set_month_completed(user.id, 2026, 1)
        assert report.is_completed is True
        assert report.hours_worked == Decimal("8.00")
        assert services.get_monthly_report(user.id, 2026, 1).is_completed is True

    def test_reopen(self, db, user):
        services.set_month_completed(user.id, 2026, 1)
        assert services.set_month_completed(user.id, 2026, 1, completed=False).is_completed is False

    def test_edit_keeps_completion(self, db, user, project):
        """Test that editing an entry in a completed month leaves it completed."""
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "17:00", "20")
        services.set_month_completed(user.id, 2026, 1)
        services.update_entry(entry.id, end_time="11:00")
        report = services.refresh_monthly_report(user.id, 2026, 1)
        assert report.is_completed is True
        assert report.hours_worked == Decimal("2.00")

    def test_year_reports(self, db, user, project):
        """Test that only months with entries or stored reports are returned, in order."""
        services.create_entry(user.id, project.id, "2026-03-05", "09:00", "10:00")
        services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:00")
        services.set_month_completed(user.id, 2026, 6)
        services.create_entry(user.id, project.id, "2025-12-05", "09:00", "10:00")
        reports = services.year_reports(user.id, 2026)
        assert [r.month for r in reports] == [1, 3, 6]
        assert reports[2].is_completed is True

    def test_hours_by_project(self, db, user, project):
        other = services.create_project(user.id, "Research", "#10b981")
        entries = [
            services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:30"),
            services.create_entry(user.id, other.id, "2026-01-05", "11:00", "12:00"),
            services.create_entry(user.id, project.id, "2026-01-06", "09:00", "10:00"),
        ]
        assert services.hours_by_project(entries) == {project.id: Decimal("2.50"), other.id: Decimal("1.00")}


class TestProjects:
    """Tests for project operations."""

    def test_create(self, db, user):
        project = services.create_project(user.id, "  Research ", "#10B981")
        assert project.name == "Research"
        assert project.color == "#10b981"

    def test_create_requires_name(self, db, user):
        with pytest.raises(ValidationError):
            services.create_project(user.id, "  ")

    def test_create_rejects_bad_color(self, db, user):
        with pytest.raises(ValidationError):
            services.create_project(user.id, "Research", "blue")

    def test_update_name_only(self, db, project):
        updated = services.update_project(project.id, name="Web")
        assert updated.name == "Web"
        assert updated.color == project.color

    def test_delete_unused(self, db, project):
        services.delete_project(project.id)
        assert db.get_project(project.id) is None

    def test_delete_guarded(self, db, user, project):
        """Test that a project with entries cannot be deleted."""
        services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:00")
        with pytest.raises(ValidationError):
            services.delete_project(project.id)
        assert db.get_project(project.id) is not None

    def test_delete_missing(self, db):
        with pytest.raises(NotFoundError):
            services.delete_project(999)


class TestProfile:
    """Tests for profile and password operations."""

    def test_update_profile(self, db, user):
        updated = services.update_profile(
            user.id, name=" Sam ", initials="sr", hourly_rate="30", monthly_goal_hours="150",
        )
        assert updated.name == "Sam"
        assert updated.initials == "SR"
        assert updated.hourly_rate == Decimal("30.00")
        assert db.get_user(user.id).monthly_goal_hours == Decimal("150.00")

    def test_new_rate_used_for_new_entries(self, db, user, project):
        services.update_profile(user.id, hourly_rate="40")
        entry = services.create_entry(user.id, project.id, "2026-01-05", "09:00", "10:00")
        assert entry.earnings == Decimal("40.00")

    def test_rejects_negative_rate(self, db, user):
        with pytest.raises(ValidationError):
            services.update_profile(user.id, hourly_rate="-1")

    def test_rejects_zero_goal(self, db, user):
        with pytest.raises(ValidationError):
            services.update_profile(user.id, monthly_goal_hours="0")

    def test_rejects_bad_email(self, db, user):
        with pytest.raises(ValidationError):
            services.update_profile(user.id, email="nope")

    def test_rejects_unknown_field(self, db, user):
        with pytest.raises(ValidationError):
            services.update_profile(user.id, password_hash="x")

    def test_change_password(self, db, user):
        services.change_password(user.id, "secret1", "better-secret")
        assert verify_password("better-secret", db.get_user(user.id).password_hash)

    def test_change_password_wrong_current(self, db, user):
        with pytest.raises(ValidationError):
            services.change_password(user.id, "wrong", "better-secret")

    def test_change_password_too_short(self, db, user):
        with pytest.raises(ValidationError):
            services.change_password(user.id, "secret1", "abc")
