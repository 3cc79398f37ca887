"""Tests for models.py"""

from datetime import date, time
from decimal import Decimal

from models import Config, MonthlyReport, Project, TimeEntry, User


class TestTimeEntry:
    """Tests for TimeEntry dataclass."""

    def test_defaults(self, sample_entry):
        """Test that derived fields start at zero and id is unset."""
        assert sample_entry.duration == Decimal("0")
        assert sample_entry.earnings == Decimal("0")
        assert sample_entry.id is None

    def test_day_of_week(self, sample_entry):
        """Test the weekday abbreviation (2026-01-15 is a Thursday)."""
        assert sample_entry.day_of_week == "Thu"

    def test_not_overnight(self, sample_entry):
        assert sample_entry.is_overnight is False

    def test_overnight(self):
        """Test an entry that ends after midnight."""
        entry = TimeEntry(
            user_id=1,
            project_id=1,
            date=date(2026, 1, 15),
            start_time=time(22, 0),
            end_time=time(6, 0),
            hourly_rate=Decimal("20"),
        )
        assert entry.is_overnight is True

    def test_equal_times_not_overnight(self):
        entry = TimeEntry(
            user_id=1,
            project_id=1,
            date=date(2026, 1, 15),
            start_time=time(9, 0),
            end_time=time(9, 0),
            hourly_rate=Decimal("20"),
        )
        assert entry.is_overnight is False


class TestMonthlyReport:
    """Tests for MonthlyReport dataclass."""

    def test_defaults(self):
        report = MonthlyReport(user_id=1, year=2026, month=3)
        assert report.hours_worked == Decimal("0")
        assert report.days_worked == 0
        assert report.is_completed is False

    def test_period(self):
        assert MonthlyReport(user_id=1, year=2026, month=1).period == "January 2026"

    def test_status(self):
        assert MonthlyReport(user_id=1, year=2026, month=1).status == "in progress"
        assert MonthlyReport(user_id=1, year=2026, month=1, is_completed=True).status == "completed"


class TestProject:
    """Tests for Project dataclass."""

    def test_default_color(self):
        assert Project(name="Marketing", user_id=1).color == "#3b82f6"


class TestUser:
    """Tests for User dataclass."""

    def test_defaults(self):
        user = User(username="a", password_hash="x", name="A B", email="a@example.com")
        assert user.hourly_rate == Decimal("25")
        assert user.monthly_goal_hours == Decimal("160")

    def test_display_initials_stored(self):
        user = User(username="a", password_hash="x", name="Alex Denova", email="a@example.com", initials="AX")
        assert user.display_initials == "AX"

    def test_display_initials_from_name(self):
        """Test initials derived from the first two name parts."""
        user = User(username="a", password_hash="x", name="alex jay denova", email="a@example.com")
        assert user.display_initials == "AJ"


class TestConfig:
    """Tests for Config dataclass."""

    def test_defaults(self):
        config = Config()
        assert config.currency == "GBP"
        assert config.standard_day_hours == Decimal("7.5")
        assert config.holiday_country == "GB"
        assert config.holiday_subdiv == "ENG"

    def test_custom(self, sample_config):
        sample_config.currency = "EUR"
        assert sample_config.currency == "EUR"
