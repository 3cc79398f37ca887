"""Tests for the app module."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

import services


class TestHourbookApp:
    """Tests for HourbookApp state that does not need a running UI."""

    def test_init_seeds_default_user(self, db):
        """Test that the app starts with the demo user on an empty database."""
        from app import HourbookApp

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp()

            assert app.user.username == "demo"
            assert app.view_mode == "month"
            assert app.show_money is False
            assert (app.current_year, app.current_month) == (date.today().year, date.today().month)

    def test_init_with_user(self, db, user):
        from app import HourbookApp

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp(user)
            assert app.user.id == user.id
            assert db.get_user_by_username("demo") is None

    def test_default_entry_date_current_month(self, db, user):
        """Test that new entries default to today in the current month."""
        from app import HourbookApp

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp(user)
            assert app._default_entry_date() == date.today()

    def test_default_entry_date_other_month(self, db, user):
        """Test that new entries default to the 1st when browsing another month."""
        from app import HourbookApp

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp(user)
            app.current_year, app.current_month = 2020, 2
            assert app._default_entry_date() == date(2020, 2, 1)

    def test_check_action_month_view(self, db, user):
        from app import HourbookApp

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp(user)
            assert app.check_action("add_entry", ()) is True
            assert app.check_action("year_view", ()) is True
            assert app.check_action("quit", ()) is True

    def test_check_action_year_view(self, db, user):
        """Test that entry actions are hidden in year view."""
        from app import HourbookApp

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp(user)
            app.view_mode = "year"
            assert app.check_action("add_entry", ()) is None
            assert app.check_action("delete_entry", ()) is None
            assert app.check_action("toggle_completed", ()) is None
            assert app.check_action("year_view", ()) is False
            assert app.check_action("month_view", ()) is True

    def test_error_notify_escapes_markup(self, db, user):
        """Test that error text with brackets reaches notify escaped."""
        from app import HourbookApp
        from errors import ValidationError

        with patch.object(HourbookApp, 'run'):
            app = HourbookApp(user)
            app.notify = MagicMock()
            app._show_error(ValidationError("notes: fixed [/] bug"))

            message = app.notify.call_args[0][0]
            assert message == "notes: fixed \\[/] bug"
            assert app.notify.call_args[1]["severity"] == "error"


class TestMain:
    """Tests for the command line entry point."""

    def test_db_info(self, db, capsys):
        from app import main

        assert main(["--db-info"]) == 0
        out = capsys.readouterr().out
        assert f"Database: {db.DB_PATH}" in out
        assert "Size:" in out

    def test_export_csv(self, db, tmp_path, capsys):
        """Test a CSV export of the default user's month without the UI."""
        from app import main

        user = db.seed_defaults()
        project = db.get_projects(user.id)[0]
        services.create_entry(user.id, project.id, "2026-01-05", "09:00", "12:00", "20")

        out_path = tmp_path / "jan.csv"
        assert main(["--export", "csv", "--month", "2026-01", "--output", str(out_path)]) == 0

        text = out_path.read_text()
        assert "January 2026" in text
        assert "60.00" in text
        assert str(out_path) in capsys.readouterr().out
        assert db.get_report(user.id, 2026, 1) is not None

    def test_export_pdf_default_name(self, db, tmp_path, monkeypatch):
        from app import main

        monkeypatch.chdir(tmp_path)
        assert main(["--export", "pdf", "--month", "2026-02"]) == 0
        assert (tmp_path / "hourbook-2026-02.pdf").read_bytes().startswith(b"%PDF")

    def test_bad_month(self, db):
        from app import main

        with pytest.raises(SystemExit) as exc:
            main(["--export", "csv", "--month", "2026-13"])
        assert exc.value.code == 2

    def test_month_without_export(self, db):
        from app import main

        with pytest.raises(SystemExit) as exc:
            main(["--month", "2026-01"])
        assert exc.value.code == 2

    def test_unknown_format(self, db):
        from app import main

        with pytest.raises(SystemExit):
            main(["--export", "docx"])

    def test_export_named_user(self, db, user, tmp_path):
        """Test that --user exports that user's month instead of the first user's."""
        from app import main
        from models import Project, User

        kim = db.create_user(User(username="kim", password_hash="x", name="Kim Osei",
                                  email="kim@example.com", hourly_rate=Decimal("30.00")))
        project = db.save_project(Project(name="Audit", user_id=kim.id))
        services.create_entry(kim.id, project.id, "2026-01-05", "09:00", "11:00")

        out_path = tmp_path / "kim.csv"
        assert main(["--export", "csv", "--month", "2026-01", "--output", str(out_path), "--user", "kim"]) == 0

        text = out_path.read_text()
        assert "Kim Osei" in text
        assert "Sam Rivers" not in text
        assert "60.00" in text

    def test_export_unknown_user(self, db, tmp_path, capsys):
        from app import main

        with pytest.raises(SystemExit) as exc:
            main(["--export", "csv", "--output", str(tmp_path / "a.csv"), "--user", "nobody"])
        assert exc.value.code == 2
        assert "user not found: nobody" in capsys.readouterr().err

    def test_user_without_export(self, db):
        from app import main

        with pytest.raises(SystemExit) as exc:
            main(["--user", "sam"])
        assert exc.value.code == 2

    def test_unwritable_output(self, db, tmp_path, capsys):
        """Test that a path under a regular file is a usage error, not a traceback."""
        from app import main

        blocker = tmp_path / "file.txt"
        blocker.write_text("not a directory")

        with pytest.raises(SystemExit) as exc:
            main(["--export", "csv", "--month", "2026-01", "--output", str(blocker / "sub" / "out.csv")])
        assert exc.value.code == 2
        assert "cannot write export" in capsys.readouterr().err
