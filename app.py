#!/usr/bin/env python3
"""Hourbook TUI application."""

from __future__ import annotations

import argparse
import logging
import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static
from rich.markup import escape
from rich.text import Text

import services
import storage
from errors import NotFoundError, TimesheetError, ValidationError
from exporters import FORMATS, ExportOptions, default_filename, export_month, load_month_export
from models import MonthlyReport, TimeEntry, User
from screens import (
    ConfirmScreen,
    EditEntryScreen,
    ExportRequest,
    ExportScreen,
    ProfileScreen,
    ProfileUpdate,
    ProjectManagementScreen,
)
from utils import count_working_days, format_decimal, format_money, shift_month
from widgets import EntriesTable, MonthHeader, MonthlySummary, ReportsTable

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> Path:
    """Send log records to a file; the terminal belongs to the UI."""
    log_path = Path(os.environ.get("HOURBOOK_LOG", storage.DB_PATH.with_suffix(".log")))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = os.environ.get("HOURBOOK_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        filename=str(log_path),
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
    return log_path


class HourbookApp(App):
    """Main time tracking application."""

    CSS = """
    Screen {
        background: $surface;
    }

    #month-header, #year-header {
        height: auto;
        background: $primary;
        color: $text;
        padding: 0 1;
        text-style: bold;
    }

    #entries-table, #reports-table {
        height: 1fr;
        margin: 1 2;
    }

    #month-summary, #year-summary {
        height: auto;
        padding: 1 2;
        color: $text;
    }

    .hidden {
        display: none;
    }

    DataTable > .datatable--cursor {
        background: $secondary;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        # left/right handled by the tables so Inputs in modals keep cursor movement
        Binding("m", "month_view", "Month"),
        Binding("y", "year_view", "Year"),
        Binding("t", "goto_today", "Today"),
        Binding("$", "toggle_money", "£"),
        Binding("a", "add_entry", "Add"),
        Binding("e", "edit_entry", "Edit"),
        Binding("d", "delete_entry", "Delete"),
        Binding("c", "toggle_completed", "Complete"),
        Binding("p", "manage_projects", "Projects"),
        Binding("u", "edit_profile", "Profile"),
        Binding("x", "export", "Export"),
    ]

    def __init__(self, user: User | None = None):
        super().__init__()
        storage.init_db()
        self.user = user or storage.seed_defaults()
        self.config = storage.get_config()

        # View mode: "month" or "year"
        self.view_mode = "month"

        today = date.today()
        self.current_year = today.year
        self.current_month = today.month
        self.report_year = today.year

        self.entries: list[TimeEntry] = []
        self.report: MonthlyReport | None = None

        # Privacy mode: hide earnings by default
        self.show_money = False

    def compose(self) -> ComposeResult:
        # Month view widgets
        yield MonthHeader(self.current_year, self.current_month, id="month-header")
        yield Container(EntriesTable(id="entries-table"), id="entries-container")
        yield MonthlySummary(id="month-summary")
        # Year view widgets (hidden by default)
        yield Static(id="year-header", classes="hidden")
        yield Container(ReportsTable(id="reports-table"), id="reports-container", classes="hidden")
        yield Static(id="year-summary", classes="hidden")
        yield Footer()

    def on_mount(self):
        self.refresh_bindings()
        self._refresh_display()
        self.query_one("#entries-table", EntriesTable).focus()

    # --- Display ---

    def _refresh_display(self):
        if self.view_mode == "month":
            self._refresh_month_display()
        else:
            self._refresh_year_display()

    def _refresh_month_display(self):
        user_id = self.user.id
        self.entries = services.month_entries(user_id, self.current_year, self.current_month)  # type: ignore[arg-type]
        self.report = services.refresh_monthly_report(user_id, self.current_year, self.current_month)  # type: ignore[arg-type]
        projects = {p.id: p for p in storage.get_projects(user_id)}  # type: ignore[arg-type]

        header = self.query_one("#month-header", MonthHeader)
        header.year = self.current_year
        header.month = self.current_month
        header.update_display(self.report.period, self.report.is_completed)

        self.query_one("#entries-table", EntriesTable).show_entries(self.entries, projects, self.show_money)  # type: ignore[arg-type]

        working_days = count_working_days(
            self.current_year, self.current_month,
            self.config.holiday_country, self.config.holiday_subdiv,
        )
        self.query_one("#month-summary", MonthlySummary).update_display(
            self.report, self.user, self.config, self.show_money, working_days,
        )

    def _refresh_year_display(self):
        user_id = self.user.id
        stored = {r.month: r for r in services.year_reports(user_id, self.report_year)}  # type: ignore[arg-type]
        reports = [
            stored.get(m) or MonthlyReport(user_id=user_id, year=self.report_year, month=m)  # type: ignore[arg-type]
            for m in range(1, 13)
        ]

        header = Text()
        header.append(f"◄ {self.report_year} ►", style="bold")
        self.query_one("#year-header", Static).update(header)

        self.query_one("#reports-table", ReportsTable).show_reports(reports, self.user, self.show_money)

        total_hours = sum((r.hours_worked for r in reports), Decimal("0"))
        total_days = sum(r.days_worked for r in reports)
        completed = sum(1 for r in reports if r.is_completed)
        summary = Text()
        summary.append(f"Year total: {format_decimal(total_hours)} h over {total_days} days")
        if self.show_money:
            total_earned = sum((r.total_earnings for r in reports), Decimal("0"))
            summary.append("   " + format_money(total_earned, self.config.currency), style="bold")
        summary.append(f"   {completed} of 12 months completed", style="dim")
        self.query_one("#year-summary", Static).update(summary)

    def _set_view_mode(self, mode: str):
        """Switch between month and year views."""
        self.view_mode = mode
        month_widgets = ["#month-header", "#entries-container", "#month-summary"]
        year_widgets = ["#year-header", "#reports-container", "#year-summary"]

        for widget_id in month_widgets:
            self.query_one(widget_id).set_class(mode != "month", "hidden")
        for widget_id in year_widgets:
            self.query_one(widget_id).set_class(mode != "year", "hidden")

        self.refresh_bindings()
        self._refresh_display()

        if mode == "month":
            self.query_one("#entries-table", DataTable).focus()
        else:
            table = self.query_one("#reports-table", DataTable)
            table.focus()
            if self.report_year == self.current_year:
                table.move_cursor(row=self.current_month - 1)

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Check if an action is available in the current view."""
        if action == "month_view":
            return True
        elif action == "year_view":
            return self.view_mode != "year"
        elif action in ("add_entry", "edit_entry", "delete_entry", "toggle_completed", "export"):
            return True if self.view_mode == "month" else None
        return True

    def _show_error(self, error: TimesheetError) -> None:
        logger.warning("%s", error)
        self.notify(escape(str(error)), severity="error")

    # --- Messages from widgets ---

    def on_entries_table_step(self, message: EntriesTable.Step) -> None:
        if self.view_mode == "year":
            self.report_year += message.delta
        else:
            self.current_year, self.current_month = shift_month(
                self.current_year, self.current_month, message.delta,
            )
        self._refresh_display()

    def on_entries_table_edit_requested(self, message: EntriesTable.EditRequested) -> None:
        self._edit_entry(message.entry_id)

    def on_reports_table_step(self, message: ReportsTable.Step) -> None:
        self.report_year += message.delta
        self._refresh_display()

    def on_reports_table_month_chosen(self, message: ReportsTable.MonthChosen) -> None:
        self._navigate_to_month(message.year, message.month)

    # --- Navigation ---

    def _navigate_to_month(self, year: int, month: int):
        self.current_year = year
        self.current_month = month
        self._set_view_mode("month")

    def action_month_view(self):
        """Switch to month view, opening the highlighted month from year view."""
        if self.view_mode == "year":
            table = self.query_one("#reports-table", ReportsTable)
            table.action_select_cursor()
        else:
            self._set_view_mode("month")

    def action_year_view(self):
        self.report_year = self.current_year
        self._set_view_mode("year")

    def action_goto_today(self):
        today = date.today()
        self.current_year = today.year
        self.current_month = today.month
        self.report_year = today.year
        self._refresh_display()

    def action_toggle_money(self):
        """Toggle display of rates and earnings."""
        self.show_money = not self.show_money
        self._refresh_display()

    # --- Entries ---

    def _default_entry_date(self) -> date:
        today = date.today()
        if (today.year, today.month) == (self.current_year, self.current_month):
            return today
        return date(self.current_year, self.current_month, 1)

    def action_add_entry(self):
        projects = storage.get_projects(self.user.id)  # type: ignore[arg-type]
        if not projects:
            self.notify("Create a project first (p)", severity="warning")
            return
        self.push_screen(
            EditEntryScreen(projects, self.user.hourly_rate, default_date=self._default_entry_date()),
            self._on_entry_created,
        )

    def _on_entry_created(self, values: dict | None) -> None:
        if not values:
            return
        try:
            entry = services.create_entry(
                self.user.id,  # type: ignore[arg-type]
                values["project_id"],
                values["date"],
                values["start_time"],
                values["end_time"],
                hourly_rate=values["hourly_rate"],
                notes=values["notes"],
            )
        except TimesheetError as e:
            self._show_error(e)
            return
        self.notify(f"Added {format_decimal(entry.duration)} h on {entry.date.strftime('%a %d %b')}")
        self._navigate_to_month(entry.date.year, entry.date.month)

    def action_edit_entry(self):
        entry_id = self.query_one("#entries-table", EntriesTable).selected_entry_id()
        if entry_id is None:
            self.notify("No entry selected", severity="warning")
            return
        self._edit_entry(entry_id)

    def _edit_entry(self, entry_id: int) -> None:
        try:
            entry = services.get_entry(entry_id)
        except TimesheetError as e:
            self._show_error(e)
            return
        self.push_screen(
            EditEntryScreen(storage.get_projects(self.user.id), self.user.hourly_rate, entry=entry),  # type: ignore[arg-type]
            lambda values: self._on_entry_edited(entry_id, values),
        )

    def _on_entry_edited(self, entry_id: int, values: dict | None) -> None:
        if not values:
            return
        try:
            entry = services.update_entry(entry_id, **values)
        except TimesheetError as e:
            self._show_error(e)
            return
        self.notify(f"Saved {format_decimal(entry.duration)} h")
        self._navigate_to_month(entry.date.year, entry.date.month)

    def action_delete_entry(self):
        table = self.query_one("#entries-table", EntriesTable)
        entry_id = table.selected_entry_id()
        if entry_id is None:
            self.notify("No entry selected", severity="warning")
            return
        entry = next((e for e in self.entries if e.id == entry_id), None)
        label = f"{entry.date.strftime('%a %d %b')} {entry.start_time:%H:%M}-{entry.end_time:%H:%M}" if entry else entry_id
        self.push_screen(
            ConfirmScreen(f"Delete entry {label}?"),
            lambda confirmed: self._on_delete_confirmed(entry_id, confirmed),
        )

    def _on_delete_confirmed(self, entry_id: int, confirmed: bool | None) -> None:
        if not confirmed:
            return
        try:
            services.delete_entry(entry_id)
        except TimesheetError as e:
            self._show_error(e)
            return
        self.notify("Entry deleted")
        self._refresh_display()

    def action_toggle_completed(self):
        completed = not (self.report and self.report.is_completed)
        try:
            self.report = services.set_month_completed(
                self.user.id, self.current_year, self.current_month, completed,  # type: ignore[arg-type]
            )
        except TimesheetError as e:
            self._show_error(e)
            return
        self.notify(f"{self.report.period} marked {self.report.status}")
        self._refresh_display()

    # --- Projects, profile, export ---

    def action_manage_projects(self):
        self.push_screen(ProjectManagementScreen(self.user.id), lambda _: self._refresh_display())  # type: ignore[arg-type]

    def action_edit_profile(self):
        self.push_screen(ProfileScreen(self.user), self._on_profile_saved)

    def _on_profile_saved(self, update: ProfileUpdate | None) -> None:
        if not update:
            return
        try:
            if update.new_password:
                services.change_password(self.user.id, update.current_password or "", update.new_password)  # type: ignore[arg-type]
            self.user = services.update_profile(self.user.id, **update.fields)  # type: ignore[arg-type]
        except TimesheetError as e:
            self._show_error(e)
            return
        self.notify("Profile saved")
        self._refresh_display()

    def action_export(self):
        self.push_screen(ExportScreen(self.current_year, self.current_month), self._on_export_chosen)

    def _on_export_chosen(self, request: ExportRequest | None) -> None:
        if not request:
            return
        try:
            data = load_month_export(self.user.id, self.current_year, self.current_month)  # type: ignore[arg-type]
            path = export_month(request.fmt, request.path, data, request.options)
        except TimesheetError as e:
            self._show_error(e)
            return
        except OSError as e:
            logger.error("Export to %s failed: %s", request.path, e)
            self.notify(escape(f"Export failed: {e}"), severity="error")
            return
        self.notify(f"Exported to {path}")


def _parse_month(value: str) -> tuple[int, int]:
    """Parse ``YYYY-MM`` for ``--month``."""
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}") from None
    return parsed.year, parsed.month


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hourbook", description="Track hours and earnings per month.")
    parser.add_argument("--db-info", action="store_true", help="Show database location and size")
    parser.add_argument("--export", choices=FORMATS, help="Export a month without starting the UI")
    parser.add_argument("--month", type=_parse_month, help="Month to export, YYYY-MM (default: this month)")
    parser.add_argument("--output", type=Path, help="Export file (default: hourbook-YYYY-MM.<format>)")
    parser.add_argument("--user", metavar="USERNAME", help="Whose month to export (default: the first user)")
    return parser


def _print_db_info() -> None:
    db_path = storage.DB_PATH
    print(f"Database: {db_path}")
    if db_path.exists():
        mtime = datetime.fromtimestamp(db_path.stat().st_mtime)
        size = db_path.stat().st_size
        print(f"Modified: {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"Size: {size:,} bytes")
    else:
        print("Status: Does not exist (will be created on first run)")


def _export_from_cli(
    fmt: str,
    month: tuple[int, int] | None,
    output: Path | None,
    username: str | None = None,
) -> Path:
    storage.init_db()
    user = storage.seed_defaults()
    if username:
        user = storage.get_user_by_username(username)
        if user is None:
            raise NotFoundError("user", username)
    year, month_num = month or (date.today().year, date.today().month)
    path = output or Path(default_filename(fmt, year, month_num))
    data = load_month_export(user.id, year, month_num)  # type: ignore[arg-type]
    return export_month(fmt, path, data, ExportOptions())


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.db_info:
        _print_db_info()
        return 0

    configure_logging()

    if args.export:
        try:
            path = _export_from_cli(args.export, args.month, args.output, args.user)
        except (ValidationError, NotFoundError) as e:
            parser.error(str(e))
        except OSError as e:
            parser.error(f"cannot write export: {e}")
        print(f"Exported {args.export} to {path}")
        return 0
    if args.month or args.output or args.user:
        parser.error("--month, --output and --user need --export")

    app = HourbookApp()
    app.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
