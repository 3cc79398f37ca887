"""Custom widgets for the timesheet application."""

from __future__ import annotations

from datetime import date

from rich.text import Text
from textual.coordinate import Coordinate
from textual.message import Message
from textual.widgets import DataTable, Static

from calculations import monthly_progress
from models import Config, MonthlyReport, Project, TimeEntry, User
from utils import format_decimal, format_duration, format_money


class EntriesTable(DataTable):
    """Month's time entries. Asks the app to edit or change month via messages."""

    class EditRequested(Message):
        def __init__(self, entry_id: int) -> None:
            self.entry_id = entry_id
            super().__init__()

    class Step(Message):
        """Move the visible period by ``delta`` (left/right arrows)."""

        def __init__(self, delta: int) -> None:
            self.delta = delta
            super().__init__()

    COLUMNS = [
        ("Date", 8), ("Day", 4), ("Project", 20), ("Start", 6), ("End", 6),
        ("Hours", 7), ("Rate", 8), ("Earned", 10), ("Notes", 30),
    ]

    def on_mount(self) -> None:
        self.cursor_type = "row"
        for label, width in self.COLUMNS:
            self.add_column(label, width=width)

    def on_key(self, event) -> None:
        """Left/right change month; other keys keep DataTable behaviour."""
        if event.key in ("left", "right"):
            self.post_message(self.Step(-1 if event.key == "left" else 1))
            event.prevent_default()
            event.stop()

    def action_select_cursor(self) -> None:
        entry_id = self.selected_entry_id()
        if entry_id is not None:
            self.post_message(self.EditRequested(entry_id))

    def selected_entry_id(self) -> int | None:
        if self.row_count == 0:
            return None
        row_key = self.coordinate_to_cell_key(Coordinate(self.cursor_row, 0)).row_key
        return int(str(row_key.value)) if row_key and row_key.value else None

    def show_entries(self, entries: list[TimeEntry], projects: dict[int, Project], show_money: bool) -> None:
        self.clear()
        for entry in entries:
            project = projects.get(entry.project_id)
            project_cell = Text(project.name, style=project.color) if project else Text("?", style="dim")
            end = entry.end_time.strftime("%H:%M") + ("+1" if entry.is_overnight else "")
            self.add_row(
                entry.date.strftime("%d %b"),
                entry.day_of_week,
                project_cell,
                entry.start_time.strftime("%H:%M"),
                end,
                format_decimal(entry.duration),
                format_decimal(entry.hourly_rate) if show_money else "-",
                format_decimal(entry.earnings) if show_money else "-",
                Text(entry.notes or ""),
                key=str(entry.id),
            )


class ReportsTable(DataTable):
    """One row per month of a year."""

    class MonthChosen(Message):
        def __init__(self, year: int, month: int) -> None:
            self.year = year
            self.month = month
            super().__init__()

    class Step(Message):
        def __init__(self, delta: int) -> None:
            self.delta = delta
            super().__init__()

    def on_mount(self) -> None:
        self.cursor_type = "row"
        for label, width in [("Month", 12), ("Hours", 8), ("Days", 5), ("Avg/day", 8),
                             ("Earned", 12), ("Goal", 6), ("Status", 12)]:
            self.add_column(label, width=width)

    def on_key(self, event) -> None:
        if event.key in ("left", "right"):
            self.post_message(self.Step(-1 if event.key == "left" else 1))
            event.prevent_default()
            event.stop()

    def action_select_cursor(self) -> None:
        if self.row_count == 0:
            return
        row_key = self.coordinate_to_cell_key(Coordinate(self.cursor_row, 0)).row_key
        if row_key and row_key.value:
            year, month = str(row_key.value).split("-")
            self.post_message(self.MonthChosen(int(year), int(month)))

    def show_reports(self, reports: list[MonthlyReport], user: User, show_money: bool) -> None:
        self.clear()
        for report in reports:
            style = "" if report.days_worked else "dim"
            progress = monthly_progress(report.hours_worked, user.monthly_goal_hours)
            self.add_row(
                Text(date(report.year, report.month, 1).strftime("%B"), style=style),
                Text(format_decimal(report.hours_worked), style=style),
                Text(str(report.days_worked), style=style),
                Text(format_decimal(report.daily_average), style=style),
                Text(format_decimal(report.total_earnings) if show_money else "-", style=style),
                Text(f"{progress}%", style=style),
                Text("✓ completed" if report.is_completed else "in progress",
                     style="green" if report.is_completed else style),
                key=f"{report.year:04d}-{report.month:02d}",
            )


class MonthHeader(Static):
    """Shows the period title with clickable navigation arrows."""

    def __init__(self, year: int, month: int, **kwargs):
        super().__init__(**kwargs)
        self.year = year
        self.month = month
        self.left_arrow_pos = 0
        self.right_arrow_pos = 0

    def update_display(self, title: str, is_completed: bool = False) -> None:
        nav = f"◄ {title} ►"
        # Positions of the arrows for click detection
        self.left_arrow_pos = 0
        self.right_arrow_pos = len(nav) - 1

        text = Text()
        text.append(nav, style="bold")
        if is_completed:
            text.append("   COMPLETED", style="bold green")
        self.update(text)

    def on_click(self, event) -> None:
        if self.left_arrow_pos <= event.x < self.left_arrow_pos + 2:
            self.post_message(EntriesTable.Step(-1))
        elif self.right_arrow_pos <= event.x < self.right_arrow_pos + 2:
            self.post_message(EntriesTable.Step(1))


class MonthlySummary(Static):
    """Shows the month's report: hours, days, average, earnings and goal progress."""

    BAR_WIDTH = 30

    def render_summary(
        self,
        report: MonthlyReport,
        user: User,
        config: Config,
        show_money: bool,
        working_days: int | None = None,
    ) -> Text:
        progress = monthly_progress(report.hours_worked, user.monthly_goal_hours)
        filled = self.BAR_WIDTH * progress // 100

        text = Text()
        text.append(f"{'Hours worked':>16}  {format_decimal(report.hours_worked):>9}  ({format_duration(report.hours_worked)})\n")
        text.append(f"{'Days worked':>16}  {report.days_worked:>9}")
        if working_days is not None:
            expected = config.standard_day_hours * working_days
            text.append(f"  of {working_days} working days ({format_decimal(expected)}h expected)", style="dim")
        text.append("\n")
        text.append(f"{'Daily average':>16}  {format_decimal(report.daily_average):>9}\n",
                    style="dim" if report.daily_average == 0 else "")
        if show_money:
            earned = format_money(report.total_earnings, config.currency)
            text.append(f"{'Total earnings':>16}  {earned:>9}\n", style="bold")
        text.append(f"{'Goal':>16}  ")
        text.append("█" * filled, style="green" if progress >= 100 else "cyan")
        text.append("░" * (self.BAR_WIDTH - filled), style="dim")
        text.append(f"  {progress}% of {format_decimal(user.monthly_goal_hours)}h\n")
        status = "Completed" if report.is_completed else "In progress"
        text.append(f"{'Status':>16}  {status}", style="bold green" if report.is_completed else "")
        return text

    def update_display(
        self,
        report: MonthlyReport,
        user: User,
        config: Config,
        show_money: bool,
        working_days: int | None = None,
    ) -> None:
        self.update(self.render_summary(report, user, config, show_money, working_days))
