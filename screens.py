"""Modal screens for the timesheet application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from rich.markup import escape
from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.coordinate import Coordinate
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, DataTable, Input, Label, Select

import services
import storage
from calculations import compute_duration, compute_earnings, parse_time, to_decimal
from errors import TimesheetError, ValidationError
from exporters import FORMATS, ExportOptions, default_filename
from models import Project, TimeEntry, User
from utils import format_decimal, format_duration

FORM_CSS = """
    .dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    .dialog-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-group {
        width: 1fr;
        height: auto;
        margin: 0 1 0 0;
    }

    .field-label {
        height: 1;
        margin-bottom: 0;
        color: $text-muted;
    }

    .field-row {
        width: 100%;
        height: auto;
        margin-bottom: 1;
    }

    .field-row Input, .field-row Select {
        width: 100%;
    }

    .dialog-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    .dialog-buttons Button {
        width: auto;
        min-width: 12;
        margin: 0 2;
    }
"""


class ConfirmScreen(ModalScreen[bool]):
    """Simple confirmation dialog."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 50;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #confirm-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #confirm-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(Text(self.message))
            with Horizontal(id="confirm-buttons"):
                yield Button("Yes (Y)", variant="warning", id="yes")
                yield Button("No (N)", variant="default", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class EditEntryScreen(ModalScreen[dict | None]):
    """Create or edit a time entry.

    Dismisses with the entry fields as entered (validated, not priced); the
    app hands them to the services layer, which computes duration and
    earnings.
    """

    CSS = "EditEntryScreen { align: center middle; }" + FORM_CSS + """
    #notes-group {
        width: 2fr;
    }

    #entry-preview {
        width: 100%;
        height: 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    # Field order for Enter key navigation
    FIELD_ORDER = ["entry-date", "start-time", "end-time", "hourly-rate", "notes"]

    def __init__(
        self,
        projects: list[Project],
        default_rate,
        entry: TimeEntry | None = None,
        default_date: date | None = None,
    ):
        super().__init__()
        self.projects = projects
        self.default_rate = default_rate
        self.entry = entry  # None means creating new
        self.default_date = default_date or date.today()

    def compose(self) -> ComposeResult:
        entry = self.entry
        title = f"Edit entry {entry.date.strftime('%a %b %d, %Y')}" if entry else "New time entry"
        project_id = entry.project_id if entry else (self.projects[0].id if self.projects else None)

        with Vertical(classes="dialog"):
            yield Label(title, classes="dialog-title")

            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Project", classes="field-label")
                    yield Select(
                        [(Text(p.name), p.id) for p in self.projects],
                        value=project_id,
                        allow_blank=False,
                        id="project",
                    )
                with Vertical(classes="field-group"):
                    yield Label("Date (YYYY-MM-DD)", classes="field-label")
                    yield Input(
                        value=(entry.date if entry else self.default_date).isoformat(),
                        id="entry-date",
                    )

            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Start (HH:MM)", classes="field-label")
                    yield Input(
                        value=entry.start_time.strftime("%H:%M") if entry else "",
                        placeholder="09:00",
                        id="start-time",
                    )
                with Vertical(classes="field-group"):
                    yield Label("End (HH:MM)", classes="field-label")
                    yield Input(
                        value=entry.end_time.strftime("%H:%M") if entry else "",
                        placeholder="17:00",
                        id="end-time",
                    )
                with Vertical(classes="field-group"):
                    yield Label("Rate", classes="field-label")
                    yield Input(
                        value=format_decimal(entry.hourly_rate if entry else self.default_rate),
                        id="hourly-rate",
                    )

            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group", id="notes-group"):
                    yield Label("Notes", classes="field-label")
                    yield Input(value=entry.notes or "" if entry else "", id="notes")

            yield Label("", id="entry-preview")

            with Horizontal(classes="dialog-buttons"):
                yield Button("Save", variant="primary", id="save")
                yield Button("Cancel", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#start-time", Input).focus()
        self._update_preview()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Move to next field on Enter, or save if on last field."""
        current_id = event.input.id
        if current_id in self.FIELD_ORDER:
            current_idx = self.FIELD_ORDER.index(current_id)
            if current_idx < len(self.FIELD_ORDER) - 1:
                next_id = self.FIELD_ORDER[current_idx + 1]
                self.query_one(f"#{next_id}", Input).focus()
            else:
                self._save_entry()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id in ("start-time", "end-time", "hourly-rate"):
            self._update_preview()

    def _update_preview(self) -> None:
        """Show the duration and earnings the entry will get."""
        preview = self.query_one("#entry-preview", Label)
        try:
            hours = compute_duration(
                self.query_one("#start-time", Input).value,
                self.query_one("#end-time", Input).value,
            )
            earnings = compute_earnings(hours, self.query_one("#hourly-rate", Input).value)
        except ValidationError:
            preview.update("")
            return
        preview.update(f"{format_duration(hours)}  =  {format_decimal(hours)} h  →  {format_decimal(earnings)}")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save_entry()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _collect(self) -> dict:
        """Read and validate the form. Raises ValidationError."""
        project_id = self.query_one("#project", Select).value
        if not isinstance(project_id, int):
            raise ValidationError("Choose a project", field="project_id")
        raw_date = self.query_one("#entry-date", Input).value.strip()
        try:
            entry_date = date.fromisoformat(raw_date)
        except ValueError:
            raise ValidationError(f"Date must be YYYY-MM-DD, got {raw_date!r}", field="date") from None
        start = self.query_one("#start-time", Input).value.strip()
        end = self.query_one("#end-time", Input).value.strip()
        if not start or not end:
            raise ValidationError("Start and end times are required")
        rate = to_decimal(self.query_one("#hourly-rate", Input).value, "Rate")
        if rate < 0:
            raise ValidationError("Rate must be 0 or more", field="hourly_rate")
        return {
            "project_id": project_id,
            "date": entry_date,
            "start_time": parse_time(start, "Start"),
            "end_time": parse_time(end, "End"),
            "hourly_rate": rate,
            "notes": self.query_one("#notes", Input).value.strip() or None,
        }

    def _save_entry(self) -> None:
        try:
            values = self._collect()
        except ValidationError as e:
            self.app.notify(escape(str(e)), severity="error")
            return
        self.dismiss(values)


class EditProjectScreen(ModalScreen[tuple[str, str] | None]):
    """Create or rename/recolour a project. Dismisses with (name, color)."""

    CSS = "EditProjectScreen { align: center middle; }" + FORM_CSS

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, project: Project | None = None):
        super().__init__()
        self.project = project  # None means creating new

    def compose(self) -> ComposeResult:
        title = "Edit Project" if self.project else "New Project"
        with Vertical(classes="dialog"):
            yield Label(title, classes="dialog-title")
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Name", classes="field-label")
                    yield Input(value=self.project.name if self.project else "", id="project-name")
                with Vertical(classes="field-group"):
                    yield Label("Colour (#RRGGBB)", classes="field-label")
                    yield Input(
                        value=self.project.color if self.project else "#3b82f6",
                        id="project-color",
                        max_length=7,
                    )
            with Horizontal(classes="dialog-buttons"):
                yield Button("Save", variant="primary", id="save")
                yield Button("Cancel", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#project-name", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "project-name":
            self.query_one("#project-color", Input).focus()
        else:
            self._save()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save(self) -> None:
        name = self.query_one("#project-name", Input).value.strip()
        color = self.query_one("#project-color", Input).value.strip()
        if not name:
            self.app.notify("Project name is required", severity="error")
            return
        self.dismiss((name, color))


class ProjectManagementScreen(ModalScreen[None]):
    """Modal screen for managing projects."""

    CSS = """
    ProjectManagementScreen {
        align: center middle;
    }

    #projects-dialog {
        width: 70;
        height: 22;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #projects-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #projects-table {
        height: 1fr;
    }

    #projects-footer {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #projects-footer Button {
        width: auto;
        min-width: 10;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("n", "new_project", "New"),
        Binding("e", "edit_project", "Edit"),
        Binding("d", "delete_project", "Delete"),
    ]

    def __init__(self, user_id: int):
        super().__init__()
        self.user_id = user_id

    def compose(self) -> ComposeResult:
        with Vertical(id="projects-dialog"):
            yield Label("Projects", id="projects-title")
            yield DataTable(id="projects-table")
            with Horizontal(id="projects-footer"):
                yield Button("New [n]", id="btn-new")
                yield Button("Edit [e]", id="btn-edit")
                yield Button("Delete [d]", id="btn-delete")
                yield Button("Close [Esc]", id="btn-close")

    def on_mount(self) -> None:
        table = self.query_one("#projects-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Name", width=36)
        table.add_column("Colour", width=10)
        table.add_column("In use", width=8)
        self._refresh_table()
        table.focus()

    def _refresh_table(self) -> None:
        table = self.query_one("#projects-table", DataTable)
        table.clear()
        for project in storage.get_projects(self.user_id):
            in_use = not storage.can_delete_project(project.id)  # type: ignore[arg-type]
            table.add_row(
                Text(project.name),
                Text.assemble(("■", project.color), f" {project.color}"),
                "yes" if in_use else "",
                key=str(project.id),
            )

    def _get_selected_project_id(self) -> int | None:
        table = self.query_one("#projects-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        return int(str(row_key.value)) if row_key else None

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Enter on a row edits the project."""
        if event.control.id == "projects-table":
            self.action_edit_project()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "btn-new":
            self.action_new_project()
        elif button_id == "btn-edit":
            self.action_edit_project()
        elif button_id == "btn-delete":
            self.action_delete_project()
        elif button_id == "btn-close":
            self.action_close()

    def action_close(self) -> None:
        self.dismiss(None)

    def action_new_project(self) -> None:
        self.app.push_screen(EditProjectScreen(), self._on_project_created)

    def action_edit_project(self) -> None:
        project_id = self._get_selected_project_id()
        if project_id is None:
            self.app.notify("No project selected", severity="warning")
            return
        project = storage.get_project(project_id)
        if project:
            self.app.push_screen(
                EditProjectScreen(project),
                lambda result: self._on_project_edited(project_id, result),
            )

    def _on_project_created(self, result: tuple[str, str] | None) -> None:
        if not result:
            return
        try:
            project = services.create_project(self.user_id, *result)
        except TimesheetError as e:
            self.app.notify(escape(str(e)), severity="error")
            return
        self.app.notify(f"Project {escape(project.name)} created")
        self._refresh_table()

    def _on_project_edited(self, project_id: int, result: tuple[str, str] | None) -> None:
        if not result:
            return
        try:
            project = services.update_project(project_id, *result)
        except TimesheetError as e:
            self.app.notify(escape(str(e)), severity="error")
            return
        self.app.notify(f"Project {escape(project.name)} saved")
        self._refresh_table()

    def action_delete_project(self) -> None:
        project_id = self._get_selected_project_id()
        if project_id is None:
            self.app.notify("No project selected", severity="warning")
            return
        if not storage.can_delete_project(project_id):
            self.app.notify("Cannot delete: project has time entries", severity="error")
            return
        project = storage.get_project(project_id)
        self.app.push_screen(
            ConfirmScreen(f"Delete project {project.name if project else project_id}?"),
            lambda confirmed: self._on_delete_confirmed(project_id, confirmed),
        )

    def _on_delete_confirmed(self, project_id: int, confirmed: bool | None) -> None:
        if not confirmed:
            return
        try:
            services.delete_project(project_id)
        except TimesheetError as e:
            self.app.notify(escape(str(e)), severity="error")
            return
        self.app.notify("Project deleted")
        self._refresh_table()


@dataclass
class ProfileUpdate:
    fields: dict = field(default_factory=dict)
    current_password: str | None = None
    new_password: str | None = None


class ProfileScreen(ModalScreen[ProfileUpdate | None]):
    """Edit the user's profile, default rate, monthly goal and password."""

    CSS = "ProfileScreen { align: center middle; }" + FORM_CSS

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, user: User):
        super().__init__()
        self.user = user

    def compose(self) -> ComposeResult:
        user = self.user
        with Vertical(classes="dialog"):
            yield Label(Text(f"Profile: {user.username}"), classes="dialog-title")
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Name", classes="field-label")
                    yield Input(value=user.name, id="name")
                with Vertical(classes="field-group"):
                    yield Label("Initials", classes="field-label")
                    yield Input(value=user.initials or "", id="initials", max_length=4)
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Email", classes="field-label")
                    yield Input(value=user.email, id="email")
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Default hourly rate", classes="field-label")
                    yield Input(value=format_decimal(user.hourly_rate), id="hourly-rate")
                with Vertical(classes="field-group"):
                    yield Label("Monthly goal (h)", classes="field-label")
                    yield Input(value=format_decimal(user.monthly_goal_hours), id="monthly-goal")
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Current password", classes="field-label")
                    yield Input(password=True, id="current-password")
                with Vertical(classes="field-group"):
                    yield Label("New password", classes="field-label")
                    yield Input(password=True, id="new-password")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Save", variant="primary", id="save")
                yield Button("Cancel", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#name", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save(self) -> None:
        new_password = self.query_one("#new-password", Input).value
        self.dismiss(ProfileUpdate(
            fields={
                "name": self.query_one("#name", Input).value,
                "initials": self.query_one("#initials", Input).value,
                "email": self.query_one("#email", Input).value,
                "hourly_rate": self.query_one("#hourly-rate", Input).value,
                "monthly_goal_hours": self.query_one("#monthly-goal", Input).value,
            },
            current_password=self.query_one("#current-password", Input).value if new_password else None,
            new_password=new_password or None,
        ))


@dataclass
class ExportRequest:
    fmt: str
    path: Path
    options: ExportOptions


class ExportScreen(ModalScreen[ExportRequest | None]):
    """Choose export format, destination and content for the current month."""

    CSS = "ExportScreen { align: center middle; }" + FORM_CSS + """
    .option-row Checkbox {
        width: 1fr;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    FORMAT_LABELS = {"csv": "CSV", "xlsx": "Excel (.xlsx)", "pdf": "PDF"}

    def __init__(self, year: int, month: int, directory: Path | None = None):
        super().__init__()
        self.year = year
        self.month = month
        self.directory = directory or Path.cwd()

    def _default_path(self, fmt: str) -> str:
        return str(self.directory / default_filename(fmt, self.year, self.month))

    def compose(self) -> ComposeResult:
        period = date(self.year, self.month, 1).strftime("%B %Y")
        with Vertical(classes="dialog"):
            yield Label(f"Export {period}", classes="dialog-title")
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Format", classes="field-label")
                    yield Select(
                        [(self.FORMAT_LABELS[f], f) for f in FORMATS],
                        value="pdf",
                        allow_blank=False,
                        id="export-format",
                    )
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("File", classes="field-label")
                    yield Input(value=self._default_path("pdf"), id="export-path")
            with Horizontal(classes="field-row option-row"):
                yield Checkbox("Profile", value=True, id="include-profile")
                yield Checkbox("Notes", value=True, id="include-notes")
            with Horizontal(classes="field-row option-row"):
                yield Checkbox("Earnings", value=True, id="include-earnings")
                yield Checkbox("Projects", value=True, id="include-projects")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Export", variant="primary", id="export")
                yield Button("Cancel", variant="default", id="cancel")

    def on_select_changed(self, event: Select.Changed) -> None:
        """Keep the file extension in step with the chosen format."""
        if event.select.id != "export-format" or not isinstance(event.value, str):
            return
        path_input = self.query_one("#export-path", Input)
        path_input.value = str(Path(path_input.value).with_suffix(f".{event.value}"))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "export":
            self._export()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _export(self) -> None:
        path = self.query_one("#export-path", Input).value.strip()
        if not path:
            self.app.notify("Choose a file to export to", severity="error")
            return
        self.dismiss(ExportRequest(
            fmt=str(self.query_one("#export-format", Select).value),
            path=Path(path).expanduser(),
            options=ExportOptions(
                include_profile=self.query_one("#include-profile", Checkbox).value,
                include_notes=self.query_one("#include-notes", Checkbox).value,
                include_earnings=self.query_one("#include-earnings", Checkbox).value,
                include_projects=self.query_one("#include-projects", Checkbox).value,
            ),
        ))
