"""Month exports: CSV, Excel and PDF.

Every exporter renders the same content from a ``MonthExport``: a title,
an optional profile block, the entry table and the month summary. Hours
and money always leave as two-decimal values.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

import services
import storage
from calculations import monthly_progress, round2
from errors import ValidationError
from models import MonthlyReport, Project, TimeEntry, User
from utils import format_decimal, format_money

logger = logging.getLogger(__name__)

FORMATS = ("csv", "xlsx", "pdf")
TITLE = "Timesheet"


@dataclass
class ExportOptions:
    include_profile: bool = True
    include_notes: bool = True
    include_earnings: bool = True
    include_projects: bool = True


@dataclass
class MonthExport:
    user: User
    report: MonthlyReport
    entries: list[TimeEntry]
    projects: dict[int, Project] = field(default_factory=dict)
    currency: str = "GBP"

    def project_name(self, project_id: int) -> str:
        project = self.projects.get(project_id)
        return project.name if project else f"#{project_id}"


def load_month_export(user_id: int, year: int, month: int) -> MonthExport:
    """Refresh the month's report and gather everything an export needs."""
    report = services.refresh_monthly_report(user_id, year, month)
    return MonthExport(
        user=services.get_user(user_id),
        report=report,
        entries=services.month_entries(user_id, year, month),
        projects={p.id: p for p in storage.get_projects(user_id)},  # type: ignore[misc]
        currency=storage.get_config().currency,
    )


def default_filename(fmt: str, year: int, month: int) -> str:
    if fmt not in FORMATS:
        raise ValidationError(f"unknown export format {fmt!r}, use csv, xlsx or pdf", field="format")
    return f"hourbook-{year:04d}-{month:02d}.{fmt}"


# --- Shared table content ---


def _headers(options: ExportOptions) -> list[str]:
    headers = ["Date", "Day"]
    if options.include_projects:
        headers.append("Project")
    headers += ["Start", "End", "Hours"]
    if options.include_earnings:
        headers += ["Rate", "Earnings"]
    if options.include_notes:
        headers.append("Notes")
    return headers


def _entry_values(data: MonthExport, entry: TimeEntry, options: ExportOptions) -> list:
    """One entry row with Decimals for numeric columns."""
    row: list = [entry.date.isoformat(), entry.day_of_week]
    if options.include_projects:
        row.append(data.project_name(entry.project_id))
    row += [
        entry.start_time.strftime("%H:%M"),
        entry.end_time.strftime("%H:%M"),
        round2(entry.duration),
    ]
    if options.include_earnings:
        row += [round2(entry.hourly_rate), round2(entry.earnings)]
    if options.include_notes:
        row.append(entry.notes or "")
    return row


def _sorted_entries(data: MonthExport) -> list[TimeEntry]:
    return sorted(data.entries, key=lambda e: (e.date, e.start_time, e.id or 0))


def _as_text(values: list) -> list[str]:
    return [format_decimal(v) if isinstance(v, Decimal) else str(v) for v in values]


def _profile_rows(data: MonthExport) -> list[tuple[str, str]]:
    return [
        ("Name", data.user.name),
        ("Email", data.user.email),
        ("Default rate", format_money(data.user.hourly_rate, data.currency)),
    ]


def _summary_rows(data: MonthExport, options: ExportOptions) -> list[tuple[str, str]]:
    report = data.report
    rows = [
        ("Hours worked", format_decimal(report.hours_worked)),
        ("Days worked", str(report.days_worked)),
        ("Daily average", format_decimal(report.daily_average)),
    ]
    if options.include_earnings:
        rows.append(("Total earnings", format_money(report.total_earnings, data.currency)))
    progress = monthly_progress(report.hours_worked, data.user.monthly_goal_hours)
    rows += [
        ("Monthly goal", f"{format_decimal(data.user.monthly_goal_hours)} h ({progress}%)"),
        ("Status", report.status),
    ]
    return rows


def _project_rows(data: MonthExport) -> list[tuple[str, str]]:
    totals = services.hours_by_project(data.entries)
    return [
        (data.project_name(pid), format_decimal(hours))
        for pid, hours in sorted(totals.items(), key=lambda item: data.project_name(item[0]).lower())
    ]


# --- Encoders ---


def export_csv(data: MonthExport, options: ExportOptions | None = None) -> str:
    options = options or ExportOptions()
    buf = io.StringIO()
    writer = csv.writer(buf)

    writer.writerow([TITLE])
    writer.writerow([data.report.period])
    writer.writerow([])
    if options.include_profile:
        writer.writerows(_profile_rows(data))
        writer.writerow([])

    writer.writerow(_headers(options))
    for entry in _sorted_entries(data):
        writer.writerow(_as_text(_entry_values(data, entry, options)))

    writer.writerow([])
    writer.writerow(["Summary"])
    writer.writerows(_summary_rows(data, options))
    if options.include_projects and data.entries:
        writer.writerow([])
        writer.writerow(["Hours by project"])
        writer.writerows(_project_rows(data))
    return buf.getvalue()


def export_xlsx(data: MonthExport, options: ExportOptions | None = None) -> bytes:
    options = options or ExportOptions()
    wb = Workbook()
    ws = wb.active
    ws.title = date(data.report.year, data.report.month, 1).strftime("%b %Y")
    bold = Font(bold=True)

    ws.append([TITLE])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True, size=14)
    ws.append([data.report.period])
    ws.append([])
    if options.include_profile:
        for label, value in _profile_rows(data):
            ws.append([label, value])
        ws.append([])

    headers = _headers(options)
    ws.append(headers)
    for cell in ws[ws.max_row]:
        cell.font = bold
    for entry in _sorted_entries(data):
        ws.append(_entry_values(data, entry, options))
        for cell in ws[ws.max_row]:
            if isinstance(cell.value, (int, float, Decimal)):
                cell.number_format = "0.00"

    ws.append([])
    ws.append(["Summary"])
    ws.cell(row=ws.max_row, column=1).font = bold
    for label, value in _summary_rows(data, options):
        ws.append([label, value])
    if options.include_projects and data.entries:
        ws.append([])
        ws.append(["Hours by project"])
        ws.cell(row=ws.max_row, column=1).font = bold
        for label, value in _project_rows(data):
            ws.append([label, value])

    widths = {"Date": 12, "Day": 6, "Project": 24, "Notes": 40}
    for i, header in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(i)].width = widths.get(header, 10)

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def export_pdf(data: MonthExport, options: ExportOptions | None = None) -> bytes:
    options = options or ExportOptions()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4),
                            rightMargin=36, leftMargin=36,
                            topMargin=36, bottomMargin=36,
                            title=f"{TITLE} {data.report.period}")
    styles = getSampleStyleSheet()
    story = [
        Paragraph(TITLE, styles["Title"]),
        Paragraph(data.report.period, styles["Heading2"]),
        Spacer(1, 12),
    ]

    if options.include_profile:
        ptable = Table([[f"{label}:", value] for label, value in _profile_rows(data)],
                       colWidths=[100, 300], hAlign="LEFT")
        ptable.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ]))
        story += [ptable, Spacer(1, 12)]

    headers = _headers(options)
    rows = [headers]
    for entry in _sorted_entries(data):
        row = _as_text(_entry_values(data, entry, options))
        if options.include_notes and len(row[-1]) > 40:
            row[-1] = row[-1][:37] + "..."
        rows.append(row)
    etable = Table(rows, repeatRows=1)
    numeric = [i for i, h in enumerate(headers) if h in ("Hours", "Rate", "Earnings")]
    style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.whitesmoke, colors.white]),
    ]
    for col in numeric:
        style.append(('ALIGN', (col, 0), (col, -1), 'RIGHT'))
    etable.setStyle(TableStyle(style))
    story += [etable, Spacer(1, 18)]

    story.append(Paragraph("Summary", styles["Heading3"]))
    stable = Table([[label, value] for label, value in _summary_rows(data, options)],
                   colWidths=[140, 200], hAlign="LEFT")
    stable.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, 0), (-1, 0), 1, colors.black),
    ]))
    story.append(stable)

    if options.include_projects and data.entries:
        story += [Spacer(1, 12), Paragraph("Hours by project", styles["Heading3"])]
        ctable = Table([["Project", "Hours"]] + [list(r) for r in _project_rows(data)],
                       colWidths=[200, 80], hAlign="LEFT")
        ctable.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ]))
        story.append(ctable)

    doc.build(story)
    return buf.getvalue()


def render(fmt: str, data: MonthExport, options: ExportOptions | None = None) -> bytes:
    """Encode a month export in the given format."""
    if fmt == "csv":
        return export_csv(data, options).encode("utf-8")
    if fmt == "xlsx":
        return export_xlsx(data, options)
    if fmt == "pdf":
        return export_pdf(data, options)
    raise ValidationError(f"unknown export format {fmt!r}, use csv, xlsx or pdf", field="format")


def export_month(fmt: str, path: Path, data: MonthExport, options: ExportOptions | None = None) -> Path:
    """Write a month export to ``path`` and return it."""
    content = render(fmt, data, options)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    logger.info(
        "Exported %s for %s (%d entries) to %s",
        fmt, data.report.period, len(data.entries), path,
    )
    return path
