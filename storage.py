from __future__ import annotations

import logging
import os
import sqlite3
from datetime import date, time
from decimal import Decimal
from pathlib import Path

from auth import hash_password
from models import Config, MonthlyReport, Project, TimeEntry, User
from utils import month_bounds

logger = logging.getLogger(__name__)

DEFAULT_PROJECTS = [
    ("Website Development", "#3b82f6"),
    ("UI Design", "#6366f1"),
    ("Content Creation", "#10b981"),
    ("Marketing", "#f59e0b"),
]


def _get_db_path() -> Path:
    """Get database path from environment variable or default location."""
    if env_path := os.environ.get("HOURBOOK_DB"):
        return Path(env_path)
    return Path(__file__).parent / "data" / "hourbook.db"


DB_PATH = _get_db_path()


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they don't exist."""
    conn = get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            hourly_rate TEXT NOT NULL DEFAULT '25.00',
            monthly_goal_hours TEXT NOT NULL DEFAULT '160.00',
            initials TEXT
        );

        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            color TEXT NOT NULL DEFAULT '#3b82f6',
            user_id INTEGER NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users(id)
        );

        CREATE TABLE IF NOT EXISTS time_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            project_id INTEGER NOT NULL,
            date TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            duration TEXT NOT NULL,
            hourly_rate TEXT NOT NULL,
            earnings TEXT NOT NULL,
            notes TEXT,
            FOREIGN KEY (user_id) REFERENCES users(id),
            FOREIGN KEY (project_id) REFERENCES projects(id)
        );

        CREATE TABLE IF NOT EXISTS monthly_reports (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            year INTEGER NOT NULL,
            month INTEGER NOT NULL,
            hours_worked TEXT NOT NULL,
            days_worked INTEGER NOT NULL,
            daily_average TEXT NOT NULL,
            total_earnings TEXT NOT NULL,
            is_completed INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (user_id) REFERENCES users(id),
            UNIQUE(user_id, year, month)
        );

        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_entries_user_date ON time_entries(user_id, date);
        CREATE INDEX IF NOT EXISTS idx_entries_project ON time_entries(project_id);
        CREATE INDEX IF NOT EXISTS idx_projects_user ON projects(user_id);
    """)
    conn.commit()
    conn.close()


def seed_defaults() -> User:
    """Create the demo user and starter projects on an empty database."""
    existing = get_default_user()
    if existing:
        return existing

    user = create_user(User(
        username="demo",
        password_hash=hash_password("password"),
        name="Alex Denova",
        email="alex@example.com",
        initials="AD",
    ))
    for name, color in DEFAULT_PROJECTS:
        save_project(Project(name=name, color=color, user_id=user.id))  # type: ignore[arg-type]
    logger.info("Seeded default user %s with %d projects", user.username, len(DEFAULT_PROJECTS))
    return user


def _parse_time(val: str) -> time:
    parts = val.split(":")
    return time(int(parts[0]), int(parts[1]))


def _format_time(t: time) -> str:
    return t.strftime("%H:%M")


# --- User Functions ---


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        password_hash=row["password_hash"],
        name=row["name"],
        email=row["email"],
        hourly_rate=Decimal(row["hourly_rate"]),
        monthly_goal_hours=Decimal(row["monthly_goal_hours"]),
        initials=row["initials"],
    )


def create_user(user: User) -> User:
    """Insert a new user and return it with its id."""
    conn = get_connection()
    cursor = conn.execute(
        """
        INSERT INTO users (username, password_hash, name, email, hourly_rate, monthly_goal_hours, initials)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user.username,
            user.password_hash,
            user.name,
            user.email,
            str(user.hourly_rate),
            str(user.monthly_goal_hours),
            user.initials,
        ),
    )
    conn.commit()
    user_id = cursor.lastrowid
    conn.close()
    return get_user(user_id)  # type: ignore[arg-type,return-value]


def save_user(user: User) -> None:
    """Update an existing user's profile and credential."""
    conn = get_connection()
    conn.execute(
        """
        UPDATE users SET username = ?, password_hash = ?, name = ?, email = ?,
            hourly_rate = ?, monthly_goal_hours = ?, initials = ?
        WHERE id = ?
        """,
        (
            user.username,
            user.password_hash,
            user.name,
            user.email,
            str(user.hourly_rate),
            str(user.monthly_goal_hours),
            user.initials,
            user.id,
        ),
    )
    conn.commit()
    conn.close()


def get_user(user_id: int) -> User | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    return _row_to_user(row) if row else None


def get_user_by_username(username: str) -> User | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    conn.close()
    return _row_to_user(row) if row else None


def get_default_user() -> User | None:
    """The first user created, used by the single-user UI."""
    conn = get_connection()
    row = conn.execute("SELECT * FROM users ORDER BY id LIMIT 1").fetchone()
    conn.close()
    return _row_to_user(row) if row else None


# --- Project Functions ---


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        user_id=row["user_id"],
    )


def save_project(project: Project) -> Project:
    """Insert or update a project. Returns the stored project."""
    conn = get_connection()
    if project.id is None:
        cursor = conn.execute(
            "INSERT INTO projects (name, color, user_id) VALUES (?, ?, ?)",
            (project.name, project.color, project.user_id),
        )
        project_id = cursor.lastrowid
    else:
        conn.execute(
            "UPDATE projects SET name = ?, color = ?, user_id = ? WHERE id = ?",
            (project.name, project.color, project.user_id, project.id),
        )
        project_id = project.id
    conn.commit()
    conn.close()
    return get_project(project_id)  # type: ignore[arg-type,return-value]


def get_project(project_id: int) -> Project | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    conn.close()
    return _row_to_project(row) if row else None


def get_projects(user_id: int) -> list[Project]:
    """Get a user's projects ordered by name."""
    conn = get_connection()
    rows = conn.execute(
        "SELECT * FROM projects WHERE user_id = ? ORDER BY name COLLATE NOCASE, id",
        (user_id,),
    ).fetchall()
    conn.close()
    return [_row_to_project(row) for row in rows]


def can_delete_project(project_id: int) -> bool:
    """Check if a project can be deleted (no entries reference it)."""
    conn = get_connection()
    row = conn.execute(
        "SELECT COUNT(*) as count FROM time_entries WHERE project_id = ?",
        (project_id,),
    ).fetchone()
    conn.close()
    return row["count"] == 0


def delete_project(project_id: int) -> bool:
    """Delete a project. Returns False if entries still reference it."""
    if not can_delete_project(project_id):
        return False
    conn = get_connection()
    conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    conn.commit()
    conn.close()
    return True


# --- Time Entry Functions ---


def _row_to_entry(row: sqlite3.Row) -> TimeEntry:
    return TimeEntry(
        id=row["id"],
        user_id=row["user_id"],
        project_id=row["project_id"],
        date=date.fromisoformat(row["date"]),
        start_time=_parse_time(row["start_time"]),
        end_time=_parse_time(row["end_time"]),
        duration=Decimal(row["duration"]),
        hourly_rate=Decimal(row["hourly_rate"]),
        earnings=Decimal(row["earnings"]),
        notes=row["notes"],
    )


def save_entry(entry: TimeEntry) -> TimeEntry:
    """Insert or update a time entry. Returns the stored entry."""
    values = (
        entry.user_id,
        entry.project_id,
        entry.date.isoformat(),
        _format_time(entry.start_time),
        _format_time(entry.end_time),
        str(entry.duration),
        str(entry.hourly_rate),
        str(entry.earnings),
        entry.notes,
    )
    conn = get_connection()
    if entry.id is None:
        cursor = conn.execute(
            """
            INSERT INTO time_entries
            (user_id, project_id, date, start_time, end_time, duration, hourly_rate, earnings, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            values,
        )
        entry_id = cursor.lastrowid
    else:
        conn.execute(
            """
            UPDATE time_entries SET user_id = ?, project_id = ?, date = ?, start_time = ?,
                end_time = ?, duration = ?, hourly_rate = ?, earnings = ?, notes = ?
            WHERE id = ?
            """,
            values + (entry.id,),
        )
        entry_id = entry.id
    conn.commit()
    conn.close()
    return get_entry(entry_id)  # type: ignore[arg-type,return-value]


def get_entry(entry_id: int) -> TimeEntry | None:
    """Get a single entry by id."""
    conn = get_connection()
    row = conn.execute("SELECT * FROM time_entries WHERE id = ?", (entry_id,)).fetchone()
    conn.close()
    return _row_to_entry(row) if row else None


def get_entries_range(user_id: int, start: date, end: date) -> list[TimeEntry]:
    """Get a user's entries between two dates (inclusive)."""
    conn = get_connection()
    rows = conn.execute(
        """
        SELECT * FROM time_entries
        WHERE user_id = ? AND date >= ? AND date <= ?
        ORDER BY date, start_time, id
        """,
        (user_id, start.isoformat(), end.isoformat()),
    ).fetchall()
    conn.close()

    return [_row_to_entry(row) for row in rows]


def list_entries_for_month(user_id: int, year: int, month: int) -> list[TimeEntry]:
    """Get all of a user's entries for a calendar month."""
    start, end = month_bounds(year, month)
    return get_entries_range(user_id, start, end)


def delete_entry(entry_id: int) -> bool:
    """Delete an entry. Returns False if there was nothing to delete."""
    conn = get_connection()
    cursor = conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))
    conn.commit()
    deleted = cursor.rowcount > 0
    conn.close()
    return deleted


# --- Monthly Report Functions ---


def _row_to_report(row: sqlite3.Row) -> MonthlyReport:
    return MonthlyReport(
        id=row["id"],
        user_id=row["user_id"],
        year=row["year"],
        month=row["month"],
        hours_worked=Decimal(row["hours_worked"]),
        days_worked=row["days_worked"],
        daily_average=Decimal(row["daily_average"]),
        total_earnings=Decimal(row["total_earnings"]),
        is_completed=bool(row["is_completed"]),
    )


def get_report(user_id: int, year: int, month: int) -> MonthlyReport | None:
    conn = get_connection()
    row = conn.execute(
        "SELECT * FROM monthly_reports WHERE user_id = ? AND year = ? AND month = ?",
        (user_id, year, month),
    ).fetchone()
    conn.close()
    return _row_to_report(row) if row else None


def upsert_report(report: MonthlyReport) -> MonthlyReport:
    """Insert or update the report for (user_id, year, month)."""
    conn = get_connection()
    conn.execute(
        """
        INSERT INTO monthly_reports
        (user_id, year, month, hours_worked, days_worked, daily_average, total_earnings, is_completed)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, year, month) DO UPDATE SET
            hours_worked = excluded.hours_worked,
            days_worked = excluded.days_worked,
            daily_average = excluded.daily_average,
            total_earnings = excluded.total_earnings,
            is_completed = excluded.is_completed
        """,
        (
            report.user_id,
            report.year,
            report.month,
            str(report.hours_worked),
            report.days_worked,
            str(report.daily_average),
            str(report.total_earnings),
            int(report.is_completed),
        ),
    )
    conn.commit()
    conn.close()
    return get_report(report.user_id, report.year, report.month)  # type: ignore[return-value]


def get_reports(user_id: int, year: int | None = None) -> list[MonthlyReport]:
    """Get a user's stored reports, newest month first."""
    conn = get_connection()
    if year is None:
        rows = conn.execute(
            "SELECT * FROM monthly_reports WHERE user_id = ? ORDER BY year DESC, month DESC",
            (user_id,),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM monthly_reports WHERE user_id = ? AND year = ? ORDER BY month DESC",
            (user_id, year),
        ).fetchall()
    conn.close()
    return [_row_to_report(row) for row in rows]


# --- Config Functions ---


def get_config() -> Config:
    """Load config from database."""
    conn = get_connection()
    rows = conn.execute("SELECT key, value FROM config").fetchall()
    conn.close()

    config = Config()
    for row in rows:
        if row["key"] == "currency":
            config.currency = row["value"]
        elif row["key"] == "standard_day_hours":
            config.standard_day_hours = Decimal(row["value"])
        elif row["key"] == "holiday_country":
            config.holiday_country = row["value"]
        elif row["key"] == "holiday_subdiv":
            config.holiday_subdiv = row["value"] or None

    return config


def save_config(config: Config):
    """Save config to database."""
    conn = get_connection()
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("currency", config.currency))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("standard_day_hours", str(config.standard_day_hours)))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("holiday_country", config.holiday_country))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("holiday_subdiv", config.holiday_subdiv or ""))
    conn.commit()
    conn.close()
