"""Shared fixtures for tests."""

from __future__ import annotations

import importlib
import os
import tempfile
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

# Set up test database before importing storage
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.environ["HOURBOOK_DB"] = _test_db_path
os.environ.setdefault("HOURBOOK_LOG", str(Path(_test_db_path).with_suffix(".log")))


@pytest.fixture(scope="session", autouse=True)
def setup_test_db() -> Generator[Path, None, None]:
    """Point storage at a throwaway database for the session."""
    import storage

    storage.DB_PATH = Path(_test_db_path)
    storage.init_db()

    yield Path(_test_db_path)

    os.close(_test_db_fd)
    os.unlink(_test_db_path)


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh, empty database per test; yields the reloaded storage module."""
    db_path = tmp_path / "hourbook.db"
    monkeypatch.setenv("HOURBOOK_DB", str(db_path))

    import storage
    importlib.reload(storage)
    storage.init_db()

    yield storage

    monkeypatch.undo()
    importlib.reload(storage)


@pytest.fixture
def user(db):
    """A stored user with a 20.00 default rate."""
    from auth import hash_password
    from models import User

    return db.create_user(User(
        username="sam",
        password_hash=hash_password("secret1", iterations=1000),
        name="Sam Rivers",
        email="sam@example.com",
        hourly_rate=Decimal("20.00"),
        monthly_goal_hours=Decimal("140.00"),
    ))


@pytest.fixture
def project(db, user):
    from models import Project

    return db.save_project(Project(name="Website Development", user_id=user.id, color="#3b82f6"))


@pytest.fixture
def sample_entry():
    """An unsaved, unpriced entry: 09:00-17:00 at 20/h."""
    from models import TimeEntry

    return TimeEntry(
        user_id=1,
        project_id=1,
        date=date(2026, 1, 15),
        start_time=time(9, 0),
        end_time=time(17, 0),
        hourly_rate=Decimal("20"),
        notes="Client meeting",
    )


@pytest.fixture
def sample_config():
    from models import Config

    return Config(currency="GBP", standard_day_hours=Decimal("7.5"))
