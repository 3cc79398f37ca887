"""Exceptions raised by the timesheet core and services."""

from __future__ import annotations


class TimesheetError(Exception):
    """Base class for errors surfaced to the user."""


class ValidationError(TimesheetError, ValueError):
    """Rejected input: malformed time, non-numeric amount, missing field."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(TimesheetError, LookupError):
    """A lookup by id or key found nothing."""

    def __init__(self, kind: str, key: object):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key
