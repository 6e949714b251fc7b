"""
Error types raised by the csvcal engine.

Every rejected operation surfaces one of these to the caller. Validation
errors are raised before any mutation, so the store is unchanged when they
propagate.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union


class CalendarError(Exception):
    """Base class for all engine errors."""


class InvalidInterval(CalendarError):
    """End not after start, or malformed recurrence interval text."""


class InvalidRule(CalendarError):
    """Recurrence termination missing, ambiguous or out of range."""


class Conflict(CalendarError):
    """A candidate interval overlaps an existing event."""

    def __init__(self, start: datetime, conflicting_id: Optional[int] = None, message: Optional[str] = None):
        self.start = start
        self.conflicting_id = conflicting_id
        if message is None:
            message = f"Time slot starting {start.isoformat()} overlaps an existing event"
            if conflicting_id is not None:
                message += f" (id {conflicting_id})"
        super().__init__(message)


class SeriesConflict(Conflict):
    """An occurrence of a series overlaps an event outside the series."""

    def __init__(self, start: datetime, conflicting_id: Optional[int] = None):
        message = f"Series occurrence at {start.isoformat()} overlaps an existing event"
        if conflicting_id is not None:
            message += f" (id {conflicting_id})"
        super().__init__(start, conflicting_id, message)


class NotFound(CalendarError):
    """The referenced event id or series id is not in the store."""

    def __init__(self, key: int, kind: str = "event"):
        self.key = key
        self.kind = kind
        super().__init__(f"No {kind} with id {key}")


class PersistenceFailure(CalendarError):
    """Reading or writing the event files failed."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)
