"""
csvcal - event scheduling and validation engine

This module provides the core functionality for calendar operations:
- Configuration parsing (config.py)
- Event model (event.py) and recurrence rules (recurrence.py)
- Conflict detection (conflicts.py)
- Recurring series generation (series.py)
- Event store with validated create/update/delete (event_store.py)
- CSV persistence with backup/restore (event_storage.py)
- iCalendar export (ics_export.py)
"""

from .config import Config
from .conflicts import Exclude, find_conflict, overlaps
from .errors import (
    CalendarError,
    Conflict,
    InvalidInterval,
    InvalidRule,
    NotFound,
    PersistenceFailure,
    SeriesConflict,
)
from .event import Event, STANDALONE_SERIES_ID
from .event_storage import CsvEventStorage, EventStorageBackend, create_storage_backend
from .event_store import EventStatistics, EventStore
from .recurrence import Interval, IntervalUnit, RecurrenceRule, add_interval, parse_interval
from .series import SeriesRequest, SeriesResult, generate_series

__all__ = [
    'Config',
    'Event',
    'STANDALONE_SERIES_ID',
    'EventStore',
    'EventStatistics',
    'EventStorageBackend',
    'CsvEventStorage',
    'create_storage_backend',
    'Exclude',
    'find_conflict',
    'overlaps',
    'Interval',
    'IntervalUnit',
    'RecurrenceRule',
    'add_interval',
    'parse_interval',
    'SeriesRequest',
    'SeriesResult',
    'generate_series',
    # Errors
    'CalendarError',
    'Conflict',
    'InvalidInterval',
    'InvalidRule',
    'NotFound',
    'PersistenceFailure',
    'SeriesConflict',
]
