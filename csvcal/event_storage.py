"""
Persistent Event Storage for csvcal.

Abstract base class and the CSV implementation for storing events and
recurrence rules on disk. The store always saves and loads the whole
collection at once; there is no incremental persistence.

Event file, one record per event:
    id,title,description,start,end,recurring,interval,occurrenceCount,seriesId,reminderMinutes

Rule file, one record per series:
    seriesId,interval,times,endDateOrZero

Details file, one record per event that has any optional details:
    eventId,location,category,attendees
"""

import csv
import io
import os
import shutil
import sys
import tempfile
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Union

from .errors import InvalidInterval, InvalidRule, PersistenceFailure
from .event import Event
from .recurrence import RecurrenceRule


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] STORAGE: {msg}", file=sys.stderr)


EVENT_FIELD_COUNT = 10
RULE_FIELD_COUNT = 4
DETAILS_FIELD_COUNT = 4

# Placeholder for an unused end date in the rule file
NO_END_DATE = "0"

PathLike = Union[str, Path]
Snapshot = tuple[list[Event], dict[int, RecurrenceRule]]
Details = tuple[str, str, str]  # location, category, attendees


# ==================== Record Codec ====================

def event_to_row(event: Event) -> list[str]:
    return [
        str(event.id),
        event.title,
        event.description,
        event.start.isoformat(),
        event.end.isoformat(),
        "true" if event.recurring else "false",
        event.interval,
        str(event.occurrence_count),
        str(event.series_id),
        str(event.reminder_minutes),
    ]


def row_to_event(row: list[str]) -> Event:
    """Parse one event record. Raises ValueError on malformed input."""
    if len(row) != EVENT_FIELD_COUNT:
        raise ValueError(f"expected {EVENT_FIELD_COUNT} fields, got {len(row)}")

    interval = row[6].strip()
    if interval.lower() == "null":
        interval = ""

    event = Event(
        id=int(row[0]),
        title=row[1],
        description=row[2],
        start=datetime.fromisoformat(row[3].strip()),
        end=datetime.fromisoformat(row[4].strip()),
        recurring=row[5].strip().lower() == "true",
        interval=interval,
        occurrence_count=int(row[7]),
        series_id=int(row[8]),
        reminder_minutes=int(row[9]),
    )
    if event.reminder_minutes < 0:
        raise ValueError(f"negative reminder offset {event.reminder_minutes}")
    return event


def rule_to_row(rule: RecurrenceRule) -> list[str]:
    end_date = rule.end_date.isoformat() if rule.end_date else NO_END_DATE
    return [str(rule.series_id), rule.interval.text, str(rule.count), end_date]


def row_to_rule(row: list[str]) -> RecurrenceRule:
    """Parse one rule record. Raises ValueError on malformed input."""
    if len(row) != RULE_FIELD_COUNT:
        raise ValueError(f"expected {RULE_FIELD_COUNT} fields, got {len(row)}")

    end_raw = row[3].strip()
    end_date = None if end_raw in ("", NO_END_DATE) else date.fromisoformat(end_raw)
    try:
        return RecurrenceRule.from_fields(
            series_id=int(row[0].strip()),
            interval_text=row[1],
            times=int(row[2].strip()),
            end_date=end_date,
        )
    except (InvalidInterval, InvalidRule) as e:
        raise ValueError(str(e)) from e


def details_to_row(event: Event) -> list[str]:
    return [str(event.id), event.location, event.category, event.attendees]


def row_to_details(row: list[str]) -> tuple[int, Details]:
    """Parse one details record. Raises ValueError on malformed input."""
    if len(row) != DETAILS_FIELD_COUNT:
        raise ValueError(f"expected {DETAILS_FIELD_COUNT} fields, got {len(row)}")
    return int(row[0].strip()), (row[1], row[2], row[3])


def _read_rows(path: Path) -> list[tuple[int, list[str]]]:
    """Read non-blank CSV rows with their line numbers."""
    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f)
        return [(reader.line_num, row) for row in reader if row and any(cell.strip() for cell in row)]


def _write_rows_atomic(path: Path, rows: list[list[str]]) -> None:
    """Write rows to a temp file beside `path`, then move it into place."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}-", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(buffer.getvalue())
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)


def companion_rules_path(path: PathLike) -> Path:
    """Rule file that travels with an event backup: backup.csv -> backup.rules.csv."""
    path = Path(path)
    return path.with_name(f"{path.stem}.rules{path.suffix}")


def companion_details_path(path: PathLike) -> Path:
    """Details file that travels with an event backup: backup.csv -> backup.additional.csv."""
    path = Path(path)
    return path.with_name(f"{path.stem}.additional{path.suffix}")


# ==================== Backends ====================

class EventStorageBackend(ABC):
    """
    Abstract base class for event storage backends.

    Implementations persist the full event collection and the recurrence
    rules, and can copy them to or read them from an arbitrary location.
    """

    @abstractmethod
    def load_all(self) -> Snapshot:
        """Load every event and every rule."""
        pass

    @abstractmethod
    def save_all(self, events: list[Event], rules: dict[int, RecurrenceRule]) -> None:
        """Replace everything on disk with the given events and rules."""
        pass

    @abstractmethod
    def backup(self, path: PathLike) -> None:
        """Copy the persisted state to `path`."""
        pass

    @abstractmethod
    def read_backup(self, path: PathLike) -> Snapshot:
        """Parse a backup completely. Raises PersistenceFailure on any problem."""
        pass


class CsvEventStorage(EventStorageBackend):
    """
    CSV file-based event storage.

    Structure:
    - {storage_dir}/{events_file} - one record per event
    - {storage_dir}/{rules_file} - one record per series rule
    - {storage_dir}/{additional_file} - location, category and attendees per event

    Text fields are quoted by the csv module, so commas, quotes and line
    breaks in titles or descriptions survive a round trip.
    """

    def __init__(
        self,
        storage_dir: PathLike,
        events_file: str = "events.csv",
        rules_file: str = "recurrent.csv",
        additional_file: str = "additional.csv",
    ):
        self.storage_dir = Path(storage_dir)
        self.events_path = self.storage_dir / events_file
        self.rules_path = self.storage_dir / rules_file
        self.details_path = self.storage_dir / additional_file
        _debug_print(f"Initialized CSV storage at {self.storage_dir}")

    # ==================== Reading ====================

    def _read_events(self, path: Path, strict: bool) -> list[Event]:
        events = []
        seen_ids: set[int] = set()
        for line_num, row in _read_rows(path):
            try:
                event = row_to_event(row)
                if event.id in seen_ids:
                    raise ValueError(f"duplicate id {event.id}")
            except ValueError as e:
                if strict:
                    raise PersistenceFailure(f"{path}:{line_num}: bad event record: {e}", path) from e
                _debug_print(f"Skipping bad event record {path}:{line_num}: {e}")
                continue
            seen_ids.add(event.id)
            events.append(event)
        return events

    def _read_rules(self, path: Path, strict: bool) -> dict[int, RecurrenceRule]:
        rules = {}
        for line_num, row in _read_rows(path):
            try:
                rule = row_to_rule(row)
            except ValueError as e:
                if strict:
                    raise PersistenceFailure(f"{path}:{line_num}: bad rule record: {e}", path) from e
                _debug_print(f"Skipping bad rule record {path}:{line_num}: {e}")
                continue
            rules[rule.series_id] = rule
        return rules

    def _read_details(self, path: Path, events: list[Event], strict: bool) -> None:
        """Fill the optional detail fields of `events` from a details file."""
        by_id = {e.id: e for e in events}
        for line_num, row in _read_rows(path):
            try:
                event_id, (location, category, attendees) = row_to_details(row)
            except ValueError as e:
                if strict:
                    raise PersistenceFailure(f"{path}:{line_num}: bad details record: {e}", path) from e
                _debug_print(f"Skipping bad details record {path}:{line_num}: {e}")
                continue

            event = by_id.get(event_id)
            if event is None:
                _debug_print(f"Ignoring details for unknown event {event_id} in {path}")
                continue
            event.location = location
            event.category = category
            event.attendees = attendees

    def load_all(self) -> Snapshot:
        """Load events, rules and details; missing files count as empty."""
        try:
            events = self._read_events(self.events_path, strict=False) if self.events_path.exists() else []
            rules = self._read_rules(self.rules_path, strict=False) if self.rules_path.exists() else {}
            if self.details_path.exists():
                self._read_details(self.details_path, events, strict=False)
        except (OSError, UnicodeError, csv.Error) as e:
            raise PersistenceFailure(f"Error loading events from {self.storage_dir}: {e}", self.storage_dir) from e

        _debug_print(f"Loaded {len(events)} events and {len(rules)} rules")
        return events, rules

    def read_backup(self, path: PathLike) -> Snapshot:
        path = Path(path)
        rules_path = companion_rules_path(path)
        details_path = companion_details_path(path)
        try:
            events = self._read_events(path, strict=True)
            rules = self._read_rules(rules_path, strict=True) if rules_path.exists() else {}
            if details_path.exists():
                self._read_details(details_path, events, strict=True)
        except (OSError, UnicodeError, csv.Error) as e:
            raise PersistenceFailure(f"Cannot read backup {path}: {e}", path) from e

        _debug_print(f"Read backup {path}: {len(events)} events, {len(rules)} rules")
        return events, rules

    # ==================== Writing ====================

    def save_all(self, events: list[Event], rules: dict[int, RecurrenceRule]) -> None:
        try:
            _write_rows_atomic(self.events_path, [event_to_row(e) for e in events])
            _write_rows_atomic(self.rules_path, [rule_to_row(r) for r in rules.values()])
            _write_rows_atomic(self.details_path, [details_to_row(e) for e in events if e.has_details])
        except (OSError, UnicodeError) as e:
            raise PersistenceFailure(f"Error saving events to {self.storage_dir}: {e}", self.storage_dir) from e
        _debug_print(f"Saved {len(events)} events and {len(rules)} rules")

    def backup(self, path: PathLike) -> None:
        """Copy the event file to `path` and the rule and details files beside it."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._copy_or_empty(self.events_path, path)
            self._copy_or_empty(self.rules_path, companion_rules_path(path))
            self._copy_or_empty(self.details_path, companion_details_path(path))
        except OSError as e:
            raise PersistenceFailure(f"Backup to {path} failed: {e}", path) from e
        _debug_print(f"Backed up events to {path}")

    def _copy_or_empty(self, source: Path, target: Path) -> None:
        if source.exists():
            # Target is only replaced by a complete copy
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}-", suffix=".tmp", dir=str(target.parent))
            os.close(fd)
            try:
                shutil.copyfile(source, tmp_name)
                os.replace(tmp_name, target)
            finally:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
        else:
            _write_rows_atomic(target, [])


def get_default_storage_dir() -> Path:
    """Get the default storage directory respecting XDG."""
    xdg_data = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
    return Path(xdg_data) / 'csvcal'


def create_storage_backend(
    storage_dir: Optional[PathLike] = None,
    events_file: str = "events.csv",
    rules_file: str = "recurrent.csv",
    additional_file: str = "additional.csv",
) -> EventStorageBackend:
    """Factory function to create a storage backend."""
    if storage_dir is None:
        storage_dir = get_default_storage_dir()

    return CsvEventStorage(
        storage_dir, events_file=events_file, rules_file=rules_file, additional_file=additional_file
    )
