"""
Event Store for csvcal.

Owns the in-memory collection of events and recurrence rules. All changes
go through the validated operations below: each one checks for conflicts,
mutates the collection and then saves everything through the storage
backend. A single lock makes the check and the in-memory change one atomic
step; saving and change notification run after the lock is released.
"""

import calendar
import sys
import threading
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Callable, Optional, Union

from .config import Config
from .conflicts import Exclude, find_conflict, overlaps
from .errors import Conflict, InvalidInterval, NotFound, SeriesConflict
from .event import Event, STANDALONE_SERIES_ID
from .event_storage import EventStorageBackend, create_storage_backend
from .recurrence import RecurrenceRule
from .series import SeriesRequest, generate_series


def _debug_print(message: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] STORE: {message}", file=sys.stderr)


@dataclass
class EventStatistics:
    """Summary numbers over the whole event set."""
    total: int = 0
    recurring: int = 0
    past: int = 0
    upcoming: int = 0
    busiest_weekday: Optional[str] = None  # e.g. "Monday"
    busiest_date: Optional[date] = None
    busiest_date_count: int = 0


def _validate_times(start: datetime, end: datetime) -> None:
    if end <= start:
        raise InvalidInterval(f"End {end.isoformat()} must be after start {start.isoformat()}")


def _validate_reminder(reminder_minutes: int) -> None:
    if reminder_minutes < 0:
        raise ValueError(f"Reminder offset must be >= 0, got {reminder_minutes}")


class EventStore:
    """
    Canonical collection of calendar events.

    Ids are assigned from a counter that only grows, so an id is never
    reused while the store is alive. Every successful mutation triggers a
    full save; if that save fails the in-memory state stays as mutated and
    PersistenceFailure is raised so the caller can retry with save().
    """

    def __init__(self, storage: EventStorageBackend, config: Optional[Config] = None):
        self.config = config or Config()
        self._storage = storage
        self._lock = threading.RLock()

        self._events: dict[int, Event] = {}
        self._rules: dict[int, RecurrenceRule] = {}
        self._next_id = 1

        # True if the most recent create_series hit the occurrence cap
        self.last_series_truncated = False
        self._on_change_callback: Optional[Callable[[], None]] = None

    @classmethod
    def open(cls, config: Optional[Config] = None) -> 'EventStore':
        """Create a store on the configured CSV storage and load it."""
        config = config or Config()
        storage = create_storage_backend(
            config.storage.data_dir,
            events_file=config.storage.events_file,
            rules_file=config.storage.rules_file,
            additional_file=config.storage.additional_file,
        )
        store = cls(storage, config)
        store.load()
        return store

    def set_on_change_callback(self, callback: Callable[[], None]) -> None:
        self._on_change_callback = callback

    def _notify_change(self) -> None:
        if self._on_change_callback:
            self._on_change_callback()

    # ==================== Persistence ====================

    def load(self) -> int:
        """
        Replace the in-memory state with what the storage backend holds.

        Returns number of events loaded.
        """
        events, rules = self._storage.load_all()
        with self._lock:
            self._replace_all(events, rules)
            _debug_print(f"Loaded {len(self._events)} events, next id {self._next_id}")
            return len(self._events)

    def save(self) -> None:
        """Write the full collection. Also the way to retry a failed save."""
        with self._lock:
            self._storage.save_all(self._sorted_by_id(), dict(self._rules))

    def _commit(self) -> None:
        """Save and notify. Called with the lock released."""
        try:
            self.save()
        finally:
            self._notify_change()

    def _replace_all(self, events: list[Event], rules: dict[int, RecurrenceRule]) -> None:
        self._events = {e.id: e for e in events}
        series_ids = {e.series_id for e in events if e.series_id != STANDALONE_SERIES_ID}
        self._rules = {sid: rule for sid, rule in rules.items() if sid in series_ids}
        if self._events:
            self._next_id = max(self._next_id, max(self._events) + 1)

    def backup(self, path: Union[str, Path]) -> None:
        """Save the current state and copy it to `path`."""
        with self._lock:
            self.save()
            self._storage.backup(path)
            _debug_print(f"Backup written to {path}")

    def restore(self, path: Union[str, Path]) -> int:
        """
        Replace every event with the contents of a backup.

        The backup is parsed completely before anything changes; if it is
        unreadable or malformed PersistenceFailure is raised and the current
        state is kept. Events not in the backup are gone afterwards.

        Returns number of events restored.
        """
        events, rules = self._storage.read_backup(path)
        with self._lock:
            self._replace_all(events, rules)
            restored = len(self._events)
            _debug_print(f"Restored {restored} events from {path}")
        self._commit()
        return restored

    # ==================== Single Events ====================

    def create_event(
        self,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        reminder_minutes: int = 0,
        location: str = "",
        category: str = "",
        attendees: str = "",
    ) -> Event:
        """
        Create a standalone event.

        Raises:
            InvalidInterval: end <= start
            Conflict: the time slot overlaps an existing event
        """
        _validate_times(start, end)
        _validate_reminder(reminder_minutes)

        with self._lock:
            clash = find_conflict(start, end, self._events.values())
            if clash is not None:
                raise Conflict(start, clash.id)

            event = Event(
                id=self._next_id,
                title=title,
                description=description,
                start=start,
                end=end,
                reminder_minutes=reminder_minutes,
                location=location,
                category=category,
                attendees=attendees,
            )
            self._events[event.id] = event
            self._next_id += 1
            created = event.copy()
            _debug_print(f"Created event {event.id} {title!r}")
        self._commit()
        return created

    def update_event(
        self,
        event_id: int,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        reminder_minutes: Optional[int] = None,
        location: Optional[str] = None,
        category: Optional[str] = None,
        attendees: Optional[str] = None,
    ) -> Event:
        """
        Change one event in place. Series membership is kept.

        Optional arguments left as None keep their current value.

        The new time slot is checked against every other event, including
        siblings of the same series.

        Raises:
            NotFound: no event with this id
            InvalidInterval: end <= start
            Conflict: the new time slot overlaps another event
        """
        _validate_times(start, end)
        if reminder_minutes is not None:
            _validate_reminder(reminder_minutes)

        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                raise NotFound(event_id)

            clash = find_conflict(start, end, self._events.values(), Exclude.event(event_id))
            if clash is not None:
                raise Conflict(start, clash.id)

            event.title = title
            event.description = description
            event.start = start
            event.end = end
            if reminder_minutes is not None:
                event.reminder_minutes = reminder_minutes
            self._apply_details(event, location, category, attendees)
            updated = event.copy()
            _debug_print(f"Updated event {event_id}")
        self._commit()
        return updated

    def set_details(
        self,
        event_id: int,
        location: Optional[str] = None,
        category: Optional[str] = None,
        attendees: Optional[str] = None,
    ) -> Event:
        """
        Add or change the location, category and attendees of one event.

        Arguments left as None keep their current value.

        Raises:
            NotFound: no event with this id
        """
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                raise NotFound(event_id)
            self._apply_details(event, location, category, attendees)
            updated = event.copy()
            _debug_print(f"Updated details of event {event_id}")
        self._commit()
        return updated

    @staticmethod
    def _apply_details(
        event: Event,
        location: Optional[str],
        category: Optional[str],
        attendees: Optional[str],
    ) -> None:
        if location is not None:
            event.location = location
        if category is not None:
            event.category = category
        if attendees is not None:
            event.attendees = attendees

    def delete_event(self, event_id: int) -> bool:
        """
        Remove one event (also a single occurrence of a series).

        The series rule is dropped together with the last occurrence.
        Returns False if there was no such event.
        """
        with self._lock:
            event = self._events.pop(event_id, None)
            if event is None:
                return False

            if not event.is_standalone and not any(
                e.series_id == event.series_id for e in self._events.values()
            ):
                self._rules.pop(event.series_id, None)

            _debug_print(f"Deleted event {event_id}")
        self._commit()
        return True

    # ==================== Series ====================

    def create_series(self, request: SeriesRequest) -> list[Event]:
        """
        Create every occurrence of a recurring series, or none of them.

        Check last_series_truncated afterwards to see whether the
        occurrence cap cut an end-date series short.

        Raises:
            InvalidInterval: end <= start, or malformed interval text
            InvalidRule: termination missing, ambiguous or out of range
            SeriesConflict: an occurrence overlaps an existing event
        """
        with self._lock:
            result = generate_series(
                request,
                first_id=self._next_id,
                existing=list(self._events.values()),
                max_occurrences=self.config.series.max_occurrences,
            )

            for occurrence in result.occurrences:
                self._events[occurrence.id] = occurrence
            self._rules[result.series_id] = result.rule
            self._next_id = max(self._next_id, result.next_id)
            self.last_series_truncated = result.truncated

            _debug_print(
                f"Created series {result.series_id} with {len(result.occurrences)} occurrences"
                + (" (truncated)" if result.truncated else "")
            )
            created = [e.copy() for e in result.occurrences]
        self._commit()
        return created

    def update_series(
        self,
        series_id: int,
        title: str,
        description: str,
        start_time: time,
        duration: timedelta,
        reminder_minutes: Optional[int] = None,
    ) -> list[Event]:
        """
        Rewrite every occurrence of a series.

        Each occurrence keeps its calendar date and gets the new time of day
        and duration. All occurrences are validated against events outside
        the series first; only if all pass is anything changed.

        Raises:
            NotFound: no occurrence with this series id
            InvalidInterval: duration is not positive
            SeriesConflict: an occurrence would overlap; names the first one
        """
        if duration <= timedelta(0):
            raise InvalidInterval(f"Duration must be positive, got {duration}")
        if reminder_minutes is not None:
            _validate_reminder(reminder_minutes)

        with self._lock:
            members = self._series_members(series_id)
            if not members:
                raise NotFound(series_id, kind="series")

            planned = []
            for event in members:
                new_start = datetime.combine(event.start_date, start_time)
                new_end = new_start + duration
                clash = find_conflict(new_start, new_end, self._events.values(), Exclude.series(series_id))
                if clash is not None:
                    raise SeriesConflict(new_start, clash.id)
                planned.append((event, new_start, new_end))

            for event, new_start, new_end in planned:
                event.title = title
                event.description = description
                event.start = new_start
                event.end = new_end
                if reminder_minutes is not None:
                    event.reminder_minutes = reminder_minutes

            updated = [e.copy() for e in members]
            _debug_print(f"Updated series {series_id} ({len(planned)} occurrences)")
        self._commit()
        return updated

    def delete_series(self, series_id: int) -> int:
        """
        Remove every occurrence of a series and its rule.

        Returns number of events removed (0 if the series did not exist).
        """
        if series_id == STANDALONE_SERIES_ID:
            return 0

        with self._lock:
            members = self._series_members(series_id)
            for event in members:
                del self._events[event.id]
            had_rule = self._rules.pop(series_id, None) is not None

            if not members and not had_rule:
                return 0

            _debug_print(f"Deleted series {series_id} ({len(members)} occurrences)")
        self._commit()
        return len(members)

    def _series_members(self, series_id: int) -> list[Event]:
        if series_id == STANDALONE_SERIES_ID:
            return []
        return sorted(
            (e for e in self._events.values() if e.series_id == series_id),
            key=lambda e: (e.start, e.id),
        )

    # ==================== Queries ====================

    @property
    def next_id(self) -> int:
        with self._lock:
            return self._next_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _sorted_by_id(self) -> list[Event]:
        return [self._events[i] for i in sorted(self._events)]

    def _snapshot(self) -> list[Event]:
        """Copies of all events, ordered by start then id."""
        with self._lock:
            events = [e.copy() for e in self._events.values()]
        events.sort(key=lambda e: (e.start, e.id))
        return events

    def get_events(self) -> list[Event]:
        return self._snapshot()

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._lock:
            event = self._events.get(event_id)
            return event.copy() if event else None

    def get_series(self, series_id: int) -> list[Event]:
        with self._lock:
            return [e.copy() for e in self._series_members(series_id)]

    def get_rule(self, series_id: int) -> Optional[RecurrenceRule]:
        with self._lock:
            rule = self._rules.get(series_id)
            return replace(rule) if rule else None

    def has_conflict(self, start: datetime, end: datetime) -> bool:
        """Would [start, end) overlap any existing event?"""
        with self._lock:
            return overlaps(start, end, self._events.values())

    def search(
        self,
        start_date: date,
        end_date: date,
        title_contains: Optional[str] = None,
        recurring_only: bool = False,
        keyword: Optional[str] = None,
    ) -> list[Event]:
        """
        Events whose start date lies in [start_date, end_date], sorted by start.

        A reversed range is swapped. `title_contains` filters
        case-insensitively on the title, `keyword` on location, category
        and attendees.
        """
        if start_date > end_date:
            start_date, end_date = end_date, start_date

        title_keyword = title_contains.strip().lower() if title_contains else ""
        details_keyword = keyword.strip() if keyword else ""
        results = []
        for event in self._snapshot():
            if not start_date <= event.start_date <= end_date:
                continue
            if title_keyword and title_keyword not in event.title.lower():
                continue
            if details_keyword and not event.matches_details(details_keyword):
                continue
            if recurring_only and not event.recurring:
                continue
            results.append(event)
        return results

    def find_by_details(self, keyword: str) -> list[Event]:
        """All events whose location, category or attendees contain keyword."""
        keyword = keyword.strip()
        if not keyword:
            return []
        return [e for e in self._snapshot() if e.matches_details(keyword)]

    def events_on(self, day: date) -> list[Event]:
        return self.search(day, day)

    def events_in_week(self, first_day: date) -> list[Event]:
        """Seven days starting at first_day."""
        return self.search(first_day, first_day + timedelta(days=6))

    def events_in_month(self, year: int, month: int) -> list[Event]:
        last_day = calendar.monthrange(year, month)[1]
        return self.search(date(year, month, 1), date(year, month, last_day))

    # ==================== Reminders & Statistics ====================

    def upcoming_events(
        self,
        now: Optional[datetime] = None,
        within: Optional[timedelta] = None,
    ) -> list[Event]:
        """Events starting after now and before now + within (default from config)."""
        now = now or datetime.now()
        if within is None:
            within = timedelta(hours=self.config.reminders.upcoming_window_hours)
        horizon = now + within
        return [e for e in self._snapshot() if now < e.start < horizon]

    def next_reminder(self, now: Optional[datetime] = None) -> Optional[Event]:
        """The nearest future event that has a reminder set."""
        now = now or datetime.now()
        for event in self._snapshot():
            if event.reminder_minutes > 0 and event.start > now:
                return event
        return None

    def due_reminders(self, now: Optional[datetime] = None) -> list[Event]:
        """Events whose reminder time has passed but which have not started yet."""
        now = now or datetime.now()
        return [
            e for e in self._snapshot()
            if e.reminder_minutes > 0 and e.reminder_time <= now < e.start
        ]

    def get_statistics(self, now: Optional[datetime] = None) -> EventStatistics:
        now = now or datetime.now()
        events = self._snapshot()
        stats = EventStatistics(total=len(events))
        if not events:
            return stats

        per_weekday = [0] * 7
        per_date: dict[date, int] = {}
        for event in events:
            if event.recurring:
                stats.recurring += 1
            if event.end < now:
                stats.past += 1
            per_weekday[event.start.weekday()] += 1
            per_date[event.start_date] = per_date.get(event.start_date, 0) + 1

        stats.upcoming = stats.total - stats.past

        # Ties go to the earlier weekday / earlier date
        busiest = per_weekday.index(max(per_weekday))
        stats.busiest_weekday = calendar.day_name[busiest]
        stats.busiest_date, stats.busiest_date_count = min(
            per_date.items(), key=lambda item: (-item[1], item[0])
        )
        return stats

    # ==================== Export ====================

    def export_ics(self, path: Union[str, Path]) -> int:
        """Write all events to an iCalendar file. Returns number exported."""
        from .ics_export import export_ics

        events = self._snapshot()
        with self._lock:
            rules = {sid: replace(rule) for sid, rule in self._rules.items()}
        export_ics(events, rules, path)
        return len(events)
