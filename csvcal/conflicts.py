"""
Time-overlap conflict detection.

Pure functions over a collection of events. Intervals are half-open
[start, end), so an event ending at T never conflicts with one starting at T.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .event import Event, STANDALONE_SERIES_ID


@dataclass(frozen=True)
class Exclude:
    """
    Which events a conflict check ignores.

    Use Exclude.event(id) when validating an edit of one event, and
    Exclude.series(series_id) when validating a rewrite of a whole series.
    """
    event_id: Optional[int] = None
    series_id: Optional[int] = None

    @classmethod
    def event(cls, event_id: int) -> 'Exclude':
        return cls(event_id=event_id)

    @classmethod
    def series(cls, series_id: int) -> 'Exclude':
        return cls(series_id=series_id)

    def matches(self, event: Event) -> bool:
        if self.event_id is not None and event.id == self.event_id:
            return True
        if (
            self.series_id is not None
            and self.series_id != STANDALONE_SERIES_ID
            and event.series_id == self.series_id
        ):
            return True
        return False


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def find_conflict(
    start: datetime,
    end: datetime,
    events: Iterable[Event],
    exclude: Optional[Exclude] = None,
) -> Optional[Event]:
    """Return the first event overlapping [start, end), or None."""
    for event in events:
        if exclude is not None and exclude.matches(event):
            continue
        if intervals_overlap(start, end, event.start, event.end):
            return event
    return None


def overlaps(
    start: datetime,
    end: datetime,
    events: Iterable[Event],
    exclude: Optional[Exclude] = None,
) -> bool:
    """Does [start, end) overlap any event in `events` not covered by `exclude`?"""
    return find_conflict(start, end, events, exclude) is not None
