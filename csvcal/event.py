"""
Calendar event model.

An Event is either a standalone entry (series_id == 0) or one occurrence
of a series. All timestamps are naive local date-times.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta


# series_id value for events that do not belong to a series
STANDALONE_SERIES_ID = 0


@dataclass
class Event:
    """A single calendar entry."""
    id: int
    title: str
    description: str
    start: datetime
    end: datetime
    recurring: bool = False
    interval: str = ""  # Interval text of the owning rule, e.g. "1w"
    occurrence_count: int = 0  # Count of the owning rule, 0 if end-date driven
    series_id: int = STANDALONE_SERIES_ID
    reminder_minutes: int = 0  # 0 means no reminder

    # Optional details, stored apart from the event record
    location: str = ""
    category: str = ""
    attendees: str = ""  # Free text, e.g. "Ana, Ben"

    # ==================== Convenience Properties ====================

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def is_standalone(self) -> bool:
        return self.series_id == STANDALONE_SERIES_ID

    @property
    def is_series_root(self) -> bool:
        """True for the first occurrence of a series (id == series_id)."""
        return not self.is_standalone and self.id == self.series_id

    @property
    def has_details(self) -> bool:
        return bool(self.location or self.category or self.attendees)

    def matches_details(self, keyword: str) -> bool:
        """Case-insensitive match of keyword against location, category or attendees."""
        keyword = keyword.lower()
        return any(keyword in text.lower() for text in (self.location, self.category, self.attendees))

    @property
    def reminder_time(self) -> datetime:
        """When the reminder for this event fires (start if no offset)."""
        return self.start - timedelta(minutes=self.reminder_minutes)

    def copy(self) -> 'Event':
        return replace(self)

    def __repr__(self):
        return f"Event(id={self.id}, title={self.title!r}, start={self.start.isoformat()}, series_id={self.series_id})"
