"""
Recurring series generation.

Expands a template event plus a recurrence rule into the full, ordered
list of occurrences. Generation is all-or-nothing: if any occurrence
overlaps an existing event, nothing is produced and SeriesConflict is
raised.
"""

import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence

from .conflicts import find_conflict
from .errors import InvalidInterval, InvalidRule, SeriesConflict
from .event import Event
from .recurrence import RecurrenceRule, add_interval, parse_interval


# Hard cap on occurrences per series
DEFAULT_MAX_OCCURRENCES = 5000


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] SERIES: {msg}", file=sys.stderr)


@dataclass
class SeriesRequest:
    """Template for a new series, as entered by the user."""
    title: str
    description: str
    start: datetime
    end: datetime
    interval: str  # e.g. "1d", "2w", "1m"
    count: int = 0
    end_date: Optional[date] = None
    reminder_minutes: int = 0
    location: str = ""
    category: str = ""
    attendees: str = ""


@dataclass
class SeriesResult:
    """Occurrences ready to be committed as one batch."""
    rule: RecurrenceRule
    occurrences: list[Event] = field(default_factory=list)
    truncated: bool = False  # True if the safety cap stopped generation
    next_id: int = 0  # First id not used by this series

    @property
    def series_id(self) -> int:
        return self.rule.series_id


def generate_series(
    request: SeriesRequest,
    first_id: int,
    existing: Sequence[Event],
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> SeriesResult:
    """
    Expand `request` into occurrences with ids starting at `first_id`.

    Each occurrence advances the start and end of the previous one by one
    interval. Each occurrence is checked against `existing`; none
    of them belong to the new series, so siblings never conflict with each
    other.

    Args:
        request: The series template
        first_id: Id of the first occurrence, which also becomes the series id
        existing: Events already committed to the store
        max_occurrences: Safety cap for end-date driven series

    Returns:
        SeriesResult with the occurrences in chronological order

    Raises:
        InvalidInterval: end <= start, or malformed interval text
        InvalidRule: termination missing, ambiguous or out of range
        SeriesConflict: an occurrence overlaps an existing event
    """
    if request.end <= request.start:
        raise InvalidInterval(
            f"End {request.end.isoformat()} must be after start {request.start.isoformat()}"
        )
    if request.reminder_minutes < 0:
        raise ValueError(f"Reminder offset must be >= 0, got {request.reminder_minutes}")

    interval = parse_interval(request.interval)
    rule = RecurrenceRule(
        series_id=first_id,
        interval=interval,
        count=request.count,
        end_date=request.end_date,
    )
    rule.validate()

    if rule.uses_count and rule.count > max_occurrences:
        raise InvalidRule(f"At most {max_occurrences} occurrences are allowed, got {rule.count}")
    if rule.uses_end_date and rule.end_date < request.start.date():
        raise InvalidRule(
            f"End date {rule.end_date.isoformat()} is before the first occurrence "
            f"{request.start.date().isoformat()}"
        )

    duration = request.end - request.start
    occurrences: list[Event] = []
    truncated = False
    index = 0
    occ_start, occ_end = request.start, request.end

    while True:
        if rule.uses_count and index >= rule.count:
            break

        if rule.uses_end_date and occ_start.date() > rule.end_date:
            break

        if index >= max_occurrences:
            truncated = True
            _debug_print(
                f"Series {first_id}: stopped at {max_occurrences} occurrences "
                f"before reaching {rule.end_date}"
            )
            break

        clash = find_conflict(occ_start, occ_end, existing)
        if clash is not None:
            _debug_print(
                f"Series {first_id}: occurrence {index + 1} at {occ_start.isoformat()} "
                f"conflicts with event {clash.id}, discarding series"
            )
            raise SeriesConflict(occ_start, clash.id)

        occurrences.append(Event(
            id=first_id + index,
            title=request.title,
            description=request.description,
            start=occ_start,
            end=occ_end,
            recurring=True,
            interval=interval.text,
            occurrence_count=rule.count,
            series_id=first_id,
            reminder_minutes=request.reminder_minutes,
            location=request.location,
            category=request.category,
            attendees=request.attendees,
        ))
        index += 1

        occ_start = add_interval(occ_start, interval)
        occ_end = add_interval(occ_end, interval)
        if occ_end <= occ_start:
            # Month clamping can pull the end behind the start
            occ_end = occ_start + duration

    _debug_print(f"Series {first_id}: generated {len(occurrences)} occurrences ({interval.text})")
    return SeriesResult(
        rule=rule,
        occurrences=occurrences,
        truncated=truncated,
        next_id=first_id + len(occurrences),
    )
