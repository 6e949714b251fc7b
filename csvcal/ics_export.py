"""
iCalendar export of the event set.

Every event, including each occurrence of a series, becomes its own
VEVENT so the exported file shows exactly what the store holds.
Occurrences point to their root event with RELATED-TO and carry the
series interval in X-CSVCAL-INTERVAL.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from icalendar import Alarm, Calendar as ICalCalendar, Event as ICalEvent

from .errors import PersistenceFailure
from .event import Event
from .recurrence import RecurrenceRule


PRODID = '-//csvcal//csvcal//'


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] ICS: {msg}", file=sys.stderr)


def event_uid(event_id: int) -> str:
    return f"{event_id}@csvcal"


def event_to_vevent(event: Event, rule: Optional[RecurrenceRule] = None) -> ICalEvent:
    vevent = ICalEvent()
    vevent.add('uid', event_uid(event.id))
    vevent.add('summary', event.title)
    vevent.add('dtstamp', datetime.now(timezone.utc))
    vevent.add('dtstart', event.start)
    vevent.add('dtend', event.end)

    if event.description:
        vevent.add('description', event.description)
    if event.location:
        vevent.add('location', event.location)
    if event.category:
        vevent.add('categories', [event.category])

    if not event.is_standalone:
        if not event.is_series_root:
            vevent.add('related-to', event_uid(event.series_id))
        interval = rule.interval.text if rule else event.interval
        if interval:
            vevent.add('x-csvcal-interval', interval)

    if event.reminder_minutes > 0:
        alarm = Alarm()
        alarm.add('action', 'DISPLAY')
        alarm.add('description', event.title)
        alarm.add('trigger', -timedelta(minutes=event.reminder_minutes))
        vevent.add_component(alarm)

    return vevent


def events_to_calendar(events: list[Event], rules: dict[int, RecurrenceRule]) -> ICalCalendar:
    vcal = ICalCalendar()
    vcal.add('prodid', PRODID)
    vcal.add('version', '2.0')
    for event in events:
        vcal.add_component(event_to_vevent(event, rules.get(event.series_id)))
    return vcal


def export_ics(events: list[Event], rules: dict[int, RecurrenceRule], path: Union[str, Path]) -> None:
    """Write events to `path` as a VCALENDAR. Raises PersistenceFailure on I/O errors."""
    path = Path(path)
    payload = events_to_calendar(events, rules).to_ical()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}-", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(payload)
            os.replace(tmp_name, path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
    except OSError as e:
        raise PersistenceFailure(f"ICS export to {path} failed: {e}", path) from e

    _debug_print(f"Exported {len(events)} events to {path}")
