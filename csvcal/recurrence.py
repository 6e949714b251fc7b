"""
Recurrence rules and interval arithmetic.

An interval is written as <N><unit> where unit is d (days), w (weeks)
or m (months), e.g. "1d", "2w", "1m". A rule ends either after a number
of occurrences or on an inclusive end date, never both.
"""

import re
import sys
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta

from .errors import InvalidInterval, InvalidRule


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] RULE: {msg}", file=sys.stderr)


_INTERVAL_RE = re.compile(r"^(\d+)([dwm])$")


class IntervalUnit(Enum):
    """Units a series can repeat in."""
    DAY = "d"
    WEEK = "w"
    MONTH = "m"


@dataclass(frozen=True)
class Interval:
    """Magnitude + unit, e.g. Interval(IntervalUnit.WEEK, 2) for "2w"."""
    unit: IntervalUnit
    magnitude: int

    @property
    def text(self) -> str:
        return f"{self.magnitude}{self.unit.value}"

    def __str__(self) -> str:
        return self.text


def parse_interval(text: Optional[str]) -> Interval:
    """
    Parse interval text such as "1d", "2w" or "3m".

    Surrounding whitespace and case are ignored.

    Raises:
        InvalidInterval: if text is not <positive integer><d|w|m>
    """
    if text is None:
        raise InvalidInterval("Interval is missing")

    s = text.strip().lower()
    match = _INTERVAL_RE.match(s)
    if not match:
        raise InvalidInterval(f"Invalid interval (use <N>d, <N>w or <N>m): {text!r}")

    magnitude = int(match.group(1))
    if magnitude <= 0:
        raise InvalidInterval(f"Interval must be > 0: {text!r}")

    return Interval(IntervalUnit(match.group(2)), magnitude)


def add_interval(dt: datetime, interval: Interval) -> datetime:
    """
    Advance dt by one interval.

    Days and weeks are exact. Months use calendar addition and clamp to the
    last day of the target month (Jan 31 + 1 month = Feb 28 or 29), so
    stepping a month series from the 31st settles on the clamped day.
    """
    steps = interval.magnitude
    if interval.unit == IntervalUnit.DAY:
        return dt + timedelta(days=steps)
    if interval.unit == IntervalUnit.WEEK:
        return dt + timedelta(weeks=steps)
    return dt + relativedelta(months=steps)


@dataclass
class RecurrenceRule:
    """
    How a series repeats.

    Exactly one of `count` (> 0) or `end_date` is active. `series_id` is
    the id of the root occurrence.
    """
    series_id: int
    interval: Interval
    count: int = 0
    end_date: Optional[date] = None

    @property
    def uses_count(self) -> bool:
        return self.count > 0

    @property
    def uses_end_date(self) -> bool:
        return self.end_date is not None

    def validate(self) -> None:
        """Raise InvalidRule unless exactly one termination mode is set."""
        if self.count < 0:
            raise InvalidRule(f"Occurrence count must be >= 1, got {self.count}")
        if self.uses_count and self.uses_end_date:
            raise InvalidRule("Set either an occurrence count or an end date, not both")
        if not self.uses_count and not self.uses_end_date:
            raise InvalidRule("Recurrence needs an occurrence count or an end date")

    @classmethod
    def from_fields(
        cls,
        series_id: int,
        interval_text: str,
        times: int,
        end_date: Optional[date],
    ) -> 'RecurrenceRule':
        """
        Build a rule from persisted fields.

        When both a count and an end date are present the count wins and
        the end date is dropped.
        """
        interval = parse_interval(interval_text)
        if times > 0 and end_date is not None:
            _debug_print(
                f"Rule for series {series_id} has both times={times} and end date {end_date}; "
                f"keeping the count"
            )
            end_date = None
        rule = cls(series_id=series_id, interval=interval, count=max(times, 0), end_date=end_date)
        rule.validate()
        return rule
