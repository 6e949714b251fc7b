"""Tests for csvcal/series.py

Series generation is pure: it returns the occurrences to commit or raises
without producing anything.
"""

from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from csvcal.errors import InvalidInterval, InvalidRule, SeriesConflict
from csvcal.event import Event
from csvcal.series import generate_series


def _blocker(event_id, start, hours=1):
    return Event(
        id=event_id, title="Busy", description="", start=start, end=start + timedelta(hours=hours)
    )


class TestCountMode:
    """Tests for count-terminated series."""

    def test_weekly_starts(self, weekly_request):
        """Should produce exactly three weekly occurrences at 10:00."""
        result = generate_series(weekly_request, first_id=1, existing=[])

        assert [e.start for e in result.occurrences] == [
            datetime(2025, 1, 6, 10, 0),
            datetime(2025, 1, 13, 10, 0),
            datetime(2025, 1, 20, 10, 0),
        ]
        assert all(e.duration == timedelta(hours=1) for e in result.occurrences)

    def test_ids_and_series_id(self, weekly_request):
        """Should number occurrences consecutively with the root id as series id."""
        result = generate_series(weekly_request, first_id=10, existing=[])

        assert [e.id for e in result.occurrences] == [10, 11, 12]
        assert {e.series_id for e in result.occurrences} == {10}
        assert result.occurrences[0].is_series_root
        assert result.next_id == 13

    def test_occurrences_carry_rule_fields(self, weekly_request):
        """Should mark occurrences as recurring with the interval and count."""
        result = generate_series(weekly_request, first_id=1, existing=[])

        first = result.occurrences[0]
        assert first.recurring
        assert first.interval == "1w"
        assert first.occurrence_count == 3
        assert result.rule.count == 3
        assert result.rule.series_id == 1
        assert not result.truncated

    def test_monthly_steps_from_previous_occurrence(self, weekly_request):
        """Should step each month from the previous occurrence, settling on the 28th after February."""
        request = replace(
            weekly_request,
            start=datetime(2025, 1, 31, 18, 0),
            end=datetime(2025, 1, 31, 19, 0),
            interval="1m",
            count=3,
        )

        result = generate_series(request, first_id=1, existing=[])

        assert [e.start.date() for e in result.occurrences] == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 28),
        ]
        assert [e.start.hour for e in result.occurrences] == [18, 18, 18]

    def test_monthly_end_crossing_midnight(self, weekly_request):
        """Should advance the end as well and keep it after the start."""
        request = replace(
            weekly_request,
            start=datetime(2025, 1, 30, 23, 0),
            end=datetime(2025, 1, 31, 1, 0),
            interval="1m",
            count=2,
        )

        result = generate_series(request, first_id=1, existing=[])

        second = result.occurrences[1]
        assert second.start == datetime(2025, 2, 28, 23, 0)
        assert second.end == datetime(2025, 3, 1, 1, 0)

    def test_count_above_cap_is_rejected(self, weekly_request):
        """Should raise InvalidRule when the count exceeds the cap."""
        request = replace(weekly_request, count=11)

        with pytest.raises(InvalidRule):
            generate_series(request, first_id=1, existing=[], max_occurrences=10)


class TestEndDateMode:
    """Tests for end-date-terminated series."""

    def test_end_date_is_inclusive(self, daily_until_request):
        """Should include the occurrence starting on the end date."""
        result = generate_series(daily_until_request, first_id=1, existing=[])

        assert [e.start.date() for e in result.occurrences] == [
            date(2025, 3, d) for d in range(1, 6)
        ]
        assert result.rule.end_date == date(2025, 3, 5)
        assert result.occurrences[0].occurrence_count == 0

    def test_cap_truncates_without_failing(self, daily_until_request):
        """Should stop at the cap and flag the result as truncated."""
        request = replace(daily_until_request, end_date=date(2030, 1, 1))

        result = generate_series(request, first_id=1, existing=[], max_occurrences=50)

        assert len(result.occurrences) == 50
        assert result.truncated

    def test_end_date_before_start_is_rejected(self, daily_until_request):
        """Should raise InvalidRule when the end date precedes the first occurrence."""
        request = replace(daily_until_request, end_date=date(2025, 2, 1))

        with pytest.raises(InvalidRule):
            generate_series(request, first_id=1, existing=[])


class TestValidation:
    """Tests for rejected requests."""

    def test_end_not_after_start(self, weekly_request):
        """Should raise InvalidInterval for zero duration."""
        request = replace(weekly_request, end=weekly_request.start)

        with pytest.raises(InvalidInterval):
            generate_series(request, first_id=1, existing=[])

    def test_bad_interval_text(self, weekly_request):
        """Should raise InvalidInterval for an unknown unit."""
        request = replace(weekly_request, interval="1y")

        with pytest.raises(InvalidInterval):
            generate_series(request, first_id=1, existing=[])

    def test_missing_termination(self, weekly_request):
        """Should raise InvalidRule with neither count nor end date."""
        request = replace(weekly_request, count=0)

        with pytest.raises(InvalidRule):
            generate_series(request, first_id=1, existing=[])

    def test_both_terminations(self, weekly_request):
        """Should raise InvalidRule with both count and end date."""
        request = replace(weekly_request, end_date=date(2025, 2, 1))

        with pytest.raises(InvalidRule):
            generate_series(request, first_id=1, existing=[])


class TestConflicts:
    """Tests for conflicts against existing events."""

    def test_conflict_names_offending_occurrence(self, weekly_request):
        """Should raise SeriesConflict with the start of the clashing occurrence."""
        existing = [_blocker(1, datetime(2025, 1, 13, 10, 30))]

        with pytest.raises(SeriesConflict) as exc_info:
            generate_series(weekly_request, first_id=2, existing=existing)

        assert exc_info.value.start == datetime(2025, 1, 13, 10, 0)
        assert exc_info.value.conflicting_id == 1

    def test_first_occurrence_is_checked(self, weekly_request):
        """Should reject a series whose first occurrence clashes."""
        existing = [_blocker(1, datetime(2025, 1, 6, 9, 30))]

        with pytest.raises(SeriesConflict):
            generate_series(weekly_request, first_id=2, existing=existing)

    def test_touching_events_are_fine(self, weekly_request):
        """Should accept occurrences that only touch existing events."""
        existing = [
            _blocker(1, datetime(2025, 1, 13, 9, 0)),
            _blocker(2, datetime(2025, 1, 13, 11, 0)),
        ]

        result = generate_series(weekly_request, first_id=3, existing=existing)

        assert len(result.occurrences) == 3
