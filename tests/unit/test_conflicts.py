"""Tests for csvcal/conflicts.py

Overlap detection uses half-open intervals: touching events never
conflict. Exclusions skip either one event or a whole series.
"""

from datetime import datetime, timedelta

import pytest

from csvcal.conflicts import Exclude, find_conflict, intervals_overlap, overlaps
from csvcal.event import Event


def _event(event_id, start, hours=1, series_id=0):
    return Event(
        id=event_id,
        title=f"Event {event_id}",
        description="",
        start=start,
        end=start + timedelta(hours=hours),
        recurring=series_id != 0,
        series_id=series_id,
    )


@pytest.fixture
def events():
    """A standalone event at 10-11 and a two-occurrence series at 12-13."""
    return [
        _event(1, datetime(2025, 1, 6, 10, 0)),
        _event(2, datetime(2025, 1, 6, 12, 0), series_id=2),
        _event(3, datetime(2025, 1, 7, 12, 0), series_id=2),
    ]


class TestOverlapPredicate:
    """Tests for the raw interval predicate."""

    @pytest.mark.parametrize(
        "a,b",
        [
            ((9, 11), (10, 12)),
            ((9, 10), (10, 11)),
            ((9, 12), (10, 11)),
            ((8, 9), (10, 11)),
        ],
    )
    def test_overlap_is_symmetric(self, a, b):
        """Should give the same answer whichever interval comes first."""
        day = datetime(2025, 1, 6)
        a_start, a_end = day.replace(hour=a[0]), day.replace(hour=a[1])
        b_start, b_end = day.replace(hour=b[0]), day.replace(hour=b[1])

        assert intervals_overlap(a_start, a_end, b_start, b_end) == intervals_overlap(
            b_start, b_end, a_start, a_end
        )

    def test_touching_intervals_do_not_overlap(self):
        """Should not flag an event ending exactly when another starts."""
        t = datetime(2025, 1, 6, 11, 0)

        assert not intervals_overlap(t - timedelta(hours=1), t, t, t + timedelta(hours=1))


class TestOverlaps:
    """Tests for overlaps/find_conflict over an event collection."""

    def test_detects_partial_overlap(self, events):
        """Should report a candidate that starts inside an event."""
        assert overlaps(datetime(2025, 1, 6, 10, 30), datetime(2025, 1, 6, 11, 30), events)

    def test_detects_enclosing_candidate(self, events):
        """Should report a candidate that fully encloses an event."""
        assert overlaps(datetime(2025, 1, 6, 9, 0), datetime(2025, 1, 6, 13, 0), events)

    def test_touching_candidate_is_free(self, events):
        """Should accept a slot between two events that touches both."""
        assert not overlaps(datetime(2025, 1, 6, 11, 0), datetime(2025, 1, 6, 12, 0), events)

    def test_empty_collection_never_conflicts(self):
        """Should return False for no events."""
        assert not overlaps(datetime(2025, 1, 6, 9, 0), datetime(2025, 1, 6, 10, 0), [])

    def test_find_conflict_returns_the_event(self, events):
        """Should return the conflicting event for diagnostics."""
        clash = find_conflict(datetime(2025, 1, 7, 12, 30), datetime(2025, 1, 7, 13, 30), events)

        assert clash is not None
        assert clash.id == 3

    def test_exclude_event_skips_only_that_event(self, events):
        """Should ignore the excluded id but still see the others."""
        start, end = datetime(2025, 1, 6, 10, 0), datetime(2025, 1, 6, 11, 0)

        assert not overlaps(start, end, events, Exclude.event(1))
        assert overlaps(start, end + timedelta(hours=2), events, Exclude.event(1))

    def test_exclude_series_skips_all_occurrences(self, events):
        """Should ignore every occurrence of the excluded series."""
        assert not overlaps(
            datetime(2025, 1, 6, 12, 0), datetime(2025, 1, 7, 13, 0), events, Exclude.series(2)
        )

    def test_exclude_standalone_series_id_excludes_nothing(self, events):
        """Should not treat series id 0 as a series to skip."""
        assert overlaps(
            datetime(2025, 1, 6, 10, 0), datetime(2025, 1, 6, 11, 0), events, Exclude.series(0)
        )
