"""Tests for the date/time helpers."""

import itertools
from datetime import date

import pytest

from src.dojo.timeutils import (
    format_date_br,
    format_range,
    intervals_overlap,
    iter_dates,
    minutes_of_day,
    month_bounds,
    session_key,
    to_iso_date,
    weekday_of,
)


def test_to_iso_date_pads():
    assert to_iso_date(2026, 3, 7) == "2026-03-07"


def test_to_iso_date_rejects_invalid_day():
    with pytest.raises(ValueError):
        to_iso_date(2026, 2, 30)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2026-10-18", 0),  # Sunday
        ("2026-10-19", 1),  # Monday
        ("2026-10-24", 6),  # Saturday
        (date(2026, 10, 23), 5),
    ],
)
def test_weekday_of_counts_from_sunday(value, expected):
    assert weekday_of(value) == expected


def test_minutes_of_day():
    assert minutes_of_day("00:00") == 0
    assert minutes_of_day("18:30") == 18 * 60 + 30
    assert minutes_of_day("23:59") == 1439


@pytest.mark.parametrize("bad", ["24:00", "7:00", "18:60", "", "1800", "aa:bb"])
def test_minutes_of_day_rejects_malformed(bad):
    with pytest.raises(ValueError):
        minutes_of_day(bad)


class TestIntervalsOverlap:
    def test_overlapping(self):
        # 18:00-19:00 vs 18:30-19:00
        assert intervals_overlap(1080, 60, 1110, 30)

    def test_touching_endpoints_do_not_overlap(self):
        assert not intervals_overlap(1080, 60, 1140, 30)
        assert not intervals_overlap(1140, 30, 1080, 60)

    def test_containment(self):
        assert intervals_overlap(600, 120, 630, 10)

    def test_symmetry(self):
        starts = [0, 30, 60, 90]
        durations = [15, 30, 60]
        for a, da, b, db in itertools.product(starts, durations, starts, durations):
            assert intervals_overlap(a, da, b, db) == intervals_overlap(b, db, a, da)


def test_format_range():
    assert format_range("18:00", 90) == "18:00 - 19:30"


def test_format_range_wraps_past_midnight_without_date():
    assert format_range("23:30", 60) == "23:30 - 00:30"


def test_format_date_br():
    assert format_date_br("2026-10-26") == "26/10/2026"


def test_session_key_strips_colon():
    assert session_key(date(2026, 10, 26), "18:00") == "2026-10-26-1800"


def test_iter_dates_inclusive_and_empty():
    days = list(iter_dates(date(2026, 10, 30), date(2026, 11, 2)))
    assert days[0] == date(2026, 10, 30)
    assert days[-1] == date(2026, 11, 2)
    assert len(days) == 4
    assert list(iter_dates(date(2026, 11, 2), date(2026, 11, 1))) == []


def test_month_bounds_december():
    assert month_bounds(2026, 12) == (date(2026, 12, 1), date(2026, 12, 31))
    assert month_bounds(2028, 2) == (date(2028, 2, 1), date(2028, 2, 29))
