"""Tests for pickup date resolution."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

from datetime import datetime, date, timedelta
from services.pickup_dates import (
    next_pickup_date, delivery_date_for, resolve_weekday, WEEKDAYS,
)

WEDNESDAY = datetime(2026, 10, 14, 9, 0)


def test_friday_with_two_day_lead_on_wednesday():
    """Wednesday + 2 days lands on Friday, so that Friday is used."""
    assert next_pickup_date("friday", 2, WEDNESDAY) == date(2026, 10, 16)


def test_lead_time_floor_on_target_day_is_not_pushed_a_week():
    """If today already matches and lead is 0, pickup is today."""
    assert next_pickup_date("wednesday", 0, WEDNESDAY) == date(2026, 10, 14)


def test_target_day_before_floor_rolls_to_next_week():
    """Monday with 1 day lead from Wednesday is next Monday."""
    assert next_pickup_date("monday", 1, WEDNESDAY) == date(2026, 10, 19)


def test_lead_time_crossing_preferred_day():
    """Thursday with 2 days lead (floor Friday) goes to the following Thursday."""
    assert next_pickup_date("thursday", 2, WEDNESDAY) == date(2026, 10, 22)


def test_case_insensitive_day_names():
    """Day names match regardless of case and surrounding whitespace."""
    expected = date(2026, 10, 16)
    assert next_pickup_date("FRIDAY", 2, WEDNESDAY) == expected
    assert next_pickup_date(" Friday ", 2, WEDNESDAY) == expected


def test_unknown_day_defaults_to_monday():
    """Unrecognized, empty and missing day names resolve to Monday."""
    for bad in ("invalid", "", None, "fri", "lundi"):
        result = next_pickup_date(bad, 1, WEDNESDAY)
        assert result.weekday() == 0
        assert result == date(2026, 10, 19)


def test_resolve_weekday():
    assert resolve_weekday("sunday") == 6
    assert resolve_weekday("Monday") == 0
    assert resolve_weekday("nope") == 0


def test_weekday_and_floor_for_all_days_and_leads():
    """Result matches the weekday, respects the lead time, and is within a week of the floor."""
    for start_offset in range(7):
        now = WEDNESDAY + timedelta(days=start_offset)
        for name, weekday in WEEKDAYS.items():
            for lead in range(0, 15):
                result = next_pickup_date(name, lead, now)
                floor = now.date() + timedelta(days=lead)
                assert result.weekday() == weekday
                assert floor <= result < floor + timedelta(days=7)


def test_never_in_the_past():
    """Zero and negative lead times never produce a past date."""
    for name in WEEKDAYS:
        assert next_pickup_date(name, 0, WEDNESDAY) >= WEDNESDAY.date()
        assert next_pickup_date(name, -3, WEDNESDAY) >= WEDNESDAY.date()


def test_accepts_plain_date():
    assert next_pickup_date("friday", 2, date(2026, 10, 14)) == date(2026, 10, 16)


def test_deterministic():
    assert next_pickup_date("saturday", 3, WEDNESDAY) == next_pickup_date("saturday", 3, WEDNESDAY)


def test_delivery_date_offset():
    """Delivery defaults to two days after pickup."""
    assert delivery_date_for(date(2026, 10, 16)) == date(2026, 10, 18)
    assert delivery_date_for(date(2026, 10, 16), offset_days=1) == date(2026, 10, 17)
