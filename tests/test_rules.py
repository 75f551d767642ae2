"""Tests for the business rules engine: intervals, hours and lead time."""

from datetime import date, timedelta, timezone

import pytest

from booking_engine.schemas.booking_schema import FailureReason
from booking_engine.tools.business_hours import DEFAULT_HOURS
from booking_engine.tools.rules import (
    check_business_hours,
    check_lead_time,
    day_bounds,
    intervals_overlap,
    parse_start,
    reservation_end,
    service_duration,
)
from booking_engine.tools.services import DEFAULT_CATALOG
from tests.conftest import NOW, TODAY, TOMORROW, TZ, at


class TestIntervals:
    def test_touching_intervals_do_not_overlap(self):
        a = (at(TOMORROW, "10:00"), at(TOMORROW, "10:30"))
        b = (at(TOMORROW, "10:30"), at(TOMORROW, "11:00"))
        assert not intervals_overlap(*a, *b)
        assert not intervals_overlap(*b, *a)

    def test_one_minute_overlap(self):
        a = (at(TOMORROW, "10:00"), at(TOMORROW, "10:30"))
        b = (at(TOMORROW, "10:29"), at(TOMORROW, "10:45"))
        assert intervals_overlap(*a, *b)
        assert intervals_overlap(*b, *a)

    def test_containment_overlaps(self):
        outer = (at(TOMORROW, "09:00"), at(TOMORROW, "12:00"))
        inner = (at(TOMORROW, "10:00"), at(TOMORROW, "10:15"))
        assert intervals_overlap(*outer, *inner)
        assert intervals_overlap(*inner, *outer)

    def test_reservation_end_includes_buffer(self):
        start = at(TOMORROW, "14:00")
        assert reservation_end(start, 30, 5) == at(TOMORROW, "14:35")

    def test_service_duration(self):
        assert service_duration("Haircut (Standard)", DEFAULT_CATALOG) == 30
        assert service_duration("Perm", DEFAULT_CATALOG) is None


class TestParseStart:
    def test_combines_in_shop_zone(self):
        start = parse_start(TOMORROW, "14:00", TZ)
        assert start == at(TOMORROW, "14:00")
        assert start.tzinfo is TZ

    @pytest.mark.parametrize("day,clock", [
        ("2026-13-01", "14:00"),
        (TOMORROW, "2pm"),
        (None, "14:00"),
        (TOMORROW, None),
    ])
    def test_unparseable(self, day, clock):
        assert parse_start(day, clock, TZ) is None


class TestBusinessHours:
    def test_exactly_open_to_close_accepted(self):
        # Tuesday 09:00-18:00
        assert check_business_hours(at(TOMORROW, "09:00"), at(TOMORROW, "18:00"), DEFAULT_HOURS).ok

    def test_one_minute_before_open_rejected(self):
        result = check_business_hours(at(TOMORROW, "08:59"), at(TOMORROW, "09:34"), DEFAULT_HOURS)
        assert not result.ok
        assert result.code == FailureReason.TOO_EARLY
        assert result.reason == "Too early. Opens at 09:00."

    def test_one_minute_past_close_rejected(self):
        result = check_business_hours(at(TOMORROW, "17:26"), at(TOMORROW, "18:01"), DEFAULT_HOURS)
        assert not result.ok
        assert result.code == FailureReason.TOO_LATE
        assert result.reason == "Too late. Closes at 18:00."

    def test_closed_day(self):
        sunday = "2026-10-25"
        result = check_business_hours(at(sunday, "12:00"), at(sunday, "12:35"), DEFAULT_HOURS)
        assert result.code == FailureReason.CLOSED_DAY

    def test_day_bounds(self):
        open_at, close_at = day_bounds(date(2026, 10, 22), DEFAULT_HOURS, TZ)
        assert open_at == at("2026-10-22", "10:00")
        assert close_at == at("2026-10-22", "20:00")
        assert day_bounds(date(2026, 10, 25), DEFAULT_HOURS, TZ) is None


class TestLeadTime:
    def test_exactly_minimum_lead_accepted(self):
        assert check_lead_time(NOW + timedelta(minutes=60), NOW, 60).ok

    def test_one_minute_short_rejected(self):
        result = check_lead_time(NOW + timedelta(minutes=59), NOW, 60)
        assert not result.ok
        assert result.code == FailureReason.LEAD_TIME
        assert "60 minutes" in result.reason

    def test_future_day_always_accepted(self):
        late_evening = NOW.replace(hour=23, minute=50)
        assert check_lead_time(at(TOMORROW, "00:10"), late_evening, 60).ok

    def test_same_day_compared_in_shop_zone(self):
        utc_now = NOW.astimezone(timezone.utc)
        result = check_lead_time(at(TODAY, "10:30"), utc_now, 60)
        assert result.code == FailureReason.LEAD_TIME
