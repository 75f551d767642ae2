"""Tests for conflict detection and alternative-slot suggestions."""

from datetime import date, timedelta

import pytest

from booking_engine.schemas.booking_schema import ReservationStatus
from booking_engine.tools.business_hours import DEFAULT_HOURS
from booking_engine.tools.rules import check_business_hours, check_lead_time, intervals_overlap
from tests.conftest import TODAY, TOMORROW, at, make_fields

TUESDAY = date(2026, 10, 20)


class TestCheckConflict:
    @pytest.mark.asyncio
    async def test_empty_store_has_no_conflict(self, availability):
        assert await availability.check_conflict(at(TOMORROW, "14:00"), at(TOMORROW, "14:35")) is None

    @pytest.mark.asyncio
    async def test_overlap_returns_existing(self, store, availability):
        existing = await store.create_reservation(make_fields(at(TOMORROW, "14:00"), at(TOMORROW, "14:35")))
        found = await availability.check_conflict(at(TOMORROW, "14:30"), at(TOMORROW, "15:05"))
        assert found is not None
        assert found.id == existing.id

    @pytest.mark.asyncio
    async def test_touching_is_free(self, store, availability):
        await store.create_reservation(make_fields(at(TOMORROW, "14:00"), at(TOMORROW, "14:35")))
        assert await availability.check_conflict(at(TOMORROW, "14:35"), at(TOMORROW, "15:10")) is None

    @pytest.mark.asyncio
    async def test_cancelled_reservations_ignored(self, store, availability):
        await store.create_reservation(make_fields(
            at(TOMORROW, "14:00"), at(TOMORROW, "14:35"), status=ReservationStatus.CANCELLED
        ))
        assert await availability.check_conflict(at(TOMORROW, "14:00"), at(TOMORROW, "14:35")) is None

    @pytest.mark.asyncio
    async def test_pending_reservations_block(self, store, availability):
        await store.create_reservation(make_fields(
            at(TOMORROW, "14:00"), at(TOMORROW, "14:35"), status=ReservationStatus.PENDING
        ))
        assert await availability.check_conflict(at(TOMORROW, "14:10"), at(TOMORROW, "14:20")) is not None


class TestSuggestSlots:
    @pytest.mark.asyncio
    async def test_first_slots_from_opening(self, availability):
        slots = await availability.suggest_slots(TUESDAY, 30, max_count=5, step_minutes=30)
        assert [s.strftime("%H:%M") for s in slots] == ["09:00", "09:30", "10:00", "10:30", "11:00"]

    @pytest.mark.asyncio
    async def test_skips_booked_interval(self, store, availability):
        await store.create_reservation(make_fields(at(TOMORROW, "09:00"), at(TOMORROW, "09:35")))
        slots = await availability.suggest_slots(TUESDAY, 30, max_count=3, step_minutes=30)
        # 09:30 would overlap [09:00, 09:35)
        assert [s.strftime("%H:%M") for s in slots] == ["10:00", "10:30", "11:00"]

    @pytest.mark.asyncio
    async def test_last_slot_ends_by_close(self, availability):
        slots = await availability.suggest_slots(TUESDAY, 30, max_count=100, step_minutes=30)
        assert slots[-1].strftime("%H:%M") == "17:00"
        assert all(s + timedelta(minutes=35) <= at(TOMORROW, "18:00") for s in slots)

    @pytest.mark.asyncio
    async def test_same_day_respects_lead_time(self, availability):
        # Now is 10:00 on Monday; 11:00 is the first start with 60 minutes' notice.
        slots = await availability.suggest_slots(date(2026, 10, 19), 30, max_count=2, step_minutes=30)
        assert [s.strftime("%H:%M") for s in slots] == ["11:00", "11:30"]

    @pytest.mark.asyncio
    async def test_closed_day_has_no_slots(self, availability):
        assert await availability.suggest_slots(date(2026, 10, 25), 30) == []

    @pytest.mark.asyncio
    async def test_past_day_has_no_slots(self, availability):
        assert await availability.suggest_slots(date(2026, 10, 17), 30) == []

    @pytest.mark.asyncio
    async def test_zero_max_count(self, availability):
        assert await availability.suggest_slots(TUESDAY, 30, max_count=0) == []

    @pytest.mark.asyncio
    async def test_fully_booked_day(self, store, availability):
        await store.create_reservation(make_fields(at(TOMORROW, "09:00"), at(TOMORROW, "18:00")))
        assert await availability.suggest_slots(TUESDAY, 15) == []

    @pytest.mark.asyncio
    async def test_suggestions_are_sound_and_increasing(self, store, availability, clock):
        await store.create_reservation(make_fields(at(TODAY, "13:00"), at(TODAY, "14:20")))
        await store.create_reservation(make_fields(at(TODAY, "15:10"), at(TODAY, "15:40")))
        existing = await store.list_reservations()

        slots = await availability.suggest_slots(date(2026, 10, 19), 45, max_count=50, step_minutes=15)
        assert slots
        assert slots == sorted(set(slots))
        for start in slots:
            end = start + timedelta(minutes=50)
            assert check_lead_time(start, clock(), 60).ok
            assert check_business_hours(start, end, DEFAULT_HOURS).ok
            assert not any(intervals_overlap(start, end, r.start_at, r.end_at) for r in existing)
