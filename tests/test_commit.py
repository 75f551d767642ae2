"""Tests for the commit engine: validation order, persistence and races."""

import asyncio
from datetime import timedelta

import pytest

from booking_engine.schemas.booking_schema import (
    FailureReason,
    Reservation,
    ReservationStatus,
    ValidationFailure,
)
from booking_engine.tools.availability import AvailabilityChecker
from booking_engine.tools.booking import CommitEngine
from booking_engine.tools.reservations import InMemoryReservationStore
from tests.conftest import TODAY, TOMORROW, TZ, FixedClock, at, make_draft, make_fields


class TestSuccessfulCommit:
    @pytest.mark.asyncio
    async def test_commit_on_empty_store(self, commit_engine, store):
        result = await commit_engine.commit(make_draft())
        assert isinstance(result, Reservation)
        assert result.status == ReservationStatus.CONFIRMED
        assert result.start_at == at(TOMORROW, "14:00")
        assert result.end_at - result.start_at == timedelta(minutes=35)
        assert result.customer_phone == "4165550199"
        assert await store.list_reservations() == [result]

    @pytest.mark.asyncio
    async def test_service_name_canonicalized(self, commit_engine):
        result = await commit_engine.commit(make_draft(service_name="head shave"))
        assert isinstance(result, Reservation)
        assert result.service_name == "Head Shave"
        assert result.end_at - result.start_at == timedelta(minutes=50)

    @pytest.mark.asyncio
    async def test_optional_fields_carried(self, commit_engine):
        result = await commit_engine.commit(
            make_draft(customer_email="sam@example.com", notes="skin fade")
        )
        assert result.customer_email == "sam@example.com"
        assert result.notes == "skin fade"

    @pytest.mark.asyncio
    async def test_touching_existing_booking_allowed(self, commit_engine, store):
        await store.create_reservation(make_fields(at(TOMORROW, "13:25"), at(TOMORROW, "14:00")))
        assert isinstance(await commit_engine.commit(make_draft()), Reservation)


class TestValidationFailures:
    @pytest.mark.asyncio
    async def test_missing_fields(self, commit_engine):
        result = await commit_engine.commit(make_draft(customer_phone=None))
        assert result.code == FailureReason.MISSING_FIELDS

    @pytest.mark.asyncio
    async def test_unknown_service(self, commit_engine):
        result = await commit_engine.commit(make_draft(service_name="Perm"))
        assert result.code == FailureReason.UNKNOWN_SERVICE
        assert result.reason == "That service is not supported."

    @pytest.mark.asyncio
    async def test_invalid_datetime(self, commit_engine):
        result = await commit_engine.commit(make_draft(time="quarter past two"))
        assert result.code == FailureReason.INVALID_DATETIME

    @pytest.mark.asyncio
    async def test_in_past(self, commit_engine):
        result = await commit_engine.commit(make_draft(date=TODAY, time="09:30"))
        assert result.code == FailureReason.IN_PAST

    @pytest.mark.asyncio
    async def test_now_counts_as_past(self, commit_engine):
        result = await commit_engine.commit(make_draft(date=TODAY, time="10:00"))
        assert result.code == FailureReason.IN_PAST

    @pytest.mark.asyncio
    async def test_lead_time(self, commit_engine):
        result = await commit_engine.commit(make_draft(date=TODAY, time="10:30"))
        assert result.code == FailureReason.LEAD_TIME

    @pytest.mark.asyncio
    async def test_closed_day(self, commit_engine):
        result = await commit_engine.commit(make_draft(date="2026-10-25"))
        assert result.code == FailureReason.CLOSED_DAY

    @pytest.mark.asyncio
    async def test_too_early(self, commit_engine):
        result = await commit_engine.commit(make_draft(time="08:30"))
        assert result.code == FailureReason.TOO_EARLY

    @pytest.mark.asyncio
    async def test_too_late_counts_buffer(self, commit_engine):
        # 17:30 + 30 min + 5 min buffer ends at 18:05
        result = await commit_engine.commit(make_draft(time="17:30"))
        assert result.code == FailureReason.TOO_LATE

    @pytest.mark.asyncio
    async def test_conflict(self, commit_engine, store):
        existing = await store.create_reservation(
            make_fields(at(TOMORROW, "14:00"), at(TOMORROW, "14:35"))
        )
        result = await commit_engine.commit(make_draft())
        assert isinstance(result, ValidationFailure)
        assert result.code == FailureReason.CONFLICT
        assert result.conflicting_reservation_id == existing.id
        assert len(await store.list_reservations()) == 1

    @pytest.mark.asyncio
    async def test_unknown_service_reported_before_bad_time(self, commit_engine):
        result = await commit_engine.commit(make_draft(service_name="Perm", time="nope"))
        assert result.code == FailureReason.UNKNOWN_SERVICE

    @pytest.mark.asyncio
    async def test_lead_time_reported_before_hours(self, commit_engine, clock):
        clock.now = at(TOMORROW, "17:00")
        result = await commit_engine.commit(make_draft(time="17:30"))
        assert result.code == FailureReason.LEAD_TIME

    @pytest.mark.asyncio
    async def test_hours_reported_before_conflict(self, commit_engine, store):
        await store.create_reservation(make_fields(at(TOMORROW, "17:00"), at(TOMORROW, "18:00")))
        result = await commit_engine.commit(make_draft(time="17:30"))
        assert result.code == FailureReason.TOO_LATE


class SlowStore(InMemoryReservationStore):
    async def find_overlapping(self, statuses, start, end):
        await asyncio.sleep(1.0)
        return await super().find_overlapping(statuses, start, end)


class BrokenStore(InMemoryReservationStore):
    async def create_reservation(self, fields):
        raise ConnectionError("database unreachable")


class TestStorage:
    @pytest.mark.asyncio
    async def test_slow_store_is_storage_unavailable(self):
        store = SlowStore()
        clock = FixedClock()
        availability = AvailabilityChecker(store, tz=TZ, clock=clock, store_timeout_sec=0.05)
        engine = CommitEngine(store, availability, tz=TZ, clock=clock, store_timeout_sec=0.05)
        result = await engine.commit(make_draft())
        assert result.code == FailureReason.STORAGE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_write_failure_is_storage_unavailable(self):
        store = BrokenStore()
        clock = FixedClock()
        availability = AvailabilityChecker(store, tz=TZ, clock=clock)
        engine = CommitEngine(store, availability, tz=TZ, clock=clock)
        result = await engine.commit(make_draft())
        assert result.code == FailureReason.STORAGE_UNAVAILABLE
        assert result.reason == "We couldn't save your booking just now."


class TestConcurrentCommits:
    @pytest.mark.asyncio
    async def test_only_one_of_two_overlapping_commits_wins(self, commit_engine, store):
        first, second = await asyncio.gather(
            commit_engine.commit(make_draft(customer_name="Ana Silva")),
            commit_engine.commit(make_draft(customer_name="Leo Park", time="14:15")),
        )
        outcomes = [first, second]
        assert sum(isinstance(o, Reservation) for o in outcomes) == 1
        loser = next(o for o in outcomes if isinstance(o, ValidationFailure))
        assert loser.code == FailureReason.CONFLICT
        assert len(await store.list_reservations()) == 1

    @pytest.mark.asyncio
    async def test_store_rejects_overlap_even_without_check(self, store):
        from booking_engine.tools.reservations import ReservationConflictError

        await store.create_reservation(make_fields(at(TOMORROW, "14:00"), at(TOMORROW, "14:35")))
        with pytest.raises(ReservationConflictError):
            await store.create_reservation(make_fields(at(TOMORROW, "14:30"), at(TOMORROW, "15:05")))
