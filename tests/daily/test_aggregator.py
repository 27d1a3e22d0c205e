from __future__ import annotations

from datetime import date, datetime, time

import pytest

from src.presence.presence.attendance.model import CaptureRequest
from src.presence.presence.core.enums import DayStatus
from tests.fakes import FakeShiftRepo, World, day_shift

USER = 7
DAY = date(2024, 5, 1)


@pytest.fixture()
def world() -> World:
    return World(shifts=FakeShiftRepo(day_shift()))


def test_no_sessions_is_a_noop(world):
    assert world.aggregator.sync(USER, DAY) is None
    assert world.daily.rows == {}


def test_sync_sums_closed_sessions_and_uses_wall_clock(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 3)
    world.add_closed(USER, datetime(2024, 5, 1, 13, 0), 5.5)

    daily = world.aggregator.sync(USER, DAY)

    assert daily.first_in == "09:00:00"
    assert daily.last_out == "18:30:00"
    assert daily.total_hours == 8.5
    assert daily.overtime_hours == 0.5
    assert daily.shift_id == 1
    assert daily.org_id == 1


def test_sync_is_idempotent(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 4.333)

    first = world.aggregator.sync(USER, DAY)
    second = world.aggregator.sync(USER, DAY)

    assert first == second
    assert world.daily.creates == 1
    assert second.total_hours == 4.33


def test_open_session_is_not_counted_and_last_out_is_empty(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 3)
    world.attendance_service.time_in(CaptureRequest(user_id=USER, org_id=1, local_time=datetime(2024, 5, 1, 13, 0)))

    daily = world.aggregator.sync(USER, DAY)

    assert daily.total_hours == 3.0
    assert daily.last_out is None


def test_missing_shift_gives_zero_overtime():
    world = World()
    world.add_closed(USER, datetime(2024, 5, 1, 8, 0), 11)

    daily = world.aggregator.sync(USER, DAY)

    assert daily.total_hours == 11.0
    assert daily.overtime_hours == 0.0
    assert daily.shift_id is None


def test_failed_shift_lookup_gives_zero_overtime_not_failure():
    world = World(shifts=FakeShiftRepo(day_shift(), fail=True))
    world.add_closed(USER, datetime(2024, 5, 1, 8, 0), 10)

    daily = world.aggregator.sync(USER, DAY)

    assert daily.total_hours == 10.0
    assert daily.overtime_hours == 0.0


def test_overrides_are_applied_last(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 8)

    daily = world.aggregator.sync(USER, DAY, {"status": DayStatus.LATE, "adjusted_by": 99})

    assert daily.status == DayStatus.LATE
    assert daily.adjusted_by == 99
    assert daily.total_hours == 8.0


def test_unknown_override_is_rejected(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 8)
    with pytest.raises(ValueError):
        world.aggregator.sync(USER, DAY, {"total_hours": 1})


def test_manual_adjustment_creates_and_flags_the_day(world):
    daily = world.aggregator.apply_manual_adjustment(
        user_id=USER,
        org_id=1,
        work_date=DAY,
        first_in=time(9, 0),
        last_out=time(18, 0),
        adjusted_by=2,
        reason="Correction Request #1 Approved",
    )

    assert daily.first_in == "09:00:00"
    assert daily.last_out == "18:00:00"
    assert daily.total_hours == 9.0
    assert daily.overtime_hours == 1.0
    assert daily.is_manual_adjustment is True
    assert daily.adjusted_by == 2
    assert daily.status == DayStatus.PRESENT


def test_manual_adjustment_with_one_time_keeps_totals(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 30), 7)
    world.aggregator.sync(USER, DAY)

    daily = world.aggregator.apply_manual_adjustment(
        user_id=USER, org_id=1, work_date=DAY, first_in=time(9, 0), last_out=None, adjusted_by=2, reason="fix"
    )

    assert daily.first_in == "09:00:00"
    assert daily.last_out == "16:30:00"
    assert daily.total_hours == 7.0
