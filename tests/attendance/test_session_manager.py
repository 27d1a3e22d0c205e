from __future__ import annotations

import io
import threading
import time
from datetime import datetime, timezone

import pytest
from PIL import Image

from src.presence.presence.attendance.model import CaptureRequest
from src.presence.presence.core.enums import DayStatus, SessionError, SessionStatus
from src.presence.presence.integrations.storage import LocalEvidenceStore
from src.presence.presence.locations.model import WorkLocation
from tests.fakes import FakeShiftRepo, StaticResolver, World, day_shift

USER = 7


def capture(at: datetime, **kwargs) -> CaptureRequest:
    values = dict(user_id=USER, org_id=1, local_time=at, address="HQ", timezone="Asia/Kolkata")
    values.update(kwargs)
    return CaptureRequest(**values)


@pytest.fixture()
def world() -> World:
    return World(shifts=FakeShiftRepo(day_shift()))


def test_first_time_in_opens_session_and_creates_daily_row(world):
    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 5)))

    assert out.ok
    assert out.session_number == 1
    assert out.is_first_session is True
    assert out.minutes_late == 0
    assert out.degraded == ()

    row = world.attendance.rows[out.session_id]
    assert row.status == SessionStatus.OPEN
    assert row.metadata["session_context"]["is_first_session"] is True
    assert row.metadata["time_in"]["timezone"] == "Asia/Kolkata"

    daily = world.daily.get(USER, datetime(2024, 5, 1).date())
    assert daily.first_in == "09:05:00"
    assert daily.last_out is None
    assert daily.total_hours == 0.0


def test_second_time_in_while_open_is_rejected(world):
    service = world.attendance_service
    assert service.time_in(capture(datetime(2024, 5, 1, 9, 0))).ok

    out = service.time_in(capture(datetime(2024, 5, 1, 9, 30)))

    assert not out.ok
    assert out.error == SessionError.ALREADY_OPEN
    assert len(world.attendance.rows) == 1


def test_open_session_outside_lookback_does_not_block(world):
    service = world.attendance_service
    assert service.time_in(capture(datetime(2024, 5, 1, 9, 0))).ok

    out = service.time_in(capture(datetime(2024, 5, 2, 9, 5)))

    assert out.ok
    assert len(world.attendance.rows) == 2


def test_time_out_without_open_session(world):
    out = world.attendance_service.time_out(capture(datetime(2024, 5, 1, 17, 0)))
    assert not out.ok
    assert out.error == SessionError.NO_OPEN_SESSION


def test_late_without_reason_writes_nothing(world):
    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 25)))

    assert not out.ok
    assert out.error == SessionError.LATE_REASON_REQUIRED
    assert "15 minutes" in out.message
    assert world.attendance.rows == {}
    assert world.daily.rows == {}


def test_late_first_session_marks_day_late(world):
    service = world.attendance_service
    out_in = service.time_in(capture(datetime(2024, 5, 1, 9, 25), late_reason="Train delayed"))
    assert out_in.ok
    assert out_in.minutes_late == 15
    assert world.attendance.rows[out_in.session_id].late_reason == "Train delayed"

    out = service.time_out(capture(datetime(2024, 5, 1, 17, 25)))

    assert out.ok
    assert out.status == DayStatus.LATE.value
    assert world.attendance.rows[out_in.session_id].status == SessionStatus.LATE
    assert world.daily.get(USER, datetime(2024, 5, 1).date()).status == DayStatus.LATE


def test_later_sessions_are_never_late(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 3)

    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 13, 30)))

    assert out.ok
    assert out.session_number == 2
    assert out.is_first_session is False
    assert out.minutes_late == 0


def test_time_out_closes_with_totals_and_overtime(world):
    service = world.attendance_service
    assert service.time_in(capture(datetime(2024, 5, 1, 9, 0))).ok

    out = service.time_out(capture(datetime(2024, 5, 1, 17, 30)))

    assert out.ok
    assert out.session_hours == 8.5
    assert out.total_hours_today == 8.5
    assert out.status == DayStatus.PRESENT.value

    row = world.attendance.rows[out.session_id]
    assert row.status == SessionStatus.PRESENT
    assert row.overtime_hours == 0.5
    assert row.metadata["time_out"]["total_hours"] == 8.5
    assert "time_in" in row.metadata
    assert row.metadata["session_context_at_checkout"]["session_number"] == 1

    daily = world.daily.get(USER, datetime(2024, 5, 1).date())
    assert daily.first_in == "09:00:00"
    assert daily.last_out == "17:30:00"
    assert daily.total_hours == 8.5
    assert daily.overtime_hours == 0.5


def test_running_total_includes_earlier_sessions(world):
    world.add_closed(USER, datetime(2024, 5, 1, 9, 0), 3)
    service = world.attendance_service
    assert service.time_in(capture(datetime(2024, 5, 1, 13, 0))).ok

    out = service.time_out(capture(datetime(2024, 5, 1, 15, 15)))

    assert out.session_hours == 2.25
    assert out.total_hours_today == 5.25
    assert world.daily.get(USER, datetime(2024, 5, 1).date()).total_hours == 5.25


def test_session_across_midnight_counts_for_start_day(world):
    service = world.attendance_service
    assert service.time_in(capture(datetime(2024, 5, 1, 22, 0), late_reason="Night shift cover")).ok
    assert service.time_out(capture(datetime(2024, 5, 2, 2, 0))).ok

    assert world.daily.get(USER, datetime(2024, 5, 1).date()).total_hours == 4.0
    assert world.daily.get(USER, datetime(2024, 5, 2).date()) is None


def test_accuracy_wider_than_radius_is_a_location_violation():
    world = World(
        shifts=FakeShiftRepo(day_shift(policy_rules={"entry_requirements": {"geofence": True}})),
    )
    world.locations.locations.append(
        WorkLocation(location_id=1, org_id=1, location_name="HQ", latitude=12.9716, longitude=77.5946, radius_m=100)
    )

    out = world.attendance_service.time_in(
        capture(datetime(2024, 5, 1, 9, 0), latitude=12.9716, longitude=77.5946, accuracy=250)
    )

    assert not out.ok
    assert out.error == SessionError.POLICY_VIOLATION
    assert out.violation == "location"
    assert world.attendance.rows == {}


def test_missing_photo_is_an_evidence_violation_at_exit():
    world = World(shifts=FakeShiftRepo(day_shift(policy_rules={"exit_requirements": {"selfie": True}})))
    service = world.attendance_service
    assert service.time_in(capture(datetime(2024, 5, 1, 9, 0))).ok

    out = service.time_out(capture(datetime(2024, 5, 1, 17, 0)))

    assert out.error == SessionError.POLICY_VIOLATION
    assert out.violation == "evidence"
    assert world.open_count(USER) == 1


def test_evidence_is_attached_in_a_second_write(world):
    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 0), evidence=b"jpeg-bytes"))

    row = world.attendance.rows[out.session_id]
    assert out.evidence_ref == f"attendance_images/{out.session_id}_in.jpg"
    assert row.capture_in.evidence_ref == out.evidence_ref
    assert row.metadata["time_in"]["evidence"] == "attached"


def test_failed_upload_keeps_session_and_reports_degraded():
    world = World(shifts=FakeShiftRepo(day_shift()))
    world.evidence.fail = True

    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 0), evidence=b"jpeg-bytes"))

    assert out.ok
    assert "evidence" in out.degraded
    row = world.attendance.rows[out.session_id]
    assert row.capture_in.evidence_ref is None
    assert row.metadata["time_in"]["evidence"] == "failed"


def _oversized_png() -> bytes:
    buf = io.BytesIO()
    Image.new("1", (200, 200)).save(buf, format="PNG")
    return buf.getvalue()


def test_oversized_photo_never_fails_a_committed_time_in(tmp_path, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    world = World(shifts=FakeShiftRepo(day_shift()), evidence=LocalEvidenceStore(tmp_path))

    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 0), evidence=_oversized_png()))

    assert out.ok
    assert "evidence" in out.degraded
    assert world.open_count(USER) == 1
    assert world.attendance.rows[out.session_id].metadata["time_in"]["evidence"] == "failed"
    assert [n.title for n in world.events.notifications] == ["Timed In"]


def test_oversized_photo_still_closes_the_session(tmp_path, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    world = World(shifts=FakeShiftRepo(day_shift()), evidence=LocalEvidenceStore(tmp_path))
    service = world.attendance_service
    session_id = service.time_in(capture(datetime(2024, 5, 1, 9, 0))).session_id

    out = service.time_out(capture(datetime(2024, 5, 1, 17, 0), evidence=_oversized_png()))

    assert out.ok
    assert "evidence" in out.degraded
    assert world.open_count(USER) == 0
    row = world.attendance.rows[session_id]
    assert row.capture_out.evidence_ref is None
    assert row.metadata["time_out"]["evidence"] == "failed"


def test_unexpected_store_error_is_reported_as_degraded(world, monkeypatch):
    def broken_upload(content, key):
        raise RuntimeError("disk controller reset")

    monkeypatch.setattr(world.evidence, "upload", broken_upload)

    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 0), evidence=b"jpeg-bytes"))

    assert out.ok
    assert "evidence" in out.degraded
    assert world.open_count(USER) == 1


def test_exit_photo_is_attached_after_the_close(world):
    service = world.attendance_service
    session_id = service.time_in(capture(datetime(2024, 5, 1, 9, 0))).session_id

    out = service.time_out(capture(datetime(2024, 5, 1, 17, 0), evidence=b"jpeg-bytes"))

    row = world.attendance.rows[session_id]
    assert out.evidence_ref == f"attendance_images/{session_id}_out.jpg"
    assert row.time_out == datetime(2024, 5, 1, 17, 0)
    assert row.capture_out.evidence_ref == out.evidence_ref
    assert row.metadata["time_out"]["evidence"] == "attached"


def test_exit_photo_is_not_stored_when_close_loses_the_race(world, monkeypatch):
    service = world.attendance_service
    service.time_in(capture(datetime(2024, 5, 1, 9, 0)))
    monkeypatch.setattr(world.attendance, "close_session", lambda *args, **kwargs: False)

    out = service.time_out(capture(datetime(2024, 5, 1, 17, 0), evidence=b"jpeg-bytes"))

    assert out.error == SessionError.NO_OPEN_SESSION
    assert world.evidence.uploads == {}


def test_daily_sync_failure_does_not_undo_time_in(world, monkeypatch):
    def broken_update(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(world.daily, "update", broken_update)

    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 0)))

    assert out.ok
    assert "daily_sync" in out.degraded
    assert world.open_count(USER) == 1


def test_event_failures_are_reported_not_raised(world):
    world.events.fail = True
    out = world.attendance_service.time_in(capture(datetime(2024, 5, 1, 9, 0)))
    assert out.ok
    assert "events" in out.degraded


def test_events_emitted_for_time_in_and_out(world):
    service = world.attendance_service
    service.time_in(capture(datetime(2024, 5, 1, 9, 0)))
    service.time_out(capture(datetime(2024, 5, 1, 17, 0)))

    assert [e.event_type for e in world.events.activity] == ["CHECK_IN", "CHECK_OUT"]
    assert len(world.events.notifications) == 2


def test_local_time_resolved_from_coordinates(world):
    # 03:55 UTC is 09:25 in Asia/Kolkata
    request = CaptureRequest(user_id=USER, org_id=1, latitude=12.97, longitude=77.59, late_reason="Rain")
    out = world.attendance_service.time_in(request, now=datetime(2024, 5, 1, 3, 55, tzinfo=timezone.utc))

    assert out.local_time == datetime(2024, 5, 1, 9, 25)
    assert out.timezone == "Asia/Kolkata"
    assert out.address == "MG Road, Bengaluru"
    assert out.minutes_late == 15


def test_geocoding_failure_falls_back_to_utc():
    world = World(shifts=FakeShiftRepo(day_shift()), resolver=StaticResolver(fail=True))
    request = CaptureRequest(user_id=USER, org_id=1, latitude=12.97, longitude=77.59)

    out = world.attendance_service.time_in(request, now=datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc))

    assert out.ok
    assert out.timezone == "UTC"
    assert out.address == "Unknown Location"
    assert out.local_time == datetime(2024, 5, 1, 8, 0)
    assert "geocode" in out.degraded


def test_at_most_one_open_session_over_many_calls(world):
    service = world.attendance_service
    start = datetime(2024, 5, 1, 8, 0)
    for minutes in range(0, 600, 45):
        at = start.replace(hour=8 + minutes // 60, minute=minutes % 60)
        service.time_in(capture(at))
        assert world.open_count(USER) <= 1
        if minutes % 90 == 0:
            service.time_out(capture(at.replace(minute=min(at.minute + 30, 59))))
        assert world.open_count(USER) <= 1


def test_concurrent_time_ins_open_a_single_session(world, monkeypatch):
    service = world.attendance_service
    create = world.attendance.create_session

    def slow_create(**kwargs):
        time.sleep(0.02)
        return create(**kwargs)

    monkeypatch.setattr(world.attendance, "create_session", slow_create)
    barrier = threading.Barrier(6)
    outcomes = []

    def worker():
        barrier.wait()
        outcomes.append(service.time_in(capture(datetime(2024, 5, 1, 9, 0))))

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for o in outcomes if o.ok) == 1
    assert {o.error for o in outcomes if not o.ok} == {SessionError.ALREADY_OPEN}
    assert world.open_count(USER) == 1


def test_list_sessions_caps_limit(world):
    for day in range(1, 4):
        world.add_closed(USER, datetime(2024, 5, day, 9, 0), 8)

    rows = world.attendance_service.list_sessions(org_id=1, user_id=USER, limit="500")
    assert len(rows) == 3
    assert rows[0].time_in.day == 3


def test_today_status_reports_open_session_and_daily(world):
    service = world.attendance_service
    service.time_in(capture(datetime(2024, 5, 1, 9, 0)))

    status = service.today_status(USER, local_now=datetime(2024, 5, 1, 11, 0))

    assert status["has_open_session"] is True
    assert status["daily"]["first_in"] == "09:00:00"
