from __future__ import annotations

from dataclasses import replace

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date, parse_local_datetime
from ..common.http import client_ip, current_actor, elevated_required, login_required, request_source
from ..common.validators import optional_float, optional_int
from ..container import Container
from ..core.enums import EventSource, SessionError
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import CaptureRequest, SessionOutcome

_ERROR_STATUS = {
    SessionError.ALREADY_OPEN: 409,
    SessionError.NO_OPEN_SESSION: 409,
    SessionError.POLICY_VIOLATION: 400,
    SessionError.LATE_REASON_REQUIRED: 400,
}


def _outcome_response(outcome: SessionOutcome, success_status: int = 200):
    if outcome.ok:
        return jsonify(outcome.to_dict()), success_status
    return jsonify(outcome.to_dict()), _ERROR_STATUS.get(outcome.error, 400)


def _form_data() -> dict:
    if request.form:
        return request.form.to_dict()
    return request.get_json(silent=True) or {}


def _capture_from_request(data: dict, *, user_id: int, org_id: int, source: EventSource) -> CaptureRequest:
    image = request.files.get("image")
    evidence = image.read() if image else None
    return CaptureRequest(
        user_id=user_id,
        org_id=org_id,
        latitude=optional_float(data.get("latitude"), "latitude"),
        longitude=optional_float(data.get("longitude"), "longitude"),
        accuracy=optional_float(data.get("accuracy"), "accuracy"),
        evidence=evidence or None,
        late_reason=data.get("late_reason"),
        ip_address=client_ip(),
        user_agent=request.headers.get("User-Agent"),
        source=source,
    )


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    @app.route("/attendance/timein", methods=["POST"], endpoint="attendance_timein")
    @login_required
    def timein():
        actor = current_actor()
        capture = _capture_from_request(_form_data(), user_id=actor.user_id, org_id=actor.org_id, source=request_source())
        return _outcome_response(service.time_in(capture), 201)

    @app.route("/attendance/timeout", methods=["POST"], endpoint="attendance_timeout")
    @login_required
    def timeout():
        actor = current_actor()
        capture = _capture_from_request(_form_data(), user_id=actor.user_id, org_id=actor.org_id, source=request_source())
        return _outcome_response(service.time_out(capture))

    def _simulated_capture() -> CaptureRequest:
        actor = current_actor()
        data = _form_data()
        target = optional_int(data.get("user_id"), "user_id") or actor.user_id
        if target != actor.user_id and not actor.is_elevated:
            raise AuthorizationError("Only admin or HR can simulate for another user")
        local_time = data.get("local_time")
        if not local_time:
            raise ValidationError("local_time is required")
        base = _capture_from_request(data, user_id=target, org_id=actor.org_id, source=EventSource.SIMULATION)
        return replace(
            base,
            local_time=parse_local_datetime(local_time),
            address=data.get("address"),
            timezone=data.get("timezone"),
        )

    if app.config.get("ALLOW_SIMULATION"):

        @app.route("/attendance/simulate/timein", methods=["POST"], endpoint="attendance_simulate_timein")
        @login_required
        def simulate_timein():
            return _outcome_response(service.time_in(_simulated_capture()), 201)

        @app.route("/attendance/simulate/timeout", methods=["POST"], endpoint="attendance_simulate_timeout")
        @login_required
        def simulate_timeout():
            return _outcome_response(service.time_out(_simulated_capture()))

    def _date_arg(name: str):
        value = request.args.get(name)
        return parse_iso_date(value) if value else None

    @app.route("/attendance/records", methods=["GET"], endpoint="attendance_records")
    @login_required
    def records():
        actor = current_actor()
        rows = service.list_sessions(
            org_id=actor.org_id,
            user_id=actor.user_id,
            date_from=_date_arg("date_from"),
            date_to=_date_arg("date_to"),
            limit=request.args.get("limit"),
        )
        return jsonify({"ok": True, "records": [r.to_dict() for r in rows]})

    @app.route("/attendance/records/admin", methods=["GET"], endpoint="attendance_records_admin")
    @elevated_required
    def records_admin():
        actor = current_actor()
        user_id = request.args.get("user_id", type=int)
        rows = service.list_sessions(
            org_id=actor.org_id,
            user_id=user_id,
            date_from=_date_arg("date_from"),
            date_to=_date_arg("date_to"),
            limit=request.args.get("limit"),
        )
        return jsonify({"ok": True, "records": [r.to_dict() for r in rows]})

    @app.route("/attendance/status", methods=["GET"], endpoint="attendance_status")
    @login_required
    def status():
        actor = current_actor()
        return jsonify({"ok": True, **service.today_status(actor.user_id)})

    @app.route("/attendance/daily", methods=["GET"], endpoint="attendance_daily")
    @login_required
    def daily():
        actor = current_actor()
        work_date = _date_arg("date")
        if work_date is None:
            raise ValidationError("date is required")
        user_id = request.args.get("user_id", type=int) or actor.user_id
        if user_id != actor.user_id and not actor.is_elevated:
            raise AuthorizationError("Access denied")
        aggregate = container.daily_aggregator.get(user_id, work_date)
        if aggregate is None or aggregate.org_id != actor.org_id:
            raise NotFoundError("No attendance for that day")
        return jsonify({"ok": True, "daily": aggregate.to_dict()})
