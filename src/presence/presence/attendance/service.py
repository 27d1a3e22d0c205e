from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from ..common.datetime_utils import hours_between, now_utc, wall_clock
from ..common.validators import clamp_limit
from ..core.constants import (
    DEFAULT_RECORDS_LIMIT,
    FALLBACK_TIMEZONE,
    MAX_RECORDS_LIMIT,
    OPEN_SESSION_LOOKBACK_HOURS,
    UNKNOWN_LOCATION,
)
from ..core.enums import DayStatus, SessionError, SessionStatus
from ..daily.service import DailyAggregator
from ..database.locks import UserLocks
from ..integrations.events import ActivityLogEvent, EventSink, NotificationEvent
from ..integrations.geo import LocalContextResolver
from ..integrations.storage import EvidenceStore, EvidenceUploadError
from ..locations.repository import WorkLocationRepository
from ..policies.evaluator import (
    calculate_late_arrival,
    calculate_overtime,
    check_biometric_compliance,
    check_location_compliance,
    get_rules_from_shift,
)
from ..policies.model import CheckResult, LateArrival, Requirements, ShiftRules
from ..shifts.repository import ShiftRepository
from .context import CaptureContext, resolve_capture_context
from .model import AttendanceSession, CapturePoint, CaptureRequest, SessionContext, SessionOutcome
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

DAILY_SYNC = "daily_sync"
EVIDENCE = "evidence"
EVENTS = "events"


class AttendanceService:
    """Open/close lifecycle of attendance sessions.

    Expected rejections (already open, nothing to close, policy violations,
    missing late reason) come back as a failed SessionOutcome and leave no
    row behind. Steps after the session is committed are best-effort and
    are listed in ``SessionOutcome.degraded`` when they fail.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        shifts: ShiftRepository,
        locations: WorkLocationRepository,
        aggregator: DailyAggregator,
        *,
        locks: UserLocks,
        resolver: LocalContextResolver,
        evidence_store: EvidenceStore,
        events: EventSink,
        lookback_hours: int = OPEN_SESSION_LOOKBACK_HOURS,
    ):
        self._attendance = attendance
        self._shifts = shifts
        self._locations = locations
        self._aggregator = aggregator
        self._locks = locks
        self._resolver = resolver
        self._evidence = evidence_store
        self._events = events
        self._lookback = timedelta(hours=int(lookback_hours))

    # -- helpers -------------------------------------------------------------

    def _capture_context(self, request: CaptureRequest, utc_now: datetime) -> CaptureContext:
        if request.local_time is not None:
            return CaptureContext(
                local_time=request.local_time.replace(tzinfo=None),
                address=request.address or UNKNOWN_LOCATION,
                timezone=request.timezone or FALLBACK_TIMEZONE,
            )
        return resolve_capture_context(self._resolver, request.latitude, request.longitude, utc_now)

    def _rules_for(self, user_id: int) -> ShiftRules:
        return get_rules_from_shift(self._shifts.get_for_user(user_id))

    def _check_requirements(self, request: CaptureRequest, requirements: Requirements) -> CheckResult:
        locations: Sequence = ()
        if requirements.geofence:
            locations = self._locations.list_for_user(user_id=request.user_id, org_id=request.org_id)
        result = check_location_compliance(
            locations, request.latitude, request.longitude, request.accuracy, requirements
        )
        if not result.ok:
            return result
        return check_biometric_compliance(request.evidence, requirements)

    @staticmethod
    def _leg_metadata(request: CaptureRequest, ctx: CaptureContext, utc_now: datetime) -> Dict[str, Any]:
        return {
            "accuracy": round(request.accuracy) if request.accuracy is not None else None,
            "ip_address": request.ip_address,
            "user_agent": request.user_agent,
            "timestamp_utc": utc_now.isoformat(),
            "timezone": ctx.timezone,
            "event_source": request.source.value,
            "evidence": "pending" if request.evidence else "none",
        }

    @staticmethod
    def _closed_hours(sessions: Sequence[AttendanceSession], *, exclude: Optional[int] = None) -> float:
        return sum(s.duration_hours for s in sessions if not s.is_open and s.session_id != exclude)

    def _upload(self, content: bytes, key: str) -> Optional[str]:
        try:
            return self._evidence.upload(content, key)
        except EvidenceUploadError:
            logger.warning("Evidence upload failed for %s", key, exc_info=True)
        except Exception:
            logger.error("Evidence store error for %s", key, exc_info=True)
        return None

    def _attach_evidence(self, session_id: int, leg: str, content: bytes, metadata: Dict[str, Any]) -> Optional[str]:
        """Second phase of the evidence write: upload, then record the outcome on the row."""
        leg_key = "time_in" if leg == "in" else "time_out"
        evidence_ref = self._upload(content, f"{session_id}_{leg}")
        metadata[leg_key]["evidence"] = "attached" if evidence_ref else "failed"
        try:
            self._attendance.attach_evidence(session_id, leg=leg, evidence_ref=evidence_ref, metadata=metadata)
        except Exception:
            logger.error("Could not record evidence state for session %s", session_id, exc_info=True)
            return None
        return evidence_ref

    def _sync_day(self, user_id: int, work_date: date, overrides: Optional[dict] = None) -> bool:
        try:
            self._aggregator.sync(user_id, work_date, overrides)
            return True
        except Exception:
            logger.error("Daily sync failed user=%s date=%s", user_id, work_date, exc_info=True)
            return False

    def _emit(self, notification: NotificationEvent, activity: ActivityLogEvent) -> bool:
        ok = True
        try:
            self._events.emit_notification(notification)
        except Exception:
            logger.warning("Notification emit failed", exc_info=True)
            ok = False
        try:
            self._events.emit_activity_log(activity)
        except Exception:
            logger.warning("Activity log emit failed", exc_info=True)
            ok = False
        return ok

    # -- operations ----------------------------------------------------------

    def time_in(self, request: CaptureRequest, *, now: datetime | None = None) -> SessionOutcome:
        utc_now = now or now_utc()
        ctx = self._capture_context(request, utc_now)
        degraded: List[str] = list(ctx.degraded)
        local_time = ctx.local_time
        work_date = local_time.date()

        with self._locks.hold(request.user_id):
            if self._attendance.find_open_session(request.user_id, local_time - self._lookback):
                return SessionOutcome.rejected(
                    SessionError.ALREADY_OPEN, "You already have an open session. Please time out first."
                )

            sessions = self._attendance.list_for_user_and_date(request.user_id, work_date)
            session_ctx = SessionContext(
                session_number=len(sessions) + 1,
                is_first_session=not sessions,
                total_hours_today=round(self._closed_hours(sessions), 2),
            )

            rules = self._rules_for(request.user_id)
            check = self._check_requirements(request, rules.entry_requirements)
            if not check.ok:
                return SessionOutcome.rejected(
                    SessionError.POLICY_VIOLATION, f"Policy Violation: {check.error}", violation=check.kind
                )

            late = calculate_late_arrival(local_time, rules) if session_ctx.is_first_session else LateArrival()
            late_reason = (request.late_reason or "").strip() or None
            if late.is_late and not late_reason:
                return SessionOutcome.rejected(
                    SessionError.LATE_REASON_REQUIRED,
                    f"You are {late.minutes_late} minutes late. A late reason is required to time in.",
                )

            metadata = {
                "time_in": self._leg_metadata(request, ctx, utc_now),
                "session_context": session_ctx.to_dict(),
            }
            session_id = self._attendance.create_session(
                user_id=request.user_id,
                org_id=request.org_id,
                time_in=local_time,
                capture=CapturePoint(
                    latitude=request.latitude,
                    longitude=request.longitude,
                    accuracy=request.accuracy,
                    address=ctx.address,
                ),
                late_minutes=late.minutes_late,
                late_reason=late_reason if session_ctx.is_first_session else None,
                metadata=metadata,
            )
            logger.info(
                "Time-in user=%s session=%s number=%s late=%s",
                request.user_id, session_id, session_ctx.session_number, late.minutes_late,
            )

            if not self._sync_day(request.user_id, work_date):
                degraded.append(DAILY_SYNC)

            evidence_ref = None
            if request.evidence:
                evidence_ref = self._attach_evidence(session_id, "in", request.evidence, metadata)
                if evidence_ref is None:
                    degraded.append(EVIDENCE)

        emitted = self._emit(
            NotificationEvent(
                org_id=request.org_id,
                user_id=request.user_id,
                title="Timed In",
                message=f"Timed in at {wall_clock(local_time)} ({ctx.address})",
                related_entity_id=session_id,
            ),
            ActivityLogEvent(
                user_id=request.user_id,
                org_id=request.org_id,
                event_type="CHECK_IN",
                event_source=request.source.value,
                object_type="ATTENDANCE",
                object_id=session_id,
                description=f"User timed in at {ctx.address}",
                location=f"{request.latitude},{request.longitude}" if request.latitude is not None else None,
                request_ip=request.ip_address,
                user_agent=request.user_agent,
            ),
        )
        if not emitted:
            degraded.append(EVENTS)

        return SessionOutcome(
            ok=True,
            message="Timed in successfully",
            session_id=session_id,
            local_time=local_time,
            address=ctx.address,
            timezone=ctx.timezone,
            session_number=session_ctx.session_number,
            is_first_session=session_ctx.is_first_session,
            minutes_late=late.minutes_late,
            status=SessionStatus.OPEN.value,
            evidence_ref=evidence_ref,
            degraded=tuple(degraded),
        )

    def time_out(self, request: CaptureRequest, *, now: datetime | None = None) -> SessionOutcome:
        utc_now = now or now_utc()
        ctx = self._capture_context(request, utc_now)
        degraded: List[str] = list(ctx.degraded)
        local_time = ctx.local_time

        with self._locks.hold(request.user_id):
            open_session = self._attendance.find_open_session(request.user_id, local_time - self._lookback)
            if open_session is None:
                return SessionOutcome.rejected(SessionError.NO_OPEN_SESSION, "No open session found. Please time in first.")

            rules = self._rules_for(request.user_id)
            check = self._check_requirements(request, rules.exit_requirements)
            if not check.ok:
                return SessionOutcome.rejected(
                    SessionError.POLICY_VIOLATION, f"Policy Violation: {check.error}", violation=check.kind
                )

            session_hours = round(max(0.0, hours_between(open_session.time_in, local_time)), 2)
            overtime = calculate_overtime(session_hours, rules)

            # The session belongs to the day it started on.
            work_date = open_session.work_date
            day_sessions = self._attendance.list_for_user_and_date(request.user_id, work_date)
            position = next(
                (i for i, s in enumerate(day_sessions) if s.session_id == open_session.session_id),
                len(day_sessions),
            )
            session_ctx = SessionContext(
                session_number=position + 1,
                is_first_session=position == 0,
                total_hours_today=round(
                    self._closed_hours(day_sessions, exclude=open_session.session_id) + session_hours, 2
                ),
            )
            first_late = bool(day_sessions) and day_sessions[0].late_minutes > 0
            day_status = DayStatus.LATE if first_late else DayStatus.PRESENT

            leg = self._leg_metadata(request, ctx, utc_now)
            leg["total_hours"] = session_hours
            metadata = dict(open_session.metadata)
            metadata["time_out"] = leg
            metadata["session_context_at_checkout"] = session_ctx.to_dict()

            closed = self._attendance.close_session(
                open_session.session_id,
                time_out=local_time,
                capture=CapturePoint(
                    latitude=request.latitude,
                    longitude=request.longitude,
                    accuracy=request.accuracy,
                    address=ctx.address,
                ),
                overtime_hours=overtime,
                status=SessionStatus.LATE if open_session.late_minutes > 0 else SessionStatus.PRESENT,
                metadata=metadata,
            )
            if not closed:
                return SessionOutcome.rejected(SessionError.NO_OPEN_SESSION, "Session was already closed.")
            logger.info(
                "Time-out user=%s session=%s hours=%.2f day_status=%s",
                request.user_id, open_session.session_id, session_hours, day_status.value,
            )

            if not self._sync_day(request.user_id, work_date, {"status": day_status}):
                degraded.append(DAILY_SYNC)

            evidence_ref = None
            if request.evidence:
                evidence_ref = self._attach_evidence(open_session.session_id, "out", request.evidence, metadata)
                if evidence_ref is None:
                    degraded.append(EVIDENCE)

        emitted = self._emit(
            NotificationEvent(
                org_id=request.org_id,
                user_id=request.user_id,
                title="Timed Out",
                message=f"Timed out at {wall_clock(local_time)} after {session_hours:.2f} hours",
                related_entity_id=open_session.session_id,
            ),
            ActivityLogEvent(
                user_id=request.user_id,
                org_id=request.org_id,
                event_type="CHECK_OUT",
                event_source=request.source.value,
                object_type="ATTENDANCE",
                object_id=open_session.session_id,
                description=f"User timed out at {ctx.address} (Status: {day_status.value})",
                location=f"{request.latitude},{request.longitude}" if request.latitude is not None else None,
                request_ip=request.ip_address,
                user_agent=request.user_agent,
            ),
        )
        if not emitted:
            degraded.append(EVENTS)

        return SessionOutcome(
            ok=True,
            message="Timed out successfully",
            session_id=open_session.session_id,
            local_time=local_time,
            address=ctx.address,
            timezone=ctx.timezone,
            status=day_status.value,
            session_hours=session_hours,
            total_hours_today=session_ctx.total_hours_today,
            evidence_ref=evidence_ref,
            degraded=tuple(degraded),
        )

    def list_sessions(
        self,
        *,
        org_id: int,
        user_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Any = DEFAULT_RECORDS_LIMIT,
    ) -> Sequence[AttendanceSession]:
        return self._attendance.list_sessions(
            org_id=org_id,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            limit=clamp_limit(limit, default=DEFAULT_RECORDS_LIMIT, maximum=MAX_RECORDS_LIMIT),
        )

    def today_status(self, user_id: int, *, local_now: datetime | None = None) -> dict:
        """Open session (if any) and the aggregate of the day it belongs to."""
        local_now = local_now or datetime.now()
        open_session = self._attendance.find_open_session(user_id, local_now - self._lookback)
        work_date = open_session.work_date if open_session else local_now.date()
        daily = self._aggregator.get(user_id, work_date)
        return {
            "date": work_date.isoformat(),
            "has_open_session": open_session is not None,
            "open_session": open_session.to_dict() if open_session else None,
            "daily": daily.to_dict() if daily else None,
        }
