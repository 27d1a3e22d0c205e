from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable, ContextManager, Mapping, Optional, Sequence, Tuple

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import parse_iso_date, parse_time_of_day
from ..common.validators import clamp_limit, require_non_empty
from ..core.actor import Actor
from ..core.constants import DEFAULT_PAGE_SIZE, MANUAL_ADDITION_ADDRESS, MANUAL_RESET_ADDRESS, MAX_RECORDS_LIMIT
from ..core.enums import CorrectionMethod, DayStatus, EventSource, RequestStatus
from ..core.exceptions import (
    AuthorizationError,
    CorrectionProcessingError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from ..daily.service import DailyAggregator
from ..database.locks import UserLocks
from ..integrations.events import ActivityLogEvent, EventSink, NotificationEvent
from .model import AuditEntry, CorrectionRequest, SessionPair
from .repository import CorrectionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Plan:
    """Parsed, validated form of an approved request, built before any write."""

    method: CorrectionMethod
    work_date: date
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    sessions: Tuple[Tuple[datetime, datetime], ...] = ()


def _parse_pair(work_date: date, time_in: Any, time_out: Any) -> Tuple[datetime, datetime]:
    try:
        t_in = parse_time_of_day(time_in)
        t_out = parse_time_of_day(time_out)
    except ValidationError as exc:
        raise CorrectionProcessingError(str(exc)) from exc
    if t_in is None or t_out is None:
        raise CorrectionProcessingError("Both time in and time out are required")
    start = datetime.combine(work_date, t_in)
    end = datetime.combine(work_date, t_out)
    if end <= start:
        raise CorrectionProcessingError(f"Time out {t_out} must be after time in {t_in}")
    return start, end


class CorrectionService:
    def __init__(
        self,
        requests: CorrectionRepository,
        attendance: AttendanceRepository,
        aggregator: DailyAggregator,
        *,
        locks: UserLocks,
        events: EventSink,
        transaction: Callable[[], ContextManager[Any]] = nullcontext,
    ):
        self._requests = requests
        self._attendance = attendance
        self._aggregator = aggregator
        self._locks = locks
        self._events = events
        self._transaction = transaction

    def submit(self, actor: Actor, payload: Mapping[str, Any], *, now: datetime | None = None) -> int:
        correction_type = require_non_empty(payload.get("correction_type"), "correction_type")
        request_date = parse_iso_date(require_non_empty(payload.get("request_date"), "request_date"))
        reason = require_non_empty(payload.get("reason"), "reason")

        try:
            method = CorrectionMethod(payload.get("correction_method"))
        except ValueError:
            method = CorrectionMethod.FIX

        sessions: Tuple[SessionPair, ...] = ()
        raw_sessions = payload.get("sessions")
        if method == CorrectionMethod.ADD_SESSION and isinstance(raw_sessions, list):
            sessions = tuple(
                SessionPair(time_in=str(s.get("time_in") or ""), time_out=str(s.get("time_out") or ""))
                for s in raw_sessions
                if isinstance(s, Mapping)
            )

        submitted = AuditEntry(action="submitted", actor=actor.user_id, at=now or datetime.now())
        request_id = self._requests.create(
            user_id=actor.user_id,
            org_id=actor.org_id,
            correction_type=correction_type,
            request_date=request_date,
            reason=reason,
            method=method,
            requested_time_in=parse_time_of_day(payload.get("requested_time_in")),
            requested_time_out=parse_time_of_day(payload.get("requested_time_out")),
            requested_sessions=sessions,
            audit_trail=(submitted,),
        )
        logger.info("Correction request %s submitted by user=%s (%s)", request_id, actor.user_id, method.value)
        return request_id

    @staticmethod
    def _plan(req: CorrectionRequest) -> _Plan:
        work_date = req.request_date
        if req.correction_method == CorrectionMethod.FIX:
            return _Plan(req.correction_method, work_date, req.requested_time_in, req.requested_time_out)

        if req.correction_method == CorrectionMethod.ADD_SESSION:
            if not req.requested_sessions:
                raise CorrectionProcessingError("No sessions to add")
            pairs = tuple(_parse_pair(work_date, s.time_in, s.time_out) for s in req.requested_sessions)
            return _Plan(req.correction_method, work_date, sessions=pairs)

        pair = _parse_pair(work_date, req.requested_time_in, req.requested_time_out)
        return _Plan(req.correction_method, work_date, sessions=(pair,))

    def _apply(self, req: CorrectionRequest, plan: _Plan, reviewer: Actor) -> None:
        base = {"status": DayStatus.PRESENT, "is_manual_adjustment": True, "adjusted_by": reviewer.user_id}

        if plan.method == CorrectionMethod.FIX:
            self._aggregator.apply_manual_adjustment(
                user_id=req.user_id,
                org_id=req.org_id,
                work_date=plan.work_date,
                first_in=plan.time_in,
                last_out=plan.time_out,
                adjusted_by=reviewer.user_id,
                reason=f"Correction Request #{req.request_id} Approved",
            )
            return

        if plan.method == CorrectionMethod.RESET:
            deleted = self._attendance.delete_for_user_and_date(req.user_id, plan.work_date)
            logger.info("Reset removed %s sessions user=%s date=%s", deleted, req.user_id, plan.work_date)
            address = MANUAL_RESET_ADDRESS
            reason = f"Correction Request #{req.request_id} (Day Reset)"
        else:
            address = MANUAL_ADDITION_ADDRESS
            reason = f"Correction Request #{req.request_id} (Sessions Added)"

        for start, end in plan.sessions:
            self._attendance.create_closed_session(
                user_id=req.user_id,
                org_id=req.org_id,
                time_in=start,
                time_out=end,
                address=address,
                overtime_hours=0.0,
                metadata={"correction": {"request_id": req.request_id, "method": plan.method.value}},
            )
        self._aggregator.sync(req.user_id, plan.work_date, {**base, "adjustment_reason": reason})

    def review(
        self,
        actor: Actor,
        request_id: int,
        decision: str,
        comment: Optional[str] = None,
        *,
        now: datetime | None = None,
    ) -> CorrectionRequest:
        if not actor.is_elevated:
            raise AuthorizationError("Access denied")
        if decision not in (RequestStatus.APPROVED.value, RequestStatus.REJECTED.value):
            raise ValidationError("Invalid status")
        status = RequestStatus(decision)

        req = self._requests.get(request_id, org_id=actor.org_id)
        if req is None:
            raise NotFoundError("Request not found")
        if req.status != RequestStatus.PENDING:
            raise StateConflictError(f"Request already {req.status.value}")

        plan = self._plan(req) if status == RequestStatus.APPROVED else None
        comment = (comment or "").strip() or None
        reviewed_at = now or datetime.now()
        trail = req.audit_trail + (AuditEntry(action=status.value, actor=actor.user_id, at=reviewed_at, comment=comment),)

        try:
            with self._locks.hold(req.user_id), self._transaction():
                current = self._requests.get(request_id, org_id=actor.org_id)
                if current is None or current.status != RequestStatus.PENDING:
                    raise StateConflictError("Request was reviewed concurrently")
                if plan is not None:
                    self._apply(req, plan, actor)
                updated = self._requests.mark_reviewed(
                    request_id,
                    org_id=actor.org_id,
                    status=status,
                    reviewed_by=actor.user_id,
                    reviewed_at=reviewed_at,
                    review_comments=comment,
                    audit_trail=trail,
                )
                if not updated:
                    raise StateConflictError("Request was reviewed concurrently")
        except (StateConflictError, CorrectionProcessingError):
            raise
        except Exception as exc:
            logger.error("Applying correction request %s failed", request_id, exc_info=True)
            raise CorrectionProcessingError(f"Could not apply correction request #{request_id}") from exc

        logger.info("Correction request %s %s by user=%s", request_id, status.value, actor.user_id)
        self._notify(req, status, actor)
        return self._requests.get(request_id, org_id=actor.org_id)

    def _notify(self, req: CorrectionRequest, status: RequestStatus, reviewer: Actor) -> None:
        try:
            self._events.emit_notification(
                NotificationEvent(
                    org_id=req.org_id,
                    user_id=req.user_id,
                    title=f"Correction Request {status.value.capitalize()}",
                    message=f"Your correction request for {req.request_date.isoformat()} was {status.value}.",
                    type="SUCCESS" if status == RequestStatus.APPROVED else "WARNING",
                    related_entity_type="ATTENDANCE_CORRECTION",
                    related_entity_id=req.request_id,
                )
            )
            self._events.emit_activity_log(
                ActivityLogEvent(
                    user_id=reviewer.user_id,
                    org_id=reviewer.org_id,
                    event_type=f"CORRECTION_{status.value.upper()}",
                    event_source=EventSource.CORRECTION.value,
                    object_type="ATTENDANCE_CORRECTION",
                    object_id=req.request_id,
                    description=f"Correction request #{req.request_id} ({req.correction_method.value}) {status.value}",
                )
            )
        except Exception:
            logger.warning("Correction event emit failed for request %s", req.request_id, exc_info=True)

    def list_requests(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        request_date: Optional[str] = None,
        month: Optional[Any] = None,
        year: Optional[Any] = None,
        page: Any = 1,
        limit: Any = DEFAULT_PAGE_SIZE,
    ) -> Tuple[Sequence[CorrectionRequest], int]:
        try:
            status_filter = RequestStatus(status) if status else None
        except ValueError:
            raise ValidationError("Invalid status")
        try:
            month_i = int(month) if month not in (None, "") else None
            year_i = int(year) if year not in (None, "") else None
            page_i = max(1, int(page or 1))
        except (TypeError, ValueError):
            raise ValidationError("month, year and page must be integers")
        if month_i is not None and not 1 <= month_i <= 12:
            raise ValidationError("month must be between 1 and 12")

        size = clamp_limit(limit, default=DEFAULT_PAGE_SIZE, maximum=MAX_RECORDS_LIMIT)
        return self._requests.search(
            org_id=actor.org_id,
            user_id=None if actor.is_elevated else actor.user_id,
            status=status_filter,
            request_date=parse_iso_date(request_date) if request_date else None,
            month=month_i,
            year=year_i,
            offset=(page_i - 1) * size,
            limit=size,
        )

    def get_request(self, actor: Actor, request_id: int) -> CorrectionRequest:
        req = self._requests.get(request_id, org_id=actor.org_id)
        if req is None or (not actor.is_elevated and req.user_id != actor.user_id):
            raise NotFoundError("Request not found")
        return req
