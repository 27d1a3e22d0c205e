from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from ..common.datetime_utils import wall_clock
from ..core.enums import EventSource, SessionError, SessionStatus


@dataclass(frozen=True)
class CapturePoint:
    """Where and how one leg (time-in or time-out) of a session was captured."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    address: Optional[str] = None
    evidence_ref: Optional[str] = None


@dataclass(frozen=True)
class AttendanceSession:
    session_id: int
    user_id: int
    org_id: int
    time_in: datetime
    time_out: Optional[datetime] = None
    capture_in: CapturePoint = field(default_factory=CapturePoint)
    capture_out: CapturePoint = field(default_factory=CapturePoint)
    late_minutes: int = 0
    late_reason: Optional[str] = None
    overtime_hours: float = 0.0
    status: SessionStatus = SessionStatus.OPEN
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.time_out is None

    @property
    def work_date(self) -> date:
        return self.time_in.date()

    @property
    def duration_hours(self) -> float:
        if self.time_out is None:
            return 0.0
        return (self.time_out - self.time_in).total_seconds() / 3600

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "org_id": self.org_id,
            "date": self.work_date.isoformat(),
            "time_in": self.time_in.isoformat(),
            "time_out": self.time_out.isoformat() if self.time_out else None,
            "time_in_address": self.capture_in.address,
            "time_out_address": self.capture_out.address,
            "time_in_image": self.capture_in.evidence_ref,
            "time_out_image": self.capture_out.evidence_ref,
            "late_minutes": self.late_minutes,
            "late_reason": self.late_reason,
            "overtime_hours": round(self.overtime_hours, 2),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class SessionContext:
    session_number: int
    is_first_session: bool
    total_hours_today: float

    def to_dict(self) -> dict:
        return {
            "session_number": self.session_number,
            "is_first_session": self.is_first_session,
            "total_hours_today": round(self.total_hours_today, 2),
        }


@dataclass(frozen=True)
class CaptureRequest:
    """Input of a time-in or time-out.

    ``local_time``, ``address`` and ``timezone`` are normally resolved from the
    coordinates; simulation callers may pin them.
    """

    user_id: int
    org_id: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    evidence: Optional[bytes] = None
    late_reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    source: EventSource = EventSource.WEB
    local_time: Optional[datetime] = None
    address: Optional[str] = None
    timezone: Optional[str] = None


@dataclass(frozen=True)
class SessionOutcome:
    ok: bool
    error: Optional[SessionError] = None
    message: str = ""
    violation: Optional[str] = None
    session_id: Optional[int] = None
    local_time: Optional[datetime] = None
    address: Optional[str] = None
    timezone: Optional[str] = None
    session_number: Optional[int] = None
    is_first_session: Optional[bool] = None
    minutes_late: int = 0
    status: Optional[str] = None
    session_hours: Optional[float] = None
    total_hours_today: Optional[float] = None
    evidence_ref: Optional[str] = None
    degraded: Tuple[str, ...] = ()

    @classmethod
    def rejected(cls, error: SessionError, message: str, *, violation: Optional[str] = None) -> "SessionOutcome":
        return cls(ok=False, error=error, message=message, violation=violation)

    def to_dict(self) -> dict:
        if not self.ok:
            body = {"ok": False, "error": self.error.value if self.error else None, "message": self.message}
            if self.violation:
                body["violation"] = self.violation
            return body
        body = {
            "ok": True,
            "message": self.message,
            "attendance_id": self.session_id,
            "local_time": self.local_time.isoformat() if self.local_time else None,
            "local_clock": wall_clock(self.local_time),
            "address": self.address,
            "timezone": self.timezone,
            "status": self.status,
            "evidence": self.evidence_ref,
            "degraded": list(self.degraded),
        }
        if self.session_number is not None:
            body["session_number"] = self.session_number
            body["is_first_session"] = self.is_first_session
            body["minutes_late"] = self.minutes_late
        if self.session_hours is not None:
            body["session_hours"] = self.session_hours
            body["total_hours_today"] = self.total_hours_today
        return body
