from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping, Optional, Tuple

from ..core.enums import CorrectionMethod, RequestStatus


@dataclass(frozen=True)
class AuditEntry:
    action: str
    actor: int
    at: datetime
    comment: Optional[str] = None

    def to_dict(self) -> dict:
        return {"action": self.action, "by": self.actor, "at": self.at.isoformat(), "comments": self.comment}

    @classmethod
    def from_mapping(cls, value: Mapping[str, Any]) -> "AuditEntry":
        at = value.get("at")
        if isinstance(at, str):
            at = datetime.fromisoformat(at.replace("Z", "+00:00")).replace(tzinfo=None)
        return cls(
            action=str(value.get("action")),
            actor=int(value.get("by") or 0),
            at=at,
            comment=value.get("comments"),
        )


@dataclass(frozen=True)
class SessionPair:
    """Requested session, kept as submitted; parsed when the request is applied."""

    time_in: str
    time_out: str

    def to_dict(self) -> dict:
        return {"time_in": self.time_in, "time_out": self.time_out}


@dataclass(frozen=True)
class CorrectionRequest:
    request_id: int
    user_id: int
    org_id: int
    correction_type: str
    request_date: date
    reason: str
    correction_method: CorrectionMethod
    status: RequestStatus
    requested_time_in: Optional[time] = None
    requested_time_out: Optional[time] = None
    requested_sessions: Tuple[SessionPair, ...] = ()
    audit_trail: Tuple[AuditEntry, ...] = ()
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_comments: Optional[str] = None
    requester_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "acr_id": self.request_id,
            "user_id": self.user_id,
            "user_name": self.requester_name,
            "org_id": self.org_id,
            "correction_type": self.correction_type,
            "request_date": self.request_date.isoformat(),
            "reason": self.reason,
            "correction_method": self.correction_method.value,
            "requested_time_in": self.requested_time_in.strftime("%H:%M:%S") if self.requested_time_in else None,
            "requested_time_out": self.requested_time_out.strftime("%H:%M:%S") if self.requested_time_out else None,
            "requested_sessions": [s.to_dict() for s in self.requested_sessions],
            "status": self.status.value,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_comments": self.review_comments,
            "audit_trail": [e.to_dict() for e in self.audit_trail],
        }
