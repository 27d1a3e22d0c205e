from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role used for access checks."""

    ADMIN = "admin"
    HR = "hr"
    STAFF = "staff"


ELEVATED_ROLES = frozenset({Role.ADMIN, Role.HR})


class SessionStatus(str, Enum):
    """Status stored on an attendance session row."""

    OPEN = "OPEN"
    PRESENT = "PRESENT"
    LATE = "LATE"


class DayStatus(str, Enum):
    """Status of the per-user-per-day aggregate."""

    PRESENT = "PRESENT"
    LATE = "LATE"


class SessionError(str, Enum):
    """Expected, user-correctable outcomes of time-in / time-out."""

    ALREADY_OPEN = "ALREADY_OPEN"
    NO_OPEN_SESSION = "NO_OPEN_SESSION"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    LATE_REASON_REQUIRED = "LATE_REASON_REQUIRED"


class CorrectionMethod(str, Enum):
    FIX = "fix"
    ADD_SESSION = "add_session"
    RESET = "reset"


class RequestStatus(str, Enum):
    """Review state of a correction request. Terminal once not PENDING."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EventSource(str, Enum):
    WEB = "WEB"
    MOBILE = "MOBILE"
    SIMULATION = "SIMULATION"
    CORRECTION = "CORRECTION"
