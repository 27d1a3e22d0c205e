from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Protocol, Sequence

from ..core.enums import SessionStatus
from .model import AttendanceSession, CapturePoint


class AttendanceRepository(Protocol):
    def find_open_session(self, user_id: int, since: datetime) -> Optional[AttendanceSession]:
        """Most recent session without a time-out whose time-in is at or after ``since``."""

        raise NotImplementedError

    def list_for_user_and_date(self, user_id: int, work_date: date) -> Sequence[AttendanceSession]:
        """Sessions whose time-in falls on ``work_date``, ordered by time-in."""

        raise NotImplementedError

    def create_session(
        self,
        *,
        user_id: int,
        org_id: int,
        time_in: datetime,
        capture: CapturePoint,
        late_minutes: int,
        late_reason: Optional[str],
        metadata: Dict[str, Any],
    ) -> int:
        raise NotImplementedError

    def attach_evidence(self, session_id: int, *, leg: str, evidence_ref: Optional[str], metadata: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def close_session(
        self,
        session_id: int,
        *,
        time_out: datetime,
        capture: CapturePoint,
        overtime_hours: float,
        status: SessionStatus,
        metadata: Dict[str, Any],
    ) -> bool:
        """Close only if still open; returns False when another writer closed it first."""

        raise NotImplementedError

    def create_closed_session(
        self,
        *,
        user_id: int,
        org_id: int,
        time_in: datetime,
        time_out: datetime,
        address: str,
        overtime_hours: float,
        metadata: Dict[str, Any],
    ) -> int:
        raise NotImplementedError

    def delete_for_user_and_date(self, user_id: int, work_date: date) -> int:
        raise NotImplementedError

    def list_sessions(
        self,
        *,
        org_id: int,
        user_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 50,
    ) -> Sequence[AttendanceSession]:
        raise NotImplementedError
