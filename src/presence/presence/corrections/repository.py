from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Protocol, Sequence, Tuple

from ..core.enums import CorrectionMethod, RequestStatus
from .model import AuditEntry, CorrectionRequest, SessionPair


class CorrectionRepository(Protocol):
    def create(
        self,
        *,
        user_id: int,
        org_id: int,
        correction_type: str,
        request_date: date,
        reason: str,
        method: CorrectionMethod,
        requested_time_in: Optional[time],
        requested_time_out: Optional[time],
        requested_sessions: Sequence[SessionPair],
        audit_trail: Sequence[AuditEntry],
    ) -> int:
        raise NotImplementedError

    def get(self, request_id: int, *, org_id: int) -> Optional[CorrectionRequest]:
        raise NotImplementedError

    def mark_reviewed(
        self,
        request_id: int,
        *,
        org_id: int,
        status: RequestStatus,
        reviewed_by: int,
        reviewed_at: datetime,
        review_comments: Optional[str],
        audit_trail: Sequence[AuditEntry],
    ) -> bool:
        """Only transitions a pending request; False when it was already reviewed."""

        raise NotImplementedError

    def search(
        self,
        *,
        org_id: int,
        user_id: Optional[int] = None,
        status: Optional[RequestStatus] = None,
        request_date: Optional[date] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[Sequence[CorrectionRequest], int]:
        raise NotImplementedError
