from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, Optional, Sequence, Tuple

from ..core.enums import CorrectionMethod, RequestStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, normalize_mysql_time
from .model import AuditEntry, CorrectionRequest, SessionPair
from .repository import CorrectionRepository

_SELECT = """
    SELECT acr.acr_id, acr.user_id, acr.org_id, acr.correction_type, acr.request_date, acr.reason,
           acr.correction_method, acr.status, acr.requested_time_in, acr.requested_time_out,
           acr.requested_sessions, acr.audit_trail, acr.submitted_at, acr.reviewed_by,
           acr.reviewed_at, acr.review_comments, u.user_name
    FROM attendance_correction_requests acr
    LEFT JOIN users u ON u.user_id = acr.user_id
"""


def _row_to_request(r: Dict[str, Any]) -> CorrectionRequest:
    sessions = load_json(r.get("requested_sessions"), [])
    trail = load_json(r.get("audit_trail"), [])
    return CorrectionRequest(
        request_id=int(r["acr_id"]),
        user_id=int(r["user_id"]),
        org_id=int(r["org_id"]),
        correction_type=r["correction_type"],
        request_date=r["request_date"],
        reason=r["reason"],
        correction_method=CorrectionMethod(r["correction_method"]),
        status=RequestStatus(r["status"]),
        requested_time_in=normalize_mysql_time(r.get("requested_time_in")),
        requested_time_out=normalize_mysql_time(r.get("requested_time_out")),
        requested_sessions=tuple(
            SessionPair(time_in=str(s.get("time_in") or ""), time_out=str(s.get("time_out") or ""))
            for s in sessions
            if isinstance(s, dict)
        ),
        audit_trail=tuple(AuditEntry.from_mapping(e) for e in trail if isinstance(e, dict)),
        submitted_at=r.get("submitted_at"),
        reviewed_by=int(r["reviewed_by"]) if r.get("reviewed_by") is not None else None,
        reviewed_at=r.get("reviewed_at"),
        review_comments=r.get("review_comments"),
        requester_name=r.get("user_name"),
    )


class MySQLCorrectionRepository(CorrectionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_correction_requests(
                    user_id, org_id, correction_type, request_date, reason, correction_method,
                    requested_time_in, requested_time_out, requested_sessions, status, audit_trail
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    int(org_id),
                    correction_type,
                    request_date,
                    reason,
                    method.value,
                    requested_time_in,
                    requested_time_out,
                    dump_json([s.to_dict() for s in requested_sessions]) if requested_sessions else None,
                    RequestStatus.PENDING.value,
                    dump_json([e.to_dict() for e in audit_trail]),
                ),
            )
            return int(cur.lastrowid)

    def get(self, request_id: int, *, org_id: int) -> Optional[CorrectionRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE acr.acr_id=%s AND acr.org_id=%s", (int(request_id), int(org_id)))
            r = fetchone(cur)
            return _row_to_request(r) if r else None

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_correction_requests
                SET status=%s, reviewed_by=%s, reviewed_at=%s, review_comments=%s, audit_trail=%s
                WHERE acr_id=%s AND org_id=%s AND status=%s
                """,
                (
                    status.value,
                    int(reviewed_by),
                    reviewed_at,
                    review_comments,
                    dump_json([e.to_dict() for e in audit_trail]),
                    int(request_id),
                    int(org_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

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
        where = ["acr.org_id=%s"]
        params: list = [int(org_id)]
        if user_id is not None:
            where.append("acr.user_id=%s")
            params.append(int(user_id))
        if status is not None:
            where.append("acr.status=%s")
            params.append(status.value)
        if request_date is not None:
            where.append("acr.request_date=%s")
            params.append(request_date)
        if month is not None:
            where.append("MONTH(acr.request_date)=%s")
            params.append(int(month))
        if year is not None:
            where.append("YEAR(acr.request_date)=%s")
            params.append(int(year))
        clause = " WHERE " + " AND ".join(where)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS total FROM attendance_correction_requests acr" + clause,
                tuple(params),
            )
            total = int((fetchone(cur) or {}).get("total") or 0)
            cur.execute(
                _SELECT + clause + " ORDER BY acr.submitted_at DESC, acr.acr_id DESC LIMIT %s OFFSET %s",
                (*params, int(limit), int(offset)),
            )
            return [_row_to_request(r) for r in fetchall(cur)], total
