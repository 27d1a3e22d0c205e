from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Sequence

from ..core.enums import SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json
from .model import AttendanceSession, CapturePoint
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, user_id, org_id, time_in, time_out,
    time_in_lat, time_in_lng, time_in_accuracy, time_in_address, time_in_image_key,
    time_out_lat, time_out_lng, time_out_accuracy, time_out_address, time_out_image_key,
    late_minutes, late_reason, overtime_hours, status, metadata
"""

_IMAGE_COLUMN = {"in": "time_in_image_key", "out": "time_out_image_key"}


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _row_to_session(r: Dict[str, Any]) -> AttendanceSession:
    return AttendanceSession(
        session_id=int(r["attendance_id"]),
        user_id=int(r["user_id"]),
        org_id=int(r["org_id"]),
        time_in=r["time_in"],
        time_out=r.get("time_out"),
        capture_in=CapturePoint(
            latitude=_float(r.get("time_in_lat")),
            longitude=_float(r.get("time_in_lng")),
            accuracy=_float(r.get("time_in_accuracy")),
            address=r.get("time_in_address"),
            evidence_ref=r.get("time_in_image_key"),
        ),
        capture_out=CapturePoint(
            latitude=_float(r.get("time_out_lat")),
            longitude=_float(r.get("time_out_lng")),
            accuracy=_float(r.get("time_out_accuracy")),
            address=r.get("time_out_address"),
            evidence_ref=r.get("time_out_image_key"),
        ),
        late_minutes=int(r.get("late_minutes") or 0),
        late_reason=r.get("late_reason"),
        overtime_hours=float(r.get("overtime_hours") or 0),
        status=SessionStatus(r["status"]),
        metadata=load_json(r.get("metadata"), {}),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def find_open_session(self, user_id: int, since: datetime) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE user_id=%s AND time_out IS NULL AND time_in >= %s
                ORDER BY time_in DESC
                LIMIT 1
                """,
                (user_id, since),
            )
            r = fetchone(cur)
            return _row_to_session(r) if r else None

    def list_for_user_and_date(self, user_id: int, work_date: date) -> Sequence[AttendanceSession]:
        start = datetime.combine(work_date, datetime.min.time())
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE user_id=%s AND time_in >= %s AND time_in < %s
                ORDER BY time_in ASC, attendance_id ASC
                """,
                (user_id, start, start + timedelta(days=1)),
            )
            return [_row_to_session(r) for r in fetchall(cur)]

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(
                    user_id, org_id, time_in, time_in_lat, time_in_lng, time_in_accuracy,
                    time_in_address, late_minutes, late_reason, status, metadata
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    user_id,
                    org_id,
                    time_in,
                    capture.latitude,
                    capture.longitude,
                    capture.accuracy,
                    capture.address,
                    int(late_minutes),
                    late_reason,
                    SessionStatus.OPEN.value,
                    dump_json(metadata),
                ),
            )
            return int(cur.lastrowid)

    def attach_evidence(self, session_id: int, *, leg: str, evidence_ref: Optional[str], metadata: Dict[str, Any]) -> bool:
        column = _IMAGE_COLUMN[leg]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE attendance_records
                SET {column}=%s, metadata=%s
                WHERE attendance_id=%s
                """,
                (evidence_ref, dump_json(metadata), int(session_id)),
            )
            return cur.rowcount > 0

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET time_out=%s, time_out_lat=%s, time_out_lng=%s, time_out_accuracy=%s,
                    time_out_address=%s, time_out_image_key=%s, overtime_hours=%s,
                    status=%s, metadata=%s
                WHERE attendance_id=%s AND time_out IS NULL
                """,
                (
                    time_out,
                    capture.latitude,
                    capture.longitude,
                    capture.accuracy,
                    capture.address,
                    capture.evidence_ref,
                    float(overtime_hours),
                    status.value,
                    dump_json(metadata),
                    int(session_id),
                ),
            )
            return cur.rowcount > 0

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(
                    user_id, org_id, time_in, time_out, time_in_address, time_out_address,
                    late_minutes, overtime_hours, status, metadata
                )
                VALUES(%s,%s,%s,%s,%s,%s,0,%s,%s,%s)
                """,
                (
                    user_id,
                    org_id,
                    time_in,
                    time_out,
                    address,
                    address,
                    float(overtime_hours),
                    SessionStatus.PRESENT.value,
                    dump_json(metadata),
                ),
            )
            return int(cur.lastrowid)

    def delete_for_user_and_date(self, user_id: int, work_date: date) -> int:
        start = datetime.combine(work_date, datetime.min.time())
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM attendance_records WHERE user_id=%s AND time_in >= %s AND time_in < %s",
                (user_id, start, start + timedelta(days=1)),
            )
            return int(cur.rowcount)

    def list_sessions(
        self,
        *,
        org_id: int,
        user_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 50,
    ) -> Sequence[AttendanceSession]:
        where = ["org_id=%s"]
        params: list = [org_id]
        if user_id is not None:
            where.append("user_id=%s")
            params.append(user_id)
        if date_from is not None:
            where.append("time_in >= %s")
            params.append(datetime.combine(date_from, datetime.min.time()))
        if date_to is not None:
            where.append("time_in < %s")
            params.append(datetime.combine(date_to + timedelta(days=1), datetime.min.time()))
        params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {' AND '.join(where)}
                ORDER BY time_in DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [_row_to_session(r) for r in fetchall(cur)]
