from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional

from ..core.enums import DayStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, time_str
from .model import DailyAggregate
from .repository import DailyRepository

_UPDATABLE = (
    "first_in",
    "last_out",
    "total_hours",
    "overtime_hours",
    "status",
    "is_manual_adjustment",
    "adjustment_reason",
    "adjusted_by",
)


class MySQLDailyRepository(DailyRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, user_id: int, work_date: date) -> Optional[DailyAggregate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT daily_id, user_id, org_id, date, first_in, last_out, total_hours, overtime_hours,
                       status, shift_id, is_manual_adjustment, adjustment_reason, adjusted_by
                FROM daily_attendance
                WHERE user_id=%s AND date=%s
                """,
                (user_id, work_date),
            )
            r = fetchone(cur)
            if not r:
                return None
            return DailyAggregate(
                daily_id=int(r["daily_id"]),
                user_id=int(r["user_id"]),
                org_id=int(r["org_id"]),
                work_date=r["date"],
                first_in=time_str(r.get("first_in")),
                last_out=time_str(r.get("last_out")),
                total_hours=float(r.get("total_hours") or 0),
                overtime_hours=float(r.get("overtime_hours") or 0),
                status=DayStatus(r["status"]),
                shift_id=int(r["shift_id"]) if r.get("shift_id") is not None else None,
                is_manual_adjustment=bool(r.get("is_manual_adjustment")),
                adjustment_reason=r.get("adjustment_reason"),
                adjusted_by=int(r["adjusted_by"]) if r.get("adjusted_by") is not None else None,
            )

    def create_if_missing(self, *, user_id: int, org_id: int, work_date: date, shift_id: Optional[int]) -> bool:
        # Relies on UNIQUE(user_id, date); a concurrent create becomes a no-op.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO daily_attendance(user_id, org_id, date, shift_id, status, total_hours, overtime_hours)
                VALUES(%s,%s,%s,%s,%s,0,0)
                """,
                (user_id, org_id, work_date, shift_id, DayStatus.PRESENT.value),
            )
            return cur.rowcount > 0

    def update(self, user_id: int, work_date: date, values: Mapping[str, Any]) -> bool:
        unknown = set(values) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Unknown daily_attendance columns: {sorted(unknown)}")
        if not values:
            return False

        columns = [c for c in _UPDATABLE if c in values]
        params = [values[c].value if isinstance(values[c], Enum) else values[c] for c in columns]
        assignments = ", ".join(f"{c}=%s" for c in columns)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE daily_attendance SET {assignments} WHERE user_id=%s AND date=%s",
                (*params, user_id, work_date),
            )
            return cur.rowcount > 0
