from __future__ import annotations

from typing import Any, Dict, Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, load_json, normalize_mysql_time
from .model import Shift
from .repository import ShiftRepository

_COLUMNS = """
    s.shift_id, s.org_id, s.shift_name, s.start_time, s.end_time,
    s.grace_period_mins, s.is_overtime_enabled, s.overtime_threshold_hours, s.policy_rules
"""


def _to_shift(r: Dict[str, Any]) -> Shift:
    threshold = r.get("overtime_threshold_hours")
    grace = r.get("grace_period_mins")
    enabled = r.get("is_overtime_enabled")
    return Shift(
        shift_id=int(r["shift_id"]),
        org_id=int(r["org_id"]),
        shift_name=r["shift_name"],
        start_time=normalize_mysql_time(r.get("start_time")),
        end_time=normalize_mysql_time(r.get("end_time")),
        grace_minutes=int(grace) if grace is not None else None,
        overtime_enabled=bool(enabled) if enabled is not None else True,
        overtime_threshold_hours=float(threshold) if threshold is not None else None,
        policy_rules=load_json(r.get("policy_rules"), {}) or {},
    )


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_user(self, user_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM users u
                JOIN shifts s ON s.shift_id = u.shift_id
                WHERE u.user_id=%s
                """,
                (int(user_id),),
            )
            r = fetchone(cur)
            return _to_shift(r) if r else None
