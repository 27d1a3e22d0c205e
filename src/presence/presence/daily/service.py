from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Mapping, Optional, Tuple

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import hours_between, wall_clock
from ..core.enums import DayStatus
from ..policies.evaluator import calculate_overtime, get_rules_from_shift
from ..shifts.model import Shift
from ..shifts.repository import ShiftRepository
from .model import DailyAggregate
from .repository import DailyRepository

logger = logging.getLogger(__name__)

OVERRIDABLE = frozenset({"status", "is_manual_adjustment", "adjustment_reason", "adjusted_by"})


class DailyAggregator:
    """Keeps daily_attendance consistent with the raw sessions of each day.

    Every sync recomputes the row from scratch, so running it twice gives the
    same values.
    """

    def __init__(self, daily: DailyRepository, attendance: AttendanceRepository, shifts: ShiftRepository):
        self._daily = daily
        self._attendance = attendance
        self._shifts = shifts

    def _shift_for(self, user_id: int) -> Tuple[Optional[Shift], bool]:
        """Returns (shift, lookup_ok)."""
        try:
            return self._shifts.get_for_user(user_id), True
        except Exception:
            logger.warning("Shift lookup failed for user %s, overtime set to 0", user_id, exc_info=True)
            return None, False

    def sync(self, user_id: int, work_date: date, overrides: Optional[Mapping[str, Any]] = None) -> Optional[DailyAggregate]:
        overrides = dict(overrides or {})
        unknown = set(overrides) - OVERRIDABLE
        if unknown:
            raise ValueError(f"Unknown daily override keys: {sorted(unknown)}")

        sessions = list(self._attendance.list_for_user_and_date(user_id, work_date))
        if not sessions:
            return None

        shift, lookup_ok = self._shift_for(user_id)
        created = self._daily.create_if_missing(
            user_id=user_id,
            org_id=sessions[0].org_id,
            work_date=work_date,
            shift_id=shift.shift_id if shift else None,
        )
        if created:
            logger.info("Created daily aggregate user=%s date=%s", user_id, work_date)

        total_hours = round(sum(s.duration_hours for s in sessions if not s.is_open), 2)
        overtime = calculate_overtime(total_hours, get_rules_from_shift(shift)) if lookup_ok else 0.0

        values = {
            "first_in": wall_clock(sessions[0].time_in),
            "last_out": wall_clock(sessions[-1].time_out),
            "total_hours": total_hours,
            "overtime_hours": overtime,
        }
        values.update(overrides)
        self._daily.update(user_id, work_date, values)
        return self._daily.get(user_id, work_date)

    def get(self, user_id: int, work_date: date) -> Optional[DailyAggregate]:
        return self._daily.get(user_id, work_date)

    def apply_manual_adjustment(
        self,
        *,
        user_id: int,
        org_id: int,
        work_date: date,
        first_in: Optional[time],
        last_out: Optional[time],
        adjusted_by: int,
        reason: str,
    ) -> Optional[DailyAggregate]:
        """Write reviewer-approved first-in/last-out directly onto the day, creating it if needed."""
        shift, lookup_ok = self._shift_for(user_id)
        self._daily.create_if_missing(
            user_id=user_id,
            org_id=org_id,
            work_date=work_date,
            shift_id=shift.shift_id if shift else None,
        )

        values: dict = {
            "status": DayStatus.PRESENT,
            "is_manual_adjustment": True,
            "adjusted_by": adjusted_by,
            "adjustment_reason": reason,
        }
        if first_in is not None:
            values["first_in"] = first_in.strftime("%H:%M:%S")
        if last_out is not None:
            values["last_out"] = last_out.strftime("%H:%M:%S")
        if first_in is not None and last_out is not None:
            hours = hours_between(datetime.combine(work_date, first_in), datetime.combine(work_date, last_out))
            if hours > 0:
                values["total_hours"] = round(hours, 2)
                values["overtime_hours"] = (
                    calculate_overtime(values["total_hours"], get_rules_from_shift(shift)) if lookup_ok else 0.0
                )

        self._daily.update(user_id, work_date, values)
        logger.info("Manual adjustment applied user=%s date=%s by=%s", user_id, work_date, adjusted_by)
        return self._daily.get(user_id, work_date)
