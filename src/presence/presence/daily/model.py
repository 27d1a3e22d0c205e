from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import DayStatus


@dataclass(frozen=True)
class DailyAggregate:
    daily_id: int
    user_id: int
    org_id: int
    work_date: date
    first_in: Optional[str] = None
    last_out: Optional[str] = None
    total_hours: float = 0.0
    overtime_hours: float = 0.0
    status: DayStatus = DayStatus.PRESENT
    shift_id: Optional[int] = None
    is_manual_adjustment: bool = False
    adjustment_reason: Optional[str] = None
    adjusted_by: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "daily_id": self.daily_id,
            "user_id": self.user_id,
            "org_id": self.org_id,
            "date": self.work_date.isoformat(),
            "first_in": self.first_in,
            "last_out": self.last_out,
            "total_hours": round(self.total_hours, 2),
            "overtime_hours": round(self.overtime_hours, 2),
            "status": self.status.value,
            "shift_id": self.shift_id,
            "is_manual_adjustment": self.is_manual_adjustment,
            "adjustment_reason": self.adjustment_reason,
            "adjusted_by": self.adjusted_by,
        }
