from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Protocol

from .model import DailyAggregate


class DailyRepository(Protocol):
    def get(self, user_id: int, work_date: date) -> Optional[DailyAggregate]:
        raise NotImplementedError

    def create_if_missing(self, *, user_id: int, org_id: int, work_date: date, shift_id: Optional[int]) -> bool:
        """Insert a zeroed row; a row that already exists is left untouched.

        Returns True when this call created the row.
        """

        raise NotImplementedError

    def update(self, user_id: int, work_date: date, values: Mapping[str, Any]) -> bool:
        raise NotImplementedError
