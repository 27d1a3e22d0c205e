from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Shift:
    """Domain entity: a work shift and its compliance rule configuration."""

    shift_id: int
    org_id: int
    shift_name: str
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    grace_minutes: Optional[int] = None
    overtime_enabled: bool = True
    overtime_threshold_hours: Optional[float] = None
    # Free-form JSON configured by the admin screens:
    # shift_timing, grace_period, overtime, entry_requirements, exit_requirements.
    policy_rules: Dict[str, Any] = field(default_factory=dict)
