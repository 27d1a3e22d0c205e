from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Any, Mapping, Optional

from ..core.constants import DEFAULT_OVERTIME_THRESHOLD_HOURS


@dataclass(frozen=True)
class Requirements:
    """Capture requirements for one leg (entry or exit) of a session."""

    geofence: bool = False
    photo: bool = False

    @classmethod
    def from_mapping(cls, value: Optional[Mapping[str, Any]]) -> "Requirements":
        if not isinstance(value, Mapping):
            return cls()
        return cls(
            geofence=bool(value.get("geofence") or value.get("location")),
            photo=bool(value.get("selfie") or value.get("photo") or value.get("biometric")),
        )


@dataclass(frozen=True)
class ShiftRules:
    """Normalized rule set projected from a shift."""

    start_time: Optional[time] = None
    end_time: Optional[time] = None
    grace_minutes: int = 0
    overtime_enabled: bool = True
    overtime_threshold_hours: float = DEFAULT_OVERTIME_THRESHOLD_HOURS
    entry_requirements: Requirements = field(default_factory=Requirements)
    exit_requirements: Requirements = field(default_factory=Requirements)


@dataclass(frozen=True)
class CheckResult:
    ok: bool
    error: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def passed(cls) -> "CheckResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, kind: str, error: str) -> "CheckResult":
        return cls(ok=False, error=error, kind=kind)


@dataclass(frozen=True)
class LateArrival:
    minutes_late: int = 0
    is_late: bool = False
    grace_period: int = 0
