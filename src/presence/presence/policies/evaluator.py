"""Compliance rule evaluation over a shift's configuration.

Every function here is pure: no I/O, no clock, no exceptions for policy
outcomes. Failures come back as ``CheckResult(ok=False, kind=...)`` so the
session manager can compose checks.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, time, timedelta
from typing import Any, Optional, Sequence

from ..common.datetime_utils import parse_time_of_day
from ..core.constants import DEFAULT_OVERTIME_THRESHOLD_HOURS
from ..core.exceptions import ValidationError
from ..locations.model import WorkLocation
from ..shifts.model import Shift
from .model import CheckResult, LateArrival, Requirements, ShiftRules

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0

LOCATION = "location"
EVIDENCE = "evidence"


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _rule_time(value: Any) -> Optional[time]:
    try:
        return parse_time_of_day(value)
    except ValidationError:
        logger.warning("Ignoring malformed shift time %r", value)
        return None


def _rule_number(value: Any, default: float) -> float:
    if isinstance(value, dict):
        value = value.get("minutes", value.get("threshold"))
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def get_rules_from_shift(shift: Optional[Shift]) -> ShiftRules:
    """Project a shift record into ShiftRules with safe defaults.

    Dedicated shift columns win over the JSON ``policy_rules``. Without a
    shift there is no start time (nobody is late) and no overtime.
    """
    if shift is None:
        return ShiftRules(overtime_enabled=False)

    rules = shift.policy_rules or {}
    timing = rules.get("shift_timing") or {}
    overtime = rules.get("overtime") or {}

    if shift.grace_minutes is not None:
        grace = int(shift.grace_minutes)
    else:
        grace = int(_rule_number(rules.get("grace_period"), 0))

    threshold = shift.overtime_threshold_hours
    if not threshold:
        threshold = _rule_number(overtime.get("threshold"), DEFAULT_OVERTIME_THRESHOLD_HOURS)

    return ShiftRules(
        start_time=shift.start_time or _rule_time(timing.get("start_time")),
        end_time=shift.end_time or _rule_time(timing.get("end_time")),
        grace_minutes=max(grace, 0),
        overtime_enabled=bool(shift.overtime_enabled and overtime.get("enabled", True)),
        overtime_threshold_hours=float(threshold) if threshold > 0 else DEFAULT_OVERTIME_THRESHOLD_HOURS,
        entry_requirements=Requirements.from_mapping(rules.get("entry_requirements")),
        exit_requirements=Requirements.from_mapping(rules.get("exit_requirements")),
    )


def check_location_compliance(
    locations: Sequence[WorkLocation],
    latitude: Optional[float],
    longitude: Optional[float],
    accuracy: Optional[float],
    requirements: Requirements,
) -> CheckResult:
    """Geofence check.

    A location matches when the haversine distance is within its radius,
    with the reported GPS accuracy accepted as margin of error. A reading
    whose accuracy is wider than the radius cannot prove presence and never
    matches.
    """
    if not requirements.geofence:
        return CheckResult.passed()

    if latitude is None or longitude is None or math.isnan(latitude) or math.isnan(longitude):
        return CheckResult.failed(LOCATION, "Location is required to record attendance")
    if not locations:
        return CheckResult.failed(LOCATION, "No work location is assigned")

    margin = float(accuracy) if accuracy is not None and not math.isnan(accuracy) else 0.0
    margin = max(margin, 0.0)

    closest: Optional[float] = None
    imprecise = True
    for loc in locations:
        if margin > loc.radius_m:
            continue
        imprecise = False
        distance = haversine_m(latitude, longitude, loc.latitude, loc.longitude)
        if distance <= loc.radius_m + margin:
            return CheckResult.passed()
        if closest is None or distance < closest:
            closest = distance

    if imprecise:
        return CheckResult.failed(
            LOCATION, f"GPS accuracy of {round(margin)}m exceeds the allowed work location radius"
        )
    return CheckResult.failed(LOCATION, f"Outside the allowed work location ({round(closest or 0)}m away)")


def check_biometric_compliance(evidence: Optional[bytes], requirements: Requirements) -> CheckResult:
    if requirements.photo and not evidence:
        return CheckResult.failed(EVIDENCE, "A photo is required to record attendance")
    return CheckResult.passed()


def calculate_late_arrival(local_time: datetime, rules: ShiftRules) -> LateArrival:
    """Whole minutes past shift start plus grace period.

    Only meaningful for the first session of the day; the caller decides that.
    """
    grace = int(rules.grace_minutes)
    if rules.start_time is None:
        return LateArrival(grace_period=grace)

    allowed = datetime.combine(local_time.date(), rules.start_time) + timedelta(minutes=grace)
    if local_time <= allowed:
        return LateArrival(grace_period=grace)

    minutes = int((local_time - allowed).total_seconds() // 60)
    return LateArrival(minutes_late=minutes, is_late=minutes > 0, grace_period=grace)


def calculate_overtime(hours: float, rules: ShiftRules) -> float:
    if not rules.overtime_enabled:
        return 0.0
    return round(max(0.0, hours - rules.overtime_threshold_hours), 2)
