from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import DEFAULT_LOCATION_RADIUS_M


@dataclass(frozen=True)
class WorkLocation:
    """A geofenced work site of an organization."""

    location_id: int
    org_id: int
    location_name: str
    latitude: float
    longitude: float
    radius_m: float = DEFAULT_LOCATION_RADIUS_M
    address: Optional[str] = None
    is_active: bool = True
