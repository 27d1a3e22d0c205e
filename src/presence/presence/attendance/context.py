from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from ..core.constants import FALLBACK_TIMEZONE, UNKNOWN_LOCATION
from ..integrations.geo import GeoLookupError, LocalContextResolver, to_local

logger = logging.getLogger(__name__)

GEOCODE = "geocode"


@dataclass(frozen=True)
class CaptureContext:
    local_time: datetime
    address: str
    timezone: str
    degraded: Tuple[str, ...] = ()


def resolve_capture_context(
    resolver: LocalContextResolver,
    latitude: Optional[float],
    longitude: Optional[float],
    utc_now: datetime,
) -> CaptureContext:
    """Local wall-clock time, address and timezone for a capture.

    Falls back to UTC and an unknown address when coordinates are missing or
    the lookup fails; the fallback is reported through ``degraded``.
    """
    fallback_time = to_local(utc_now, FALLBACK_TIMEZONE)
    if latitude is None or longitude is None:
        return CaptureContext(fallback_time, UNKNOWN_LOCATION, FALLBACK_TIMEZONE, (GEOCODE,))

    degraded = False
    try:
        ctx = resolver.resolve_local_context(latitude, longitude, utc_now)
        local_time, tz_name = ctx.local_time, ctx.timezone
    except GeoLookupError:
        logger.warning("Timezone lookup failed for (%s, %s), using %s", latitude, longitude, FALLBACK_TIMEZONE, exc_info=True)
        local_time, tz_name = fallback_time, FALLBACK_TIMEZONE
        degraded = True

    try:
        address = resolver.reverse_geocode(latitude, longitude)
    except GeoLookupError:
        logger.warning("Reverse geocoding failed for (%s, %s)", latitude, longitude, exc_info=True)
        address = UNKNOWN_LOCATION
        degraded = True

    return CaptureContext(local_time, address, tz_name, (GEOCODE,) if degraded else ())
