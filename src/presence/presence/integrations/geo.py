"""Timezone and address lookup for capture coordinates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests


class GeoLookupError(Exception):
    """Raised when a timezone or address lookup cannot be completed."""


@dataclass(frozen=True)
class LocalContext:
    local_time: datetime
    timezone: str


class LocalContextResolver(Protocol):
    def resolve_local_context(self, latitude: float, longitude: float, utc_now: datetime) -> LocalContext:
        raise NotImplementedError

    def reverse_geocode(self, latitude: float, longitude: float) -> str:
        raise NotImplementedError


def to_local(utc_now: datetime, tz_name: str) -> datetime:
    """Naive wall-clock time in ``tz_name`` for an aware (or naive UTC) instant."""
    if utc_now.tzinfo is None:
        utc_now = utc_now.replace(tzinfo=timezone.utc)
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise GeoLookupError(f"Unknown timezone {tz_name!r}") from exc
    return utc_now.astimezone(tz).replace(tzinfo=None)


class GoogleMapsResolver:
    TIMEZONE_URL = "https://maps.googleapis.com/maps/api/timezone/json"
    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str, *, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self._api_key = api_key
        self._timeout = float(timeout)
        self._http = session or requests.Session()

    def _get(self, url: str, params: dict) -> dict:
        try:
            resp = self._http.get(url, params={**params, "key": self._api_key}, timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise GeoLookupError(f"Maps request failed: {exc}") from exc
        if not isinstance(body, dict):
            raise GeoLookupError(f"Maps API returned {type(body).__name__}, expected an object")
        if body.get("status") != "OK":
            raise GeoLookupError(f"Maps API status {body.get('status')!r}: {body.get('errorMessage') or body.get('error_message') or ''}")
        return body

    def resolve_local_context(self, latitude: float, longitude: float, utc_now: datetime) -> LocalContext:
        body = self._get(
            self.TIMEZONE_URL,
            {"location": f"{latitude},{longitude}", "timestamp": int(utc_now.timestamp())},
        )
        tz_name = body.get("timeZoneId")
        if not tz_name:
            raise GeoLookupError("Maps API returned no timeZoneId")
        return LocalContext(local_time=to_local(utc_now, tz_name), timezone=tz_name)

    def reverse_geocode(self, latitude: float, longitude: float) -> str:
        body = self._get(self.GEOCODE_URL, {"latlng": f"{latitude},{longitude}"})
        results = body.get("results") or []
        if not results or not results[0].get("formatted_address"):
            raise GeoLookupError("Maps API returned no address")
        return results[0]["formatted_address"]


class FixedTimezoneResolver:
    """Resolver for deployments without a Maps key: one configured timezone, no addresses."""

    def __init__(self, tz_name: str):
        self._tz_name = tz_name

    def resolve_local_context(self, latitude: float, longitude: float, utc_now: datetime) -> LocalContext:
        return LocalContext(local_time=to_local(utc_now, self._tz_name), timezone=self._tz_name)

    def reverse_geocode(self, latitude: float, longitude: float) -> str:
        raise GeoLookupError("Reverse geocoding is not configured")
