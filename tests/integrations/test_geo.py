from __future__ import annotations

from datetime import datetime, timezone

import pytest
import requests

from src.presence.presence.attendance.context import resolve_capture_context
from src.presence.presence.integrations.geo import FixedTimezoneResolver, GeoLookupError, GoogleMapsResolver

UTC_NOW = datetime(2024, 5, 1, 3, 30, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, body, status_code=200):
        self._body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_timezone_lookup_converts_to_local_wall_clock():
    session = FakeSession([FakeResponse({"status": "OK", "timeZoneId": "Asia/Kolkata"})])
    resolver = GoogleMapsResolver("key-123", timeout=2, session=session)

    ctx = resolver.resolve_local_context(12.97, 77.59, UTC_NOW)

    assert ctx.timezone == "Asia/Kolkata"
    assert ctx.local_time == datetime(2024, 5, 1, 9, 0)
    url, params, timeout = session.calls[0]
    assert url == GoogleMapsResolver.TIMEZONE_URL
    assert params["location"] == "12.97,77.59"
    assert params["timestamp"] == int(UTC_NOW.timestamp())
    assert params["key"] == "key-123"
    assert timeout == 2.0


def test_reverse_geocode_returns_first_formatted_address():
    session = FakeSession(
        [FakeResponse({"status": "OK", "results": [{"formatted_address": "MG Road, Bengaluru"}, {}]})]
    )
    assert GoogleMapsResolver("k", session=session).reverse_geocode(12.97, 77.59) == "MG Road, Bengaluru"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"status": "REQUEST_DENIED", "errorMessage": "bad key"}),
        FakeResponse({"status": "OK"}),
        FakeResponse({}, status_code=503),
        requests.ConnectionError("offline"),
        FakeResponse([{"status": "OK"}]),
        FakeResponse(None),
    ],
)
def test_lookup_failures_raise_geo_lookup_error(response):
    resolver = GoogleMapsResolver("k", session=FakeSession([response]))
    with pytest.raises(GeoLookupError):
        resolver.resolve_local_context(12.97, 77.59, UTC_NOW)


def test_unknown_timezone_id_is_a_lookup_error():
    session = FakeSession([FakeResponse({"status": "OK", "timeZoneId": "Mars/Olympus_Mons"})])
    with pytest.raises(GeoLookupError):
        GoogleMapsResolver("k", session=session).resolve_local_context(0, 0, UTC_NOW)


def test_fixed_timezone_resolver():
    resolver = FixedTimezoneResolver("Europe/Berlin")
    ctx = resolver.resolve_local_context(0, 0, UTC_NOW)
    assert ctx.local_time == datetime(2024, 5, 1, 5, 30)
    with pytest.raises(GeoLookupError):
        resolver.reverse_geocode(0, 0)


def test_non_object_body_falls_back_during_capture():
    session = FakeSession([FakeResponse(["unexpected"]), FakeResponse(None)])

    ctx = resolve_capture_context(GoogleMapsResolver("k", session=session), 12.97, 77.59, UTC_NOW)

    assert ctx.timezone == "UTC"
    assert ctx.address == "Unknown Location"
    assert ctx.local_time == datetime(2024, 5, 1, 3, 30)
    assert ctx.degraded == ("geocode",)
