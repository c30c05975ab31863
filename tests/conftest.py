import pytest

from mapchat.api.models import LatLng, PlaceRecord, RouteLeg
from mapchat.api.services.resolver import MapActionResolver


class FakeProvider:
    """In-memory places + routing provider."""

    def __init__(self, places=None, routes=None, fail_queries=(), supports_transit=False):
        self.places = places or {}
        self.routes = routes or {}
        self.fail_queries = set(fail_queries)
        self.supports_transit = supports_transit
        self.gates = {}
        self.search_calls = []
        self.route_calls = []

    async def geocode_or_search(self, text, limit=1, location_bias=None):
        self.search_calls.append((text, location_bias))
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if text in self.fail_queries:
            raise RuntimeError("provider unavailable")
        place = self.places.get(text)
        return [place] if place else []

    async def route(self, origin, destination, mode):
        self.route_calls.append((origin, destination, mode))
        result = self.routes.get(mode)
        if isinstance(result, BaseException):
            raise result
        return result


def make_place(place_id, name, lat, lng, address=""):
    return PlaceRecord(
        id=place_id,
        display_name=name,
        formatted_address=address or f"{name}, Somewhere",
        location=LatLng(lat, lng),
    )


def make_leg(km, minutes=30):
    return RouteLeg(
        distance_meters=km * 1000,
        duration_seconds=minutes * 60,
        geometry=[LatLng(40.0, -74.0), LatLng(41.0, -73.0)],
    )


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


TEST_CONFIG = {
    "cache_ttl_seconds": 1800,
    "search_many_delay_seconds": 1.0,
    "device_location_timeout_seconds": 0.05,
    "default_center": {"lat": 40.7128, "lng": -74.006},
    "default_zoom": 12,
    "goto_zoom": 15,
    "search_zoom": 13,
    "enable_transit": True,
}


@pytest.fixture
def places():
    return {
        "New York": make_place("ny", "New York", 40.7128, -74.006, "New York, NY, USA"),
        "Boston": make_place("bos", "Boston", 42.3601, -71.0589, "Boston, MA, USA"),
        "Colosseum": make_place("col", "Colosseum", 41.8902, 12.4922, "Piazza del Colosseo, Rome, Italy"),
        "Pantheon": make_place("pan", "Pantheon", 41.8986, 12.4769, "Piazza della Rotonda, Rome, Italy"),
    }


@pytest.fixture
def provider(places):
    return FakeProvider(places=places)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def resolver(provider, sleep):
    return MapActionResolver(places=provider, routes=provider, config=dict(TEST_CONFIG), sleep=sleep)
