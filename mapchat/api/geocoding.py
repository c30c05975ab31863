# mapchat/api/geocoding.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

import googlemaps
from googlemaps.convert import decode_polyline
from googlemaps.exceptions import ApiError

from mapchat.api.config import get_google_maps_config
from mapchat.api.models import LatLng, PlaceRecord, RouteLeg, TravelMode

logger = logging.getLogger(__name__)

PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
LOCATION_BIAS_RADIUS_METERS = 50_000

# Statuses that mean "nothing found" rather than a failed request
_EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}

T = TypeVar("T")


class QueryCache(Generic[T]):
    """Read-through cache keyed by exact query string, with a fixed TTL."""

    def __init__(self, ttl_seconds: float, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Result conversion
# ---------------------------------------------------------------------------

def _location(result: Dict[str, Any]) -> Optional[LatLng]:
    loc = (result.get("geometry") or {}).get("location")
    if not loc or loc.get("lat") is None or loc.get("lng") is None:
        return None
    return LatLng(lat=float(loc["lat"]), lng=float(loc["lng"]))


def _photo_urls(result: Dict[str, Any], api_key: str, max_width: int = 400) -> List[str]:
    photos = result.get("photos") or []
    if not photos or not photos[0].get("photo_reference"):
        return []
    reference = photos[0]["photo_reference"]
    return [f"{PHOTO_URL}?maxwidth={max_width}&photo_reference={reference}&key={api_key}"]


def place_from_result(result: Dict[str, Any], api_key: str = "") -> PlaceRecord:
    """Convert a Places text-search or Geocoding result into a PlaceRecord."""
    address = result.get("formatted_address") or result.get("vicinity") or ""
    # Geocoding results have no name; the first address part usually is one
    name = result.get("name") or address.split(",")[0].strip()
    return PlaceRecord(
        id=result.get("place_id", ""),
        display_name=name,
        formatted_address=address,
        location=_location(result),
        rating=result.get("rating"),
        user_rating_count=result.get("user_ratings_total"),
        types=list(result.get("types") or []),
        photo_urls=_photo_urls(result, api_key),
    )


def leg_from_directions(routes: List[Dict[str, Any]]) -> Optional[RouteLeg]:
    """First leg of the first route, or None when the provider found nothing."""
    if not routes or not routes[0].get("legs"):
        return None
    route = routes[0]
    leg = route["legs"][0]
    distance = leg.get("distance") or {}
    duration = leg.get("duration") or {}
    if distance.get("value") is None or duration.get("value") is None:
        return None

    points = (route.get("overview_polyline") or {}).get("points")
    geometry = [LatLng(p["lat"], p["lng"]) for p in decode_polyline(points)] if points else []
    return RouteLeg(
        distance_meters=distance["value"],
        duration_seconds=duration["value"],
        geometry=geometry,
        distance_text=distance.get("text"),
        duration_text=duration.get("text"),
    )


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class GoogleMapsProvider:
    """Places search, geocoding and routing backed by the Google Maps web services.

    The googlemaps client is synchronous; every call is pushed to a worker
    thread so the resolver's event loop is never blocked.  Provider errors
    (ApiError, TransportError, Timeout) propagate to the caller, only an
    empty answer is reported as "no result".
    """

    supports_transit = True

    def __init__(self, client: Optional[googlemaps.Client] = None, api_key: Optional[str] = None):
        cfg = get_google_maps_config()
        self.api_key = api_key if api_key is not None else cfg.get("api_key", "")
        self._client = client

    @property
    def client(self) -> googlemaps.Client:
        """Lazily created googlemaps.Client instance."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("GOOGLE_MAPS_API_KEY not set")
            logger.info(f"Initializing Google Maps client with key: {self.api_key[:10]}...")
            self._client = googlemaps.Client(key=self.api_key)
        return self._client

    async def search_text(self, query: str, limit: int = 1,
                          location_bias: Optional[LatLng] = None) -> List[PlaceRecord]:
        kwargs: Dict[str, Any] = {"query": query, "language": "en"}
        if location_bias is not None:
            kwargs["location"] = (location_bias.lat, location_bias.lng)
            kwargs["radius"] = LOCATION_BIAS_RADIUS_METERS

        logger.debug(f"Places text search: {query}")
        response = await asyncio.to_thread(self.client.places, **kwargs)
        results = response.get("results") or []
        return [place_from_result(r, self.api_key) for r in results[:limit]]

    async def geocode(self, text: str) -> List[PlaceRecord]:
        logger.debug(f"Geocoding place: {text}")
        results = await asyncio.to_thread(self.client.geocode, text, language="en")
        return [place_from_result(r, self.api_key) for r in results or []]

    async def geocode_or_search(self, text: str, limit: int = 1,
                                location_bias: Optional[LatLng] = None) -> List[PlaceRecord]:
        """Text search first, plain geocoding when the search comes back empty."""
        places = await self.search_text(text, limit=limit, location_bias=location_bias)
        if places:
            return places
        places = await self.geocode(text)
        if not places:
            logger.warning(f"No results found for place: {text}")
        return places[:limit]

    async def route(self, origin: LatLng, destination: LatLng, mode: TravelMode) -> Optional[RouteLeg]:
        try:
            routes = await asyncio.to_thread(
                self.client.directions,
                (origin.lat, origin.lng),
                (destination.lat, destination.lng),
                mode=mode.value,
            )
        except ApiError as e:
            if e.status in _EMPTY_STATUSES:
                return None
            raise
        return leg_from_directions(routes)


__all__ = [
    "GoogleMapsProvider",
    "QueryCache",
    "leg_from_directions",
    "place_from_result",
]
