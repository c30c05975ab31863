# mapchat/api/models.py
"""Shared data structures for itineraries, places and map actions.

Everything the interpreter, matcher and resolver exchange lives here so
the three components share a single source-of-truth definition.  Each
structure serializes with ``to_dict()`` into the camelCase JSON shape the
front end and the ``[PLACES]`` block contract use.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# ---------------------------------------------------------------------------
# Itinerary model
# ---------------------------------------------------------------------------

class PeriodName(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"
    ACCOMMODATION = "Accommodation"


PERIOD_ORDER: List[PeriodName] = [
    PeriodName.MORNING,
    PeriodName.AFTERNOON,
    PeriodName.EVENING,
    PeriodName.ACCOMMODATION,
]


def _unique(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


@dataclass
class Stop:
    """One scheduled slot; several ``options`` are mutually exclusive alternatives."""

    options: List[str]
    optional: bool = False
    travel_time: Optional[str] = None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"options": list(self.options), "optional": self.optional}
        if self.travel_time:
            data["travelTime"] = self.travel_time
        return data


@dataclass
class ItineraryDay:
    """A named day (or day option) with scheduled periods and day-level suggestions."""

    key: str
    periods: Dict[PeriodName, List[Stop]] = field(default_factory=dict)
    suggested: List[str] = field(default_factory=list)

    def scheduled_places(self) -> List[str]:
        names: List[str] = []
        for period in PERIOD_ORDER:
            for stop in self.periods.get(period, []):
                names.extend(stop.options)
        return names

    def place_names(self) -> List[str]:
        """Flat, duplicate-free list of every option and suggestion for the day."""
        return _unique(self.scheduled_places() + list(self.suggested))

    def to_dict(self) -> dict:
        periods = {
            period.value: [stop.to_dict() for stop in self.periods[period]]
            for period in PERIOD_ORDER
            if self.periods.get(period)
        }
        return {"key": self.key, "periods": periods, "suggested": list(self.suggested)}


@dataclass
class Itinerary:
    """Either an ordered list of days or a flat ``suggested`` list."""

    days: List[ItineraryDay] = field(default_factory=list)
    suggested: List[str] = field(default_factory=list)

    @property
    def is_flat(self) -> bool:
        return not self.days and bool(self.suggested)

    def is_empty(self) -> bool:
        return not self.days and not self.suggested

    def get_day(self, key: str) -> Optional[ItineraryDay]:
        for day in self.days:
            if day.key == key:
                return day
        return None

    def flat_places(self) -> Dict[str, List[str]]:
        """Map of day key (or ``"Suggested"``) to its flat place list."""
        if self.days:
            return {day.key: day.place_names() for day in self.days}
        if self.suggested:
            return {"Suggested": _unique(self.suggested)}
        return {}

    def to_dict(self) -> dict:
        if self.days:
            return {"days": [day.to_dict() for day in self.days]}
        return {"suggested": list(self.suggested)}


# ---------------------------------------------------------------------------
# Places
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class PlaceRecord:
    """A provider-resolved place.  ``location`` is never filled in by this package."""

    id: str
    display_name: str
    formatted_address: str = ""
    location: Optional[LatLng] = None
    rating: Optional[float] = None
    user_rating_count: Optional[int] = None
    types: List[str] = field(default_factory=list)
    photo_urls: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "formattedAddress": self.formatted_address,
            "location": self.location.to_dict() if self.location else None,
            "rating": self.rating,
            "userRatingCount": self.user_rating_count,
            "types": list(self.types),
            "photoUrls": list(self.photo_urls),
        }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class TravelMode(str, Enum):
    DRIVING = "driving"
    WALKING = "walking"
    BICYCLING = "bicycling"
    TRANSIT = "transit"


# Fixed ordering of RouteResult.routes regardless of provider response order
MODE_PRIORITY: List[TravelMode] = [
    TravelMode.DRIVING,
    TravelMode.WALKING,
    TravelMode.BICYCLING,
    TravelMode.TRANSIT,
]

# Max route distance in meters
MAX_ROUTE_DISTANCE: Dict[TravelMode, int] = {
    TravelMode.DRIVING: 10_000_000,    # 10,000 km
    TravelMode.WALKING: 500_000,       # 500 km
    TravelMode.BICYCLING: 500_000,     # 500 km
    TravelMode.TRANSIT: 20_000_000,    # 20,000 km
}


@dataclass
class RouteLeg:
    """Raw answer from the routing provider for one mode."""

    distance_meters: float
    duration_seconds: float
    geometry: List[LatLng] = field(default_factory=list)
    distance_text: Optional[str] = None
    duration_text: Optional[str] = None


@dataclass
class RouteOption:
    mode: TravelMode
    duration: str
    distance: str
    duration_value: int
    distance_value: int

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "duration": self.duration,
            "distance": self.distance,
            "durationValue": self.duration_value,
            "distanceValue": self.distance_value,
        }


@dataclass
class RouteResult:
    origin: str
    destination: str
    routes: List[RouteOption] = field(default_factory=list)
    origin_place: Optional[PlaceRecord] = None
    destination_place: Optional[PlaceRecord] = None

    def to_dict(self) -> dict:
        return {
            "origin": self.origin,
            "destination": self.destination,
            "originPlace": self.origin_place.to_dict() if self.origin_place else None,
            "destinationPlace": self.destination_place.to_dict() if self.destination_place else None,
            "routes": [route.to_dict() for route in self.routes],
        }


class DirectionErrorKind(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    NO_ROUTE = "NO_ROUTE"
    ROUTE_TOO_LONG = "ROUTE_TOO_LONG"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class DirectionError:
    kind: DirectionErrorKind
    message: str
    origin: str
    destination: str

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "message": self.message,
            "origin": self.origin,
            "destination": self.destination,
        }


# ---------------------------------------------------------------------------
# Map actions
# ---------------------------------------------------------------------------

def new_action_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class SearchOne:
    query: str
    action_id: str = field(default_factory=new_action_id)


@dataclass(frozen=True)
class SearchMany:
    queries: List[str]
    action_id: str = field(default_factory=new_action_id)


@dataclass(frozen=True)
class Goto:
    lat: float
    lng: float
    zoom: Optional[int] = None
    title: Optional[str] = None
    action_id: str = field(default_factory=new_action_id)


@dataclass(frozen=True)
class Marker:
    lat: float
    lng: float
    title: Optional[str] = None
    action_id: str = field(default_factory=new_action_id)


@dataclass(frozen=True)
class Directions:
    origin: str
    destination: str
    action_id: str = field(default_factory=new_action_id)


MapAction = Union[SearchOne, SearchMany, Goto, Marker, Directions]


_ACTION_TAGS = {
    SearchOne: "searchOne",
    SearchMany: "searchMany",
    Goto: "goto",
    Marker: "marker",
    Directions: "directions",
}


def map_action_to_dict(action: MapAction) -> dict:
    data = {"action": _ACTION_TAGS[type(action)]}
    data.update(asdict(action))
    data["id"] = data.pop("action_id")
    return data


def parse_map_action(data: Dict[str, Any]) -> Optional[MapAction]:
    """Build a typed MapAction from its loose JSON form.

    Returns None when the ``action`` tag is unknown or its required fields
    are missing.  Accepts the aliases the chat model and older clients use
    (``search`` for ``searchOne``, ``multiSearch`` for ``searchMany``).
    """
    if not isinstance(data, dict):
        return None

    kind = data.get("action")
    action_id = str(data.get("id") or data.get("_timestamp") or new_action_id())

    try:
        if kind in ("search", "searchOne"):
            query = str(data.get("query") or "").strip()
            return SearchOne(query=query, action_id=action_id) if query else None

        if kind in ("searchMany", "multiSearch"):
            raw_queries = data.get("queries")
            if isinstance(raw_queries, str):
                raw_queries = [raw_queries]
            elif not isinstance(raw_queries, list):
                raw_queries = []
            queries = [str(q).strip() for q in raw_queries if q is not None and str(q).strip()]
            return SearchMany(queries=queries, action_id=action_id) if queries else None

        if kind == "goto":
            zoom = data.get("zoom")
            return Goto(
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                zoom=int(zoom) if zoom is not None else None,
                title=data.get("title"),
                action_id=action_id,
            )

        if kind == "marker":
            return Marker(
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                title=data.get("title"),
                action_id=action_id,
            )

        if kind == "directions":
            origin = str(data.get("origin") or "").strip()
            destination = str(data.get("destination") or "").strip()
            if not origin or not destination:
                return None
            return Directions(origin=origin, destination=destination, action_id=action_id)
    except (KeyError, TypeError, ValueError):
        return None

    return None


# ---------------------------------------------------------------------------
# Action outcomes
# ---------------------------------------------------------------------------

@dataclass
class PlacesFound:
    action_id: str
    places: List[PlaceRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"type": "places", "actionId": self.action_id,
                "places": [place.to_dict() for place in self.places]}


@dataclass
class RouteFound:
    action_id: str
    result: RouteResult

    def to_dict(self) -> dict:
        return {"type": "route", "actionId": self.action_id, "result": self.result.to_dict()}


@dataclass
class ActionError:
    action_id: str
    error: DirectionError

    def to_dict(self) -> dict:
        return {"type": "error", "actionId": self.action_id, "error": self.error.to_dict()}


ActionOutcome = Union[PlacesFound, RouteFound, ActionError]
