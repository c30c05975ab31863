# mapchat/api/services/resolver.py
"""Resolve map actions into places, routes and map view changes.

One action is honoured per channel at a time.  Every ``resolve`` call
bumps the channel's generation number; after each provider call the
handler compares its own generation with the channel's current one and
stops as soon as a newer action has been issued.  Results of superseded
actions, including their marker and viewport changes, are discarded.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set, Tuple

from mapchat.api.config import get_resolver_config
from mapchat.api.geocoding import QueryCache
from mapchat.api.models import (
    ActionError,
    ActionOutcome,
    DirectionError,
    DirectionErrorKind,
    Directions,
    Goto,
    LatLng,
    MAX_ROUTE_DISTANCE,
    MODE_PRIORITY,
    MapAction,
    Marker,
    PlaceRecord,
    PlacesFound,
    RouteFound,
    RouteLeg,
    RouteOption,
    RouteResult,
    SearchMany,
    SearchOne,
    TravelMode,
)
from mapchat.api.services.map_service import MapService, MapView

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "map"
MY_LOCATION = "my location"


class PlaceProvider(Protocol):
    async def geocode_or_search(self, text: str, limit: int = 1,
                                location_bias: Optional[LatLng] = None) -> List[PlaceRecord]:
        ...


class RouteProvider(Protocol):
    supports_transit: bool

    async def route(self, origin: LatLng, destination: LatLng, mode: TravelMode) -> Optional[RouteLeg]:
        ...


DeviceLocator = Callable[[], Awaitable[LatLng]]


class ActionSuperseded(Exception):
    """Raised inside a handler once a newer action owns the channel."""


@dataclass
class _Channel:
    view: MapView
    generation: int = 0
    consumed: Set[str] = field(default_factory=set)


@dataclass
class _Endpoint:
    location: LatLng
    label: str
    place: Optional[PlaceRecord] = None


class MapActionResolver:
    """Turns MapActions into ActionOutcomes plus per-channel map view changes."""

    def __init__(self, places: PlaceProvider, routes: Optional[RouteProvider] = None,
                 device_location: Optional[DeviceLocator] = None,
                 config: Optional[dict] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.places = places
        self.routes = routes if routes is not None else places
        self.device_location = device_location
        self.config = {**get_resolver_config(), **(config or {})}
        self._sleep = sleep

        self.cache: QueryCache[List[PlaceRecord]] = QueryCache(self.config["cache_ttl_seconds"])
        self._channels: Dict[str, _Channel] = {}

        self._handlers = {
            SearchOne: self._search_one,
            SearchMany: self._search_many,
            Goto: self._goto,
            Marker: self._marker,
            Directions: self._directions,
        }

    # ------------------------------------------------------------------
    # Channels and session
    # ------------------------------------------------------------------

    def _new_view(self) -> MapView:
        center = self.config["default_center"]
        return MapView(center=LatLng(center["lat"], center["lng"]), zoom=self.config["default_zoom"])

    def _channel(self, name: str) -> _Channel:
        if name not in self._channels:
            self._channels[name] = _Channel(view=self._new_view())
        return self._channels[name]

    def view(self, channel: str = DEFAULT_CHANNEL) -> MapView:
        """Committed map view of a channel."""
        return self._channel(channel).view

    def start_session(self) -> None:
        """Forget cached lookups and every channel's view state."""
        self.cache.clear()
        for state in self._channels.values():
            # Bumping the generation also drops anything still in flight
            state.generation += 1
            state.view = self._new_view()
        logger.info("Resolver session started; geocoding cache cleared")

    def _checkpoint(self, state: _Channel, generation: int) -> None:
        if state.generation != generation:
            raise ActionSuperseded()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def resolve(self, action: MapAction, channel: str = DEFAULT_CHANNEL) -> Optional[ActionOutcome]:
        """Resolve one action on a channel.

        Returns the outcome, or None when the action was superseded by a
        newer action on the same channel (or was already consumed).
        """
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unsupported map action: {type(action).__name__}")

        state = self._channel(channel)
        if action.action_id in state.consumed:
            logger.debug(f"Action {action.action_id} already consumed on channel '{channel}'")
            return None

        state.generation += 1
        state.consumed.add(action.action_id)
        generation = state.generation

        draft = state.view.copy()
        try:
            outcome = await handler(action, draft, state, generation)
            self._checkpoint(state, generation)
        except ActionSuperseded:
            logger.info(f"Discarding result of superseded action {action.action_id} on channel '{channel}'")
            return None

        state.view = draft
        return outcome

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _lookup(self, query: str, location_bias: Optional[LatLng] = None) -> Tuple[List[PlaceRecord], bool]:
        """Single-result search through the cache; returns (places, hit_provider)."""
        key = query if location_bias is None else f"{query}@{location_bias.lat},{location_bias.lng}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached, False

        places = await self.places.geocode_or_search(query, limit=1, location_bias=location_bias)
        places = [p for p in places if p.location is not None][:1]
        self.cache.set(key, places)
        return places, True

    async def _current_location(self, state: _Channel) -> LatLng:
        if self.device_location is not None:
            try:
                return await asyncio.wait_for(
                    self.device_location(), timeout=self.config["device_location_timeout_seconds"]
                )
            except Exception as e:
                logger.warning(f"Device location unavailable ({e!r}); using viewport centre")
        return state.view.center

    async def _resolve_endpoint(self, text: str, state: _Channel, allow_device: bool) -> Optional[_Endpoint]:
        if allow_device and text.strip().lower() == MY_LOCATION:
            location = await self._current_location(state)
            return _Endpoint(location=location, label=MapService.format_coordinates(location))

        places, _ = await self._lookup(text)
        if not places:
            logger.warning(f"Failed to geocode '{text}'")
            return None
        return _Endpoint(location=places[0].location, label=text, place=places[0])

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _search_one(self, action: SearchOne, view: MapView, state: _Channel, generation: int):
        try:
            places, _ = await self._lookup(action.query)
        except Exception as e:
            logger.error(f"Error searching places for '{action.query}': {e}")
            places = []
        self._checkpoint(state, generation)

        if places:
            place = places[0]
            view.clear_markers()
            view.clear_route()
            view.add_marker(place.location.lat, place.location.lng, place.display_name, place.id)
            view.move_to(place.location, self.config["search_zoom"])
        return PlacesFound(action_id=action.action_id, places=places)

    async def _search_many(self, action: SearchMany, view: MapView, state: _Channel, generation: int):
        found: List[PlaceRecord] = []
        bias: Optional[LatLng] = None
        called_provider = False

        for query in action.queries:
            try:
                cache_key = query if bias is None else f"{query}@{bias.lat},{bias.lng}"
                if called_provider and self.cache.get(cache_key) is None:
                    await self._sleep(self.config["search_many_delay_seconds"])
                    self._checkpoint(state, generation)
                places, hit_provider = await self._lookup(query, location_bias=bias)
                called_provider = called_provider or hit_provider
            except ActionSuperseded:
                raise
            except Exception as e:
                logger.error(f'Error searching for "{query}": {e}')
                places = []
            self._checkpoint(state, generation)

            if places:
                found.append(places[0])
                if bias is None:
                    bias = places[0].location

        if found:
            view.clear_markers()
            view.clear_route()
            for place in found:
                view.add_marker(place.location.lat, place.location.lng, place.display_name, place.id)
            if len(found) == 1:
                view.move_to(found[0].location, self.config["search_zoom"])
            else:
                view.fit_bounds([place.location for place in found])

        logger.info(f"searchMany resolved {len(found)}/{len(action.queries)} queries")
        return PlacesFound(action_id=action.action_id, places=found)

    async def _goto(self, action: Goto, view: MapView, state: _Channel, generation: int):
        if not MapService.validate_coordinates(action.lat, action.lng):
            logger.warning(f"Ignoring goto with invalid coordinates {action.lat}, {action.lng}")
            return PlacesFound(action_id=action.action_id)
        view.clear_markers()
        view.clear_route()
        view.move_to(LatLng(action.lat, action.lng), action.zoom or self.config["goto_zoom"])
        view.add_marker(action.lat, action.lng, action.title)
        return PlacesFound(action_id=action.action_id)

    async def _marker(self, action: Marker, view: MapView, state: _Channel, generation: int):
        if not MapService.validate_coordinates(action.lat, action.lng):
            logger.warning(f"Ignoring marker with invalid coordinates {action.lat}, {action.lng}")
            return PlacesFound(action_id=action.action_id)
        view.add_marker(action.lat, action.lng, action.title)
        view.move_to(LatLng(action.lat, action.lng))
        return PlacesFound(action_id=action.action_id)

    def _modes(self) -> List[TravelMode]:
        modes = [TravelMode.DRIVING, TravelMode.WALKING, TravelMode.BICYCLING]
        if self.config["enable_transit"] and getattr(self.routes, "supports_transit", False):
            modes.append(TravelMode.TRANSIT)
        return modes

    @staticmethod
    def _route_option(mode: TravelMode, leg: RouteLeg) -> RouteOption:
        return RouteOption(
            mode=mode,
            duration=leg.duration_text or MapService.format_duration(leg.duration_seconds),
            distance=leg.distance_text or MapService.format_distance(leg.distance_meters),
            duration_value=int(leg.duration_seconds),
            distance_value=int(leg.distance_meters),
        )

    async def _directions(self, action: Directions, view: MapView, state: _Channel, generation: int):
        def error(kind: DirectionErrorKind, message: str, origin: str) -> ActionError:
            logger.warning(f"Directions {kind.value}: {message}")
            return ActionError(
                action_id=action.action_id,
                error=DirectionError(kind=kind, message=message, origin=origin,
                                     destination=action.destination),
            )

        view.clear_route()
        view.clear_markers()

        try:
            origin = await self._resolve_endpoint(action.origin, state, allow_device=True)
            self._checkpoint(state, generation)
            if origin is None:
                return error(DirectionErrorKind.INVALID_REQUEST,
                             f"Could not find the starting point '{action.origin}'.", action.origin)

            destination = await self._resolve_endpoint(action.destination, state, allow_device=False)
            self._checkpoint(state, generation)
            if destination is None:
                return error(DirectionErrorKind.INVALID_REQUEST,
                             f"Could not find the destination '{action.destination}'.", origin.label)

            modes = self._modes()
            results = await asyncio.gather(
                *(self.routes.route(origin.location, destination.location, mode) for mode in modes),
                return_exceptions=True,
            )
            self._checkpoint(state, generation)

            legs: Dict[TravelMode, RouteLeg] = {}
            for mode, result in zip(modes, results):
                # CancelledError is returned here as well, so match BaseException
                if isinstance(result, BaseException):
                    logger.warning(f"Dropping {mode.value} route: {result!r}")
                elif result is not None:
                    legs[mode] = result

            if not legs:
                return error(DirectionErrorKind.NO_ROUTE,
                             "No routes found between these locations.", origin.label)

            options = [self._route_option(mode, legs[mode]) for mode in MODE_PRIORITY if mode in legs]
            valid = [o for o in options if o.distance_value <= MAX_ROUTE_DISTANCE[o.mode]]

            if not valid:
                shortest = min(options, key=lambda o: o.distance_value)
                return error(DirectionErrorKind.ROUTE_TOO_LONG,
                             f"The route is too long ({shortest.distance}). Please choose closer locations.",
                             origin.label)

            view.show_route(legs[valid[0].mode].geometry)
            view.add_marker(origin.location.lat, origin.location.lng, origin.label,
                            origin.place.id if origin.place else None)
            view.add_marker(destination.location.lat, destination.location.lng, action.destination,
                            destination.place.id if destination.place else None)
            view.fit_bounds([origin.location, destination.location])

            logger.info(f"Route found {origin.label} -> {action.destination}: "
                        f"{', '.join(o.mode.value for o in valid)}")
            return RouteFound(
                action_id=action.action_id,
                result=RouteResult(
                    origin=origin.label,
                    destination=action.destination,
                    routes=valid,
                    origin_place=origin.place,
                    destination_place=destination.place,
                ),
            )
        except ActionSuperseded:
            raise
        except Exception as e:
            logger.error(f"Error getting directions: {e}")
            return error(DirectionErrorKind.UNKNOWN_ERROR,
                         "Failed to get directions. Please try again.", action.origin)


__all__ = ['DEFAULT_CHANNEL', 'MapActionResolver', 'MY_LOCATION']
