# mapchat/api/services/map_service.py
"""Service layer for map view state and map-related formatting."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mapchat.api.models import LatLng

logger = logging.getLogger(__name__)


@dataclass
class MapMarker:
    lat: float
    lng: float
    title: Optional[str] = None
    place_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "title": self.title, "placeId": self.place_id}


@dataclass
class MapView:
    """Markers, viewport and route overlay of one channel.

    This is the side-effect record the resolver writes to; the render
    collaborator reads it back (``to_dict``) and draws it.
    """

    center: LatLng
    zoom: int
    markers: List[MapMarker] = field(default_factory=list)
    bounds: Optional[Dict[str, float]] = None
    route_geometry: List[LatLng] = field(default_factory=list)

    def copy(self) -> "MapView":
        return MapView(
            center=self.center,
            zoom=self.zoom,
            markers=list(self.markers),
            bounds=dict(self.bounds) if self.bounds else None,
            route_geometry=list(self.route_geometry),
        )

    def clear_markers(self) -> None:
        self.markers.clear()

    def clear_route(self) -> None:
        self.route_geometry = []

    def add_marker(self, lat: float, lng: float, title: Optional[str] = None,
                   place_id: Optional[str] = None) -> MapMarker:
        marker = MapMarker(lat=lat, lng=lng, title=title, place_id=place_id)
        self.markers.append(marker)
        return marker

    def move_to(self, location: LatLng, zoom: Optional[int] = None) -> None:
        self.center = location
        self.bounds = None
        if zoom is not None:
            self.zoom = zoom

    def fit_bounds(self, locations: List[LatLng]) -> None:
        bounds = MapService.calculate_bounds(locations)
        if not bounds:
            return
        self.bounds = bounds
        self.center = LatLng(
            lat=(bounds["north"] + bounds["south"]) / 2,
            lng=(bounds["east"] + bounds["west"]) / 2,
        )

    def show_route(self, geometry: List[LatLng]) -> None:
        self.route_geometry = list(geometry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": self.center.to_dict(),
            "zoom": self.zoom,
            "bounds": self.bounds,
            "markers": [marker.to_dict() for marker in self.markers],
            "route": [point.to_dict() for point in self.route_geometry],
        }


class MapService:
    """Handles coordinate checks, bounds and route text formatting."""

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            True if valid, False otherwise
        """
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def calculate_bounds(locations: List[LatLng]) -> Dict[str, float]:
        """Calculate bounding box for a set of locations.

        Args:
            locations: Points to enclose

        Returns:
            Dictionary with north, south, east, west bounds (empty if no points)
        """
        if not locations:
            return {}

        lats = [loc.lat for loc in locations]
        lngs = [loc.lng for loc in locations]

        return {
            'north': max(lats),
            'south': min(lats),
            'east': max(lngs),
            'west': min(lngs)
        }

    @staticmethod
    def format_duration(seconds: float) -> str:
        """Format a duration in seconds as e.g. "1 hr 5 min" or "12 min"."""
        hours = int(seconds // 3600)
        minutes = round((seconds % 3600) / 60)
        if hours > 0:
            return f"{hours} hr {minutes} min"
        return f"{minutes} min"

    @staticmethod
    def format_distance(meters: float) -> str:
        """Format a distance in meters as e.g. "12.3 km" or "850 m"."""
        if meters >= 1000:
            return f"{meters / 1000:.1f} km"
        return f"{round(meters)} m"

    @staticmethod
    def format_coordinates(location: LatLng) -> str:
        return f"{location.lat}, {location.lng}"


# Export for use in other modules
__all__ = ['MapMarker', 'MapService', 'MapView']
