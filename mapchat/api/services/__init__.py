"""Map view state and map action resolution services."""

from .map_service import MapMarker, MapService, MapView
from .resolver import DEFAULT_CHANNEL, MapActionResolver

__all__ = ['DEFAULT_CHANNEL', 'MapActionResolver', 'MapMarker', 'MapService', 'MapView']
