# mapchat/api/config.py
"""Configuration management for the map assistant API."""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_openai_api_key():
    """Get OpenAI API key from environment."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY not set")
    return api_key


def get_chat_config():
    """Get chat completion settings."""
    return {
        "model": os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
        "temperature": float(os.getenv("OPENAI_TEMPERATURE", "0.7")),
        "max_tokens": int(os.getenv("OPENAI_MAX_TOKENS", "1000")),
        "planning_max_tokens": int(os.getenv("OPENAI_PLANNING_MAX_TOKENS", "2000")),
    }


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "client_id": os.getenv("maps_client_id", ""),
        "client_secret": os.getenv("maps_client_secret", "")
    }


def get_resolver_config():
    """Get map action resolver configuration."""
    center = os.getenv("DEFAULT_CENTER", "40.7128,-74.006").split(",")
    return {
        # Geocoding / search cache, cleared wholesale on session start
        "cache_ttl_seconds": float(os.getenv("GEOCODE_CACHE_TTL_SECONDS", "1800")),

        # searchMany is serialized to respect the 1 request/second limit
        "search_many_delay_seconds": float(os.getenv("SEARCH_MANY_DELAY_SECONDS", "1.0")),

        # "my location" lookups fall back to the viewport centre after this
        "device_location_timeout_seconds": float(os.getenv("DEVICE_LOCATION_TIMEOUT_SECONDS", "5.0")),

        # Viewport defaults
        "default_center": {"lat": float(center[0]), "lng": float(center[1])},
        "default_zoom": int(os.getenv("DEFAULT_ZOOM", "12")),
        "goto_zoom": int(os.getenv("GOTO_ZOOM", "15")),
        "search_zoom": int(os.getenv("SEARCH_ZOOM", "13")),

        "enable_transit": _env_bool("ENABLE_TRANSIT", True),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 3001))
