# mapchat/routes/maps.py
"""Map assistant routes and blueprint configuration."""

import asyncio
import logging

from flask import Blueprint, jsonify, request

from mapchat.api.config import get_google_maps_config
from mapchat.api.geocoding import GoogleMapsProvider
from mapchat.api.interpreter import interpret
from mapchat.api.llm import generate_reply
from mapchat.api.models import parse_map_action
from mapchat.api.services.resolver import DEFAULT_CHANNEL, MapActionResolver

logger = logging.getLogger(__name__)


def create_maps_blueprint(resolver=None, reply_fn=None):
    """Create and configure the maps blueprint.

    Args:
        resolver: MapActionResolver to use; a Google Maps backed one is
            created on first use when omitted
        reply_fn: Callable producing an InterpretedResponse for a chat
            message (defaults to the OpenAI backed ``generate_reply``)

    Returns:
        Configured Flask Blueprint
    """
    maps_bp = Blueprint("maps", __name__, url_prefix="/api")
    reply_fn = reply_fn or generate_reply
    state = {"resolver": resolver}

    def get_resolver():
        if state["resolver"] is None:
            provider = GoogleMapsProvider()
            state["resolver"] = MapActionResolver(places=provider, routes=provider)
        return state["resolver"]

    @maps_bp.route("/config")
    def api_config():
        """Return Google Maps configuration for frontend."""
        config = get_google_maps_config()
        if config.get("api_key"):
            return jsonify({
                "auth_type": "api_key",
                "google_maps_api_key": config["api_key"],
                "google_maps_client_id": config.get("client_id", ""),
            })
        return jsonify({"error": "No Google Maps API key configured"}), 500

    @maps_bp.route("/chat", methods=["POST"])
    def api_chat():
        """Ask the chat model and return the interpreted reply."""
        data = request.get_json(silent=True) or {}
        message = (data.get("message") or "").strip()
        if not message:
            return jsonify({"error": "Message is required"}), 400

        try:
            reply = reply_fn(
                message,
                history=data.get("history") or [],
                planning_mode=bool(data.get("planningMode")),
                preferences=data.get("planningPreferences"),
            )
        except Exception as e:
            logger.error(f"Chat error: {e}")
            return jsonify({"error": "Failed to process chat message"}), 500
        return jsonify(reply.to_dict())

    @maps_bp.route("/interpret", methods=["POST"])
    def api_interpret():
        """Interpret raw model text without calling the model."""
        data = request.get_json(silent=True) or {}
        text = data.get("text")
        if not isinstance(text, str):
            return jsonify({"error": "text is required"}), 400
        return jsonify(interpret(text).to_dict())

    @maps_bp.route("/actions", methods=["POST"])
    def api_actions():
        """Resolve one map action on a channel."""
        data = request.get_json(silent=True) or {}
        action = parse_map_action(data.get("action"))
        if action is None:
            return jsonify({"error": "Invalid map action"}), 400
        channel = data.get("channel") or DEFAULT_CHANNEL

        resolver = get_resolver()
        try:
            outcome = asyncio.run(resolver.resolve(action, channel=channel))
        except Exception as e:
            logger.error(f"Map action error: {e}")
            return jsonify({"error": "Failed to resolve map action"}), 500

        return jsonify({
            "outcome": outcome.to_dict() if outcome is not None else None,
            "superseded": outcome is None,
            "view": resolver.view(channel).to_dict(),
        })

    @maps_bp.route("/session", methods=["POST"])
    def api_session():
        """Start a new session: drop cached lookups and map state."""
        get_resolver().start_session()
        return jsonify({"status": "ok"})

    return maps_bp


__all__ = ['create_maps_blueprint']
