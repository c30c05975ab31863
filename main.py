"""
Map assistant – application entry point

* Flask app exposing the response interpreter and the map action resolver
  under `/api`.
* Google Maps and OpenAI clients are created lazily on first use, so the
  app starts without credentials (only the endpoints that need them fail).
"""

import logging

from flask import Flask, jsonify
from flask_cors import CORS
from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from mapchat.api.config import get_port  # noqa: E402
from mapchat.routes.maps import create_maps_blueprint  # noqa: E402


def create_app(resolver=None, reply_fn=None) -> Flask:
    """Build the Flask application.

    Args:
        resolver: Optional MapActionResolver (tests inject one with fakes)
        reply_fn: Optional chat reply function replacing the OpenAI call
    """
    app = Flask(__name__)

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*")

    app.register_blueprint(create_maps_blueprint(resolver=resolver, reply_fn=reply_fn))

    @app.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "mapchat"})

    return app


app = create_app()

# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting map assistant on http://localhost:%d", port)
    app.run(host="0.0.0.0", port=port, debug=False)

__all__ = ["app", "create_app"]
