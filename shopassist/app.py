"""Flask web app for the catalog-grounded shop assistant.

Serves the sync trigger, the retrieval debug endpoint and the chat
endpoint (see ``shopassist.api``).
"""

import base64
import os
from typing import Optional, Tuple

from flask import Flask, Response, jsonify, request

from feedsync.logging_config import setup_logging

from shopassist.api import api
from shopassist.config import FLASK_DEBUG, FLASK_HOST, FLASK_PORT, LOG_DIR

__all__ = ["create_app", "app"]

# Endpoints behind basic auth when ADMIN_USER/ADMIN_PASS are set
PROTECTED_PREFIXES = ("/api/sync", "/api/search")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


# ---------- BASIC AUTH ----------


def _basic_auth_creds() -> Tuple[Optional[str], Optional[str]]:
    """Get admin credentials from environment."""
    return os.getenv("ADMIN_USER"), os.getenv("ADMIN_PASS")


def _unauthorized() -> Response:
    return Response(
        "Authentication required",
        401,
        {"WWW-Authenticate": 'Basic realm="Login Required"'},
    )


def require_basic_auth() -> Optional[Response]:
    """
    Enforce HTTP Basic Auth for the sync and search endpoints.
    Skips enforcement if credentials are not configured (ADMIN_USER/ADMIN_PASS unset).
    """
    if request.method == "OPTIONS" or not request.path.startswith(PROTECTED_PREFIXES):
        return None

    user, password = _basic_auth_creds()
    if not user or not password:
        return None  # auth disabled

    header = request.headers.get("Authorization", "")
    if not header.startswith("Basic "):
        return _unauthorized()

    try:
        decoded = base64.b64decode(header.split(" ", 1)[1]).decode("utf-8")
        username, passwd = decoded.split(":", 1)
    except (ValueError, UnicodeDecodeError):
        return _unauthorized()

    if username == user and passwd == password:
        return None
    return _unauthorized()


def add_cors_headers(response: Response) -> Response:
    response.headers.update(CORS_HEADERS)
    return response


def create_app(configure_logging: bool = True) -> Flask:
    """Create the Flask app with the API blueprint registered.

    Args:
        configure_logging: Install console and JSONL handlers for the
            shopassist and feedsync loggers (sync runs log through feedsync)
    """
    if configure_logging:
        for package in ("shopassist", "feedsync"):
            setup_logging(package, log_dir=LOG_DIR)

    flask_app = Flask(__name__)
    flask_app.register_blueprint(api)
    flask_app.before_request(require_basic_auth)
    flask_app.after_request(add_cors_headers)

    @flask_app.route("/health", methods=["GET"])
    def health() -> Response:
        return jsonify({"status": "ok"})

    return flask_app


app = create_app()


if __name__ == "__main__":
    app.run(host=FLASK_HOST, port=FLASK_PORT, debug=FLASK_DEBUG)
