"""
JWT Auth Middleware - Parses JWT from Authorization header, sets g.jwt_user_id.

Invalid or expired tokens leave g.jwt_user_id as None; the permission
decorators then answer 401. This hook never blocks on its own.
"""

import logging

import jwt as pyjwt
from flask import g, request

from vic_tracker.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = payload.get("sub")
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
        except pyjwt.InvalidTokenError:
            logger.warning("Invalid access token on %s", path)
