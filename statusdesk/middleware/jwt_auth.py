"""
JWT Auth Middleware — parses the Bearer token, sets g.jwt_*.

The hook never rejects a request itself: it only records who the caller
claims to be. Endpoints opt in to authentication with the decorators in
``statusdesk.middleware.permission_required``.
"""

import logging

import jwt as pyjwt
from flask import g, request

from statusdesk.services.jwt_service import decode_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
    "/api/v1/public/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None
        g.jwt_error = None
        g.current_user = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        if path.startswith(JWT_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]
        try:
            payload = decode_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token has expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Invalid bearer token: %s", exc)
            g.jwt_error = "Invalid token"
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_role = payload.get("role")
