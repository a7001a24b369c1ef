"""
Auth blueprint — login, current user, password change.

Endpoints:
    POST /api/v1/auth/login     — email + password → bearer token
    GET  /api/v1/auth/me        — the authenticated user
    POST /api/v1/auth/password  — change own password, or (manager) reset another user's
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from statusdesk import limiter
from statusdesk.middleware.permission_required import require_auth
from statusdesk.services import user_service
from statusdesk.services.activity_service import ActivityLogService
from statusdesk.services.jwt_service import generate_access_token, get_access_expires
from statusdesk.utils.errors import E, api_error
from statusdesk.utils.helpers import db_commit_or_raise

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")

_login_limit = limiter.shared_limit(
    lambda: current_app.config.get("LOGIN_RATE_LIMIT", "10/minute"),
    scope="login",
)


@auth_bp.route("/login", methods=["POST"])
@_login_limit
def login():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "email and password are required")

    user = user_service.authenticate(email, password)

    ActivityLogService().record(user.id, "logged in", target_type="user", target_id=user.id, target_name=user.name)
    db_commit_or_raise()
    logger.info("Login succeeded", extra={"user_id": user.id, "operation": "login"})

    return jsonify({
        "access_token": generate_access_token(user.id, user.role),
        "token_type": "Bearer",
        "expires_in": get_access_expires(),
        "user": user.to_dict(),
    })


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return jsonify(g.current_user.to_dict())


@auth_bp.route("/password", methods=["POST"])
@require_auth
def change_password():
    """
    Body:
        new_password      — required
        current_password  — required when changing your own password
        user_id           — optional; managers may reset another user's password
    """
    data = request.get_json(silent=True) or {}
    target_id = data.get("user_id") or g.current_user.id
    user_service.change_password(
        target_id,
        data.get("new_password"),
        current_password=data.get("current_password"),
        requester=g.current_user,
    )
    return jsonify({"message": "Password updated"})
