"""
User blueprint — user administration.

Endpoints:
    GET    /api/v1/users          — list (?role=developer)
    POST   /api/v1/users          — create (manager)
    GET    /api/v1/users/<id>     — single user (self, or manager / leadership / finance)
    PATCH  /api/v1/users/<id>     — update (manager)
    DELETE /api/v1/users/<id>     — delete (manager)
    GET    /api/v1/users/<id>/bank-details   — payout account (manager, finance)
    PUT    /api/v1/users/<id>/bank-details   — replace it
    DELETE /api/v1/users/<id>/bank-details   — clear it
"""

from flask import Blueprint, g, jsonify, request

from statusdesk.core.exceptions import AuthorizationError
from statusdesk.middleware.permission_required import require_auth, require_roles
from statusdesk.models.auth import FINANCE_ROLES, GLOBAL_VIEW_ROLES
from statusdesk.services import user_service

user_bp = Blueprint("user", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
@require_roles(*GLOBAL_VIEW_ROLES)
def list_users():
    users = user_service.list_users(role=request.args.get("role") or None)
    return jsonify([u.to_dict() for u in users])


@user_bp.route("", methods=["POST"])
@require_roles("manager")
def create_user():
    data = request.get_json(silent=True) or {}
    user = user_service.create_user(data, actor_id=g.current_user.id)
    return jsonify(user.to_dict()), 201


@user_bp.route("/<user_id>", methods=["GET"])
@require_auth
def get_user(user_id):
    caller = g.current_user
    if caller.id != user_id and caller.role not in GLOBAL_VIEW_ROLES:
        raise AuthorizationError()
    return jsonify(user_service.get_user(user_id).to_dict())


@user_bp.route("/<user_id>", methods=["PATCH"])
@require_roles("manager")
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    user = user_service.update_user(user_id, data, actor_id=g.current_user.id)
    return jsonify(user.to_dict())


@user_bp.route("/<user_id>", methods=["DELETE"])
@require_roles("manager")
def delete_user(user_id):
    user_service.delete_user(user_id, g.current_user.id)
    return jsonify({"message": "User deleted"})


# ── Bank details (manager, finance) ─────────────────────────────────────


@user_bp.route("/<user_id>/bank-details", methods=["GET"])
@require_roles(*FINANCE_ROLES)
def get_bank_details(user_id):
    return jsonify(user_service.bank_details_view(user_service.get_user(user_id)))


@user_bp.route("/<user_id>/bank-details", methods=["PUT"])
@require_roles(*FINANCE_ROLES)
def update_bank_details(user_id):
    """Body: {account_name, bank_name, account_number, branch_name?, branch_code?, country?, currency?, notes?}"""
    data = request.get_json(silent=True) or {}
    user = user_service.update_bank_details(user_id, data, actor_id=g.current_user.id)
    return jsonify(user_service.bank_details_view(user))


@user_bp.route("/<user_id>/bank-details", methods=["DELETE"])
@require_roles(*FINANCE_ROLES)
def clear_bank_details(user_id):
    user = user_service.clear_bank_details(user_id, actor_id=g.current_user.id)
    return jsonify(user_service.bank_details_view(user))
