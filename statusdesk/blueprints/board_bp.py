"""
Board blueprint — roadmap phases, feature statuses and tasks.

Every board exposes the same five routes; reads are open to any signed-in
user, writes are manager-only.

    GET    /api/v1/<board>          — list
    POST   /api/v1/<board>          — create
    GET    /api/v1/<board>/<id>     — single item
    PATCH  /api/v1/<board>/<id>     — partial update
    DELETE /api/v1/<board>/<id>     — delete

where <board> is one of roadmap, features, tasks.
"""

from flask import Blueprint, g, jsonify, request

from statusdesk.middleware.permission_required import require_auth, require_roles
from statusdesk.services import board_service

board_bp = Blueprint("board", __name__, url_prefix="/api/v1")

# URL segment → board kind
BOARD_ROUTES = {
    "roadmap": "roadmap",
    "features": "feature",
    "tasks": "task",
}


def _register(segment: str, kind: str) -> None:
    @require_auth
    def list_view():
        return jsonify([item.to_dict() for item in board_service.list_items(kind)])

    @require_roles("manager")
    def create_view():
        data = request.get_json(silent=True) or {}
        item = board_service.create_item(kind, data, actor_id=g.current_user.id)
        return jsonify(item.to_dict()), 201

    @require_auth
    def get_view(item_id):
        return jsonify(board_service.get_item(kind, item_id).to_dict())

    @require_roles("manager")
    def update_view(item_id):
        data = request.get_json(silent=True) or {}
        item = board_service.update_item(kind, item_id, data, actor_id=g.current_user.id)
        return jsonify(item.to_dict())

    @require_roles("manager")
    def delete_view(item_id):
        board_service.delete_item(kind, item_id, actor_id=g.current_user.id)
        return jsonify({"message": "Deleted"})

    base = f"/{segment}"
    board_bp.add_url_rule(base, f"list_{kind}", list_view, methods=["GET"])
    board_bp.add_url_rule(base, f"create_{kind}", create_view, methods=["POST"])
    board_bp.add_url_rule(f"{base}/<item_id>", f"get_{kind}", get_view, methods=["GET"])
    board_bp.add_url_rule(f"{base}/<item_id>", f"update_{kind}", update_view, methods=["PATCH"])
    board_bp.add_url_rule(f"{base}/<item_id>", f"delete_{kind}", delete_view, methods=["DELETE"])


for _segment, _kind in BOARD_ROUTES.items():
    _register(_segment, _kind)
