"""
Activity blueprint — read access to the activity log.

Endpoints:
    GET /api/v1/activity      — filtered activity (managers may widen to all users)
    GET /api/v1/activity/me   — the caller's own activity
"""

from flask import Blueprint, g, jsonify, request

from statusdesk.core.exceptions import AuthorizationError
from statusdesk.middleware.permission_required import require_auth
from statusdesk.services.activity_service import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT, ActivityLogService
from statusdesk.utils.helpers import parse_datetime, parse_int

activity_bp = Blueprint("activity", __name__, url_prefix="/api/v1/activity")


def _query(actor_id):
    svc = ActivityLogService()
    limit = parse_int(request.args.get("limit"), "limit", minimum=1, maximum=MAX_QUERY_LIMIT,
                      default=DEFAULT_QUERY_LIMIT)
    offset = parse_int(request.args.get("offset"), "offset", minimum=0, default=0)
    items = svc.query(
        actor_id=actor_id,
        action=request.args.get("action") or None,
        start=parse_datetime(request.args.get("start")),
        end=parse_datetime(request.args.get("end")),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [a.to_dict() for a in items],
        "limit": limit,
        "offset": offset,
        "retention_days": svc.retention_days,
    })


@activity_bp.route("", methods=["GET"])
@require_auth
def list_activity():
    """
    Query params:
        scope     — "all" to see every user's activity (manager)
        user_id   — one user's activity (manager, or your own id)
        action    — exact action text, e.g. "created timesheet"
        start     — ISO datetime; clamped to the retention window
        end       — ISO datetime
        limit     — 1..500 (default 100)
        offset    — default 0
    """
    user = g.current_user
    requested = request.args.get("user_id") or None
    wants_all = request.args.get("scope") == "all"

    if not user.is_manager and (wants_all or (requested and requested != user.id)):
        raise AuthorizationError("Only managers can view other users' activity")

    if user.is_manager and (wants_all or requested):
        actor_id = requested
    else:
        actor_id = user.id
    return _query(actor_id)


@activity_bp.route("/me", methods=["GET"])
@require_auth
def my_activity():
    return _query(g.current_user.id)
