"""
Timesheet blueprint — time log entry and the approval workflow.

Endpoints:
    POST   /api/v1/timelogs               — create (optional Idempotency-Key header)
    GET    /api/v1/timelogs               — list, scoped to the caller
    GET    /api/v1/timelogs/<id>          — single entry
    PUT    /api/v1/timelogs/<id>          — owner edit while pending
    PATCH  /api/v1/timelogs/<id>/status   — approve / reject (manager)
    DELETE /api/v1/timelogs/<id>          — delete
"""

from flask import Blueprint, g, jsonify, request

from statusdesk.core.scope import scope_for
from statusdesk.middleware.permission_required import require_auth
from statusdesk.services.timesheet_service import TimeLogService
from statusdesk.utils.errors import E, api_error

timesheet_bp = Blueprint("timesheet", __name__, url_prefix="/api/v1")

IDEMPOTENCY_HEADER = "Idempotency-Key"


@timesheet_bp.route("/timelogs", methods=["POST"])
@require_auth
def create_timelog():
    """
    Body: {date, hours, summary, tickets[], work_type}

    A repeated request with the same Idempotency-Key returns the entry
    created the first time with 200 instead of 201.
    """
    data = request.get_json(silent=True) or {}
    user = g.current_user
    key = request.headers.get(IDEMPOTENCY_HEADER)
    svc = TimeLogService()

    existing = svc.get_by_idempotency_key(user.id, key)
    if existing is not None:
        return jsonify(existing.to_dict()), 200

    entry = svc.create_entry(
        user.id,
        data.get("date"),
        data.get("hours"),
        data.get("summary"),
        tickets=data.get("tickets"),
        work_type=data.get("work_type") or "feature",
        idempotency_key=key,
    )
    return jsonify(entry.to_dict()), 201


@timesheet_bp.route("/timelogs", methods=["GET"])
@require_auth
def list_timelogs():
    """
    Query params:
        user_id     — owner filter (ignored beyond your own entries for developers)
        status      — pending | approved | rejected
        start_date  — inclusive, YYYY-MM-DD
        end_date    — inclusive, YYYY-MM-DD
    """
    entries = TimeLogService().list_entries(
        scope_for(g.current_user),
        user_id=request.args.get("user_id") or None,
        status=request.args.get("status") or None,
        start_date=request.args.get("start_date") or None,
        end_date=request.args.get("end_date") or None,
    )
    return jsonify([e.to_dict() for e in entries])


@timesheet_bp.route("/timelogs/<entry_id>", methods=["GET"])
@require_auth
def get_timelog(entry_id):
    entry = TimeLogService().get_entry(entry_id, scope_for(g.current_user))
    return jsonify(entry.to_dict())


@timesheet_bp.route("/timelogs/<entry_id>", methods=["PUT"])
@require_auth
def update_timelog(entry_id):
    data = request.get_json(silent=True) or {}
    entry = TimeLogService().update_entry(entry_id, g.current_user.id, data)
    return jsonify(entry.to_dict())


@timesheet_bp.route("/timelogs/<entry_id>/status", methods=["PATCH"])
@require_auth
def set_timelog_status(entry_id):
    """Body: {status: approved | rejected, comment?}"""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")

    entry = TimeLogService().set_status(
        entry_id,
        status,
        g.current_user.id,
        comment=data.get("comment"),
    )
    return jsonify(entry.to_dict())


@timesheet_bp.route("/timelogs/<entry_id>", methods=["DELETE"])
@require_auth
def delete_timelog(entry_id):
    TimeLogService().delete_entry(entry_id, g.current_user.id)
    return jsonify({"message": "Time log deleted"})
