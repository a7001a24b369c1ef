"""
Finance blueprint — payment tracking and shared invoice links.

Endpoints (manager, finance):
    GET    /api/v1/finance/payments?month&year&period           — payment rows
    POST   /api/v1/finance/payments/<user_id>/paid              — body {period, month, year, notes?}
    POST   /api/v1/finance/payments/<user_id>/pending           — body {period, month, year}
    GET    /api/v1/finance/shared-links                         — list links
    POST   /api/v1/finance/shared-links                         — body {period, month, year, expires_at?}
    DELETE /api/v1/finance/shared-links/<token>                 — revoke
"""

from flask import Blueprint, g, jsonify, request

from statusdesk.core.exceptions import ValidationError
from statusdesk.middleware.permission_required import require_roles
from statusdesk.models.auth import FINANCE_ROLES
from statusdesk.services import finance_service
from statusdesk.utils.helpers import parse_datetime, parse_int

finance_bp = Blueprint("finance", __name__, url_prefix="/api/v1/finance")


def _period_body(data: dict) -> tuple[str, int, int]:
    half = data.get("period")
    if not half:
        raise ValidationError("period is required", details={"period": "required"})
    month = parse_int(data.get("month"), "month", minimum=1, maximum=12)
    year = parse_int(data.get("year"), "year", minimum=2000, maximum=2100)
    return half, month, year


# ── Payments ────────────────────────────────────────────────────────────


@finance_bp.route("/payments", methods=["GET"])
@require_roles(*FINANCE_ROLES)
def list_payments():
    """
    Query params:
        month   — required
        year    — required
        period  — P1 | P2; omitted lists both halves
    """
    month = parse_int(request.args.get("month"), "month", minimum=1, maximum=12)
    year = parse_int(request.args.get("year"), "year", minimum=2000, maximum=2100)
    records = finance_service.list_payment_records(year, month, request.args.get("period") or None)
    return jsonify(records)


@finance_bp.route("/payments/<user_id>/paid", methods=["POST"])
@require_roles(*FINANCE_ROLES)
def mark_paid(user_id):
    data = request.get_json(silent=True) or {}
    half, month, year = _period_body(data)
    user = g.current_user
    record = finance_service.mark_paid(
        user_id, half, month, year, paid_by=user.name, actor_id=user.id, notes=data.get("notes"),
    )
    return jsonify(record)


@finance_bp.route("/payments/<user_id>/pending", methods=["POST"])
@require_roles(*FINANCE_ROLES)
def mark_pending(user_id):
    half, month, year = _period_body(request.get_json(silent=True) or {})
    record = finance_service.mark_pending(user_id, half, month, year, actor_id=g.current_user.id)
    return jsonify(record)


# ── Shared links ────────────────────────────────────────────────────────


@finance_bp.route("/shared-links", methods=["GET"])
@require_roles(*FINANCE_ROLES)
def list_shared_links():
    return jsonify(finance_service.list_shared_links())


@finance_bp.route("/shared-links", methods=["POST"])
@require_roles(*FINANCE_ROLES)
def create_shared_link():
    data = request.get_json(silent=True) or {}
    half, month, year = _period_body(data)
    expires_at = None
    if data.get("expires_at"):
        expires_at = parse_datetime(data["expires_at"])
        if expires_at is None:
            raise ValidationError("expires_at must be an ISO datetime", details={"expires_at": "invalid"})
    link = finance_service.create_shared_link(year, month, half, g.current_user.id, expires_at=expires_at)
    return jsonify(link), 201


@finance_bp.route("/shared-links/<token>", methods=["DELETE"])
@require_roles(*FINANCE_ROLES)
def delete_shared_link(token):
    finance_service.delete_shared_link(token)
    return jsonify({"message": "Shared link deleted"})
