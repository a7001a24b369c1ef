"""
Public blueprint — token-authenticated invoice pages.

No bearer token is needed; the shared-link token is the credential and
only covers its own billing period.

Endpoints:
    GET  /api/v1/public/invoices/<token>                       — invoice for the link's period
    POST /api/v1/public/invoices/<token>/payments/<user_id>/paid
    POST /api/v1/public/invoices/<token>/payments/<user_id>/pending
"""

from flask import Blueprint, jsonify

from statusdesk.services import finance_service

public_bp = Blueprint("public", __name__, url_prefix="/api/v1/public")


@public_bp.route("/invoices/<token>", methods=["GET"])
def get_invoice(token):
    return jsonify(finance_service.public_invoice(token))


@public_bp.route("/invoices/<token>/payments/<user_id>/paid", methods=["POST"])
def mark_paid(token, user_id):
    return jsonify(finance_service.mark_paid_via_link(token, user_id, paid=True))


@public_bp.route("/invoices/<token>/payments/<user_id>/pending", methods=["POST"])
def mark_pending(token, user_id):
    return jsonify(finance_service.mark_paid_via_link(token, user_id, paid=False))
