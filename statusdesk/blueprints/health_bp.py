"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — service name and status
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database round trip with latency
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from statusdesk.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "service": "statusdesk"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe — always 200 if the app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {}
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
        healthy = True
    except SQLAlchemyError as exc:
        checks["database"] = {"status": "error"}
        healthy = False
        logger.error("Health check: database failed: %s", exc)

    return jsonify({"status": "ok" if healthy else "degraded", "checks": checks}), 200 if healthy else 503
