"""
Admin blueprint — scheduled job inspection and manual runs.

Endpoints (manager):
    GET  /api/v1/admin/jobs               — registered jobs with their last run
    POST /api/v1/admin/jobs/<name>/run    — run a job now
"""

import logging

from flask import Blueprint, g, jsonify

from statusdesk.core.exceptions import NotFoundError
from statusdesk.middleware.permission_required import require_roles
from statusdesk.services.scheduler_service import SchedulerService, get_registered_jobs

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.route("/jobs", methods=["GET"])
@require_roles("manager")
def list_jobs():
    return jsonify(SchedulerService.list_jobs())


@admin_bp.route("/jobs/<job_name>/run", methods=["POST"])
@require_roles("manager")
def run_job(job_name):
    if job_name not in get_registered_jobs():
        raise NotFoundError(resource="Job", resource_id=job_name)

    logger.info("Manual job run requested", extra={"user_id": g.current_user.id, "operation": job_name})
    outcome = SchedulerService.run_job(job_name)
    status = 200 if outcome["status"] == "success" else 500
    return jsonify(outcome), status
