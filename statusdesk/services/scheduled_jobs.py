"""
statusdesk
Scheduled Jobs — retention maintenance.

Jobs:
    - activity_retention_sweep: deletes activity older than the retention window
    - timelog_tombstone_purge: removes soft-deleted time logs past their retention
"""

from __future__ import annotations

import logging
from typing import Any

from statusdesk.services.activity_service import ActivityLogService
from statusdesk.services.scheduler_service import register_job
from statusdesk.services.timesheet_service import TimeLogService

logger = logging.getLogger(__name__)


@register_job("activity_retention_sweep")
def sweep_expired_activity(app) -> dict[str, Any]:
    """Delete activity log entries older than ACTIVITY_RETENTION_DAYS."""
    svc = ActivityLogService(retention_days=app.config.get("ACTIVITY_RETENTION_DAYS"))
    return {"deleted": svc.purge_expired(), "retention_days": svc.retention_days}


@register_job("timelog_tombstone_purge")
def purge_timelog_tombstones(app) -> dict[str, Any]:
    """Physically remove time logs soft-deleted more than TIMELOG_TOMBSTONE_DAYS ago."""
    svc = TimeLogService(tombstone_days=app.config.get("TIMELOG_TOMBSTONE_DAYS"))
    return {"purged": svc.purge_tombstones(), "tombstone_days": svc.tombstone_days}
