"""
Activity Log Service — append-only audit trail with a rolling retention window.

Design decisions:
    - ActivityLog rows are never mutated; ``record`` only adds.
    - ``record`` flushes but does not commit, so an activity row lands in the
      same transaction as the change it describes.
    - Reads never reach further back than the retention window, whatever
      the caller asks for: entries that are about to be purged are already
      invisible, so results do not depend on when the sweep last ran.
    - ``purge_expired`` is run by the ``activity_retention_sweep`` job.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context, has_request_context, request

from statusdesk.core.exceptions import AuthenticationError, ValidationError
from statusdesk.models import utcnow
from statusdesk.models.activity import ACTIVITY_TARGET_TYPES, DEFAULT_RETENTION_DAYS, ActivityLog
from statusdesk.models.auth import User
from statusdesk.services.helpers.repository import Repository, SQLAlchemyRepository

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500


def get_client_ip() -> str | None:
    """Return the originating client IP, honouring X-Forwarded-For."""
    if not has_request_context():
        return None
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr


def get_user_agent() -> str | None:
    if not has_request_context():
        return None
    agent = request.headers.get("User-Agent")
    return agent[:255] if agent else None


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with the window bounds."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _configured_retention_days() -> int:
    if has_app_context():
        return int(current_app.config.get("ACTIVITY_RETENTION_DAYS", DEFAULT_RETENTION_DAYS))
    return DEFAULT_RETENTION_DAYS


class ActivityLogService:
    """Records and reads user activity.

    Args:
        logs: Repository over ActivityLog.
        users: Repository over User, used to resolve and snapshot the actor.
        retention_days: Window length; defaults to ``ACTIVITY_RETENTION_DAYS``.
    """

    def __init__(
        self,
        logs: Repository | None = None,
        users: Repository | None = None,
        retention_days: int | None = None,
    ) -> None:
        self.logs = logs or SQLAlchemyRepository(ActivityLog)
        self.users = users or SQLAlchemyRepository(User)
        self.retention_days = retention_days or _configured_retention_days()

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)

    def window_start(self, now: datetime | None = None) -> datetime:
        """Oldest timestamp still visible to readers."""
        return (_as_utc(now) or utcnow()) - self.retention

    # ── Write ─────────────────────────────────────────────────────────────

    def record(
        self,
        actor_id: str,
        action: str,
        target_type: str | None = None,
        target_id: str | None = None,
        target_name: str | None = None,
        details: dict | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ActivityLog:
        """Append one activity row for ``actor_id``.

        Request metadata (IP, user agent) is filled from the current request
        when not given explicitly.

        Raises:
            AuthenticationError: actor cannot be resolved.
            ValidationError: empty action or unknown target type.
        """
        actor = self.users.get(actor_id)
        if actor is None:
            raise AuthenticationError("Unknown user")

        action = (action or "").strip()
        if not action:
            raise ValidationError("action is required", details={"action": "required"})
        if target_type is not None and target_type not in ACTIVITY_TARGET_TYPES:
            raise ValidationError(
                f"Invalid target_type: {target_type!r}",
                details={"target_type": f"must be one of {sorted(ACTIVITY_TARGET_TYPES)}"},
            )

        entry = ActivityLog(
            user_id=actor.id,
            user_name=actor.name,
            user_role=actor.role,
            action=action,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            target_name=target_name,
            details=details,
            ip_address=ip_address or get_client_ip(),
            user_agent=user_agent or get_user_agent(),
            timestamp=utcnow(),
        )
        return self.logs.add(entry)

    # ── Read ──────────────────────────────────────────────────────────────

    def query(
        self,
        actor_id: str | None = None,
        action: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
        now: datetime | None = None,
    ) -> list[ActivityLog]:
        """Return activity newest first, never older than the retention window."""
        floor = self.window_start(now)
        start = _as_utc(start)
        if start is None or start < floor:
            start = floor

        limit = max(1, min(int(limit or DEFAULT_QUERY_LIMIT), MAX_QUERY_LIMIT))
        offset = max(0, int(offset or 0))

        filters = {"timestamp__gte": start}
        if end is not None:
            filters["timestamp__lte"] = _as_utc(end)
        if actor_id:
            filters["user_id"] = actor_id
        if action:
            filters["action"] = action

        return self.logs.find(order_by=("-timestamp",), limit=limit, offset=offset, **filters)

    # ── Retention ─────────────────────────────────────────────────────────

    def purge_expired(self, now: datetime | None = None) -> int:
        """Hard-delete entries older than the retention window; return the count."""
        cutoff = self.window_start(now)
        removed = self.logs.delete_where(timestamp__lt=cutoff)
        self.logs.commit()
        logger.info(
            "Activity retention sweep removed %d entries",
            removed,
            extra={"operation": "activity_purge", "cutoff": cutoff.isoformat()},
        )
        return removed
