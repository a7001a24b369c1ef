"""
Time Log Service — entry lifecycle and the approval workflow.

State machine:
    pending ──approve──▶ approved
       └────reject───▶ rejected

Decided entries are terminal: they cannot be edited, re-decided or deleted
by their owner.

Design decisions:
    - Scope is a required argument on every read; the service applies it, so
      a developer can never list or fetch another user's entries.
    - Status changes and owner edits are compare-and-set updates
      (``WHERE status = 'pending'``). Two managers deciding the same entry
      concurrently cannot overwrite each other; the loser gets
      InvalidStateTransition.
    - Deletion sets a tombstone; ``purge_tombstones`` removes tombstones once
      they are older than ``TIMELOG_TOMBSTONE_DAYS``.
    - Each write records its activity row in the same transaction.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from numbers import Real

from flask import current_app, has_app_context

from statusdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from statusdesk.core.scope import AllScope, Scope, SelfScope
from statusdesk.models import utcnow
from statusdesk.models.auth import User
from statusdesk.models.timesheet import (
    MAX_HOURS_PER_ENTRY,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    TIMELOG_STATUSES,
    WORK_TYPES,
    TimeLog,
)
from statusdesk.services.activity_service import ActivityLogService
from statusdesk.services.helpers.repository import Repository, SQLAlchemyRepository
from statusdesk.utils.helpers import parse_date_strict

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("date", "hours", "summary", "tickets", "work_type")
DECISION_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)
DEFAULT_TOMBSTONE_DAYS = 60
MAX_IDEMPOTENCY_KEY_LENGTH = 128


# ── Field validation ─────────────────────────────────────────────────────────


def _clean_hours(value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("hours must be a number", details={"hours": "not a number"})
    hours = float(value)
    if not math.isfinite(hours):
        raise ValidationError("hours must be a finite number", details={"hours": "not finite"})
    if hours <= 0:
        raise ValidationError("hours must be greater than 0", details={"hours": "must be > 0"})
    if hours > MAX_HOURS_PER_ENTRY:
        raise ValidationError(
            f"hours cannot exceed {MAX_HOURS_PER_ENTRY}",
            details={"hours": f"must be <= {MAX_HOURS_PER_ENTRY}"},
        )
    return hours


def _clean_summary(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("summary is required", details={"summary": "required"})
    return value.strip()


def _clean_tickets(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError("tickets must be a list", details={"tickets": "not a list"})
    cleaned = []
    for ticket in value:
        if not isinstance(ticket, str) or not ticket.strip():
            raise ValidationError(
                "tickets must contain non-empty strings",
                details={"tickets": "empty or non-string item"},
            )
        cleaned.append(ticket.strip())
    return cleaned


def _clean_work_type(value) -> str:
    if value not in WORK_TYPES:
        raise ValidationError(
            f"Invalid work_type: {value!r}",
            details={"work_type": f"must be one of {list(WORK_TYPES)}"},
        )
    return value


_CLEANERS = {
    "date": lambda v: parse_date_strict(v, "date"),
    "hours": _clean_hours,
    "summary": _clean_summary,
    "tickets": _clean_tickets,
    "work_type": _clean_work_type,
}


def validate_entry_fields(data: dict, *, partial: bool = False) -> dict:
    """Validate editable fields; return the cleaned values.

    All field errors are collected so the response lists every problem.
    With ``partial=True`` only the supplied fields are checked.
    """
    cleaned: dict = {}
    errors: dict = {}
    first_message = None
    for field in EDITABLE_FIELDS:
        if partial and field not in data:
            continue
        raw = data.get(field)
        if field == "work_type" and raw is None and not partial:
            raw = "feature"
        try:
            cleaned[field] = _CLEANERS[field](raw)
        except ValidationError as exc:
            errors.update(exc.details or {field: str(exc)})
            first_message = first_message or str(exc)
    if errors:
        raise ValidationError(first_message, details=errors)
    return cleaned


def _clean_status_filter(status):
    if status is None or status == "":
        return None
    if status not in TIMELOG_STATUSES:
        raise ValidationError(
            f"Invalid status: {status!r}",
            details={"status": f"must be one of {list(TIMELOG_STATUSES)}"},
        )
    return status


def normalize_idempotency_key(value) -> str | None:
    """Strip and truncate a client key; blank keys count as no key."""
    return (value or "").strip()[:MAX_IDEMPOTENCY_KEY_LENGTH] or None


def _configured_tombstone_days() -> int:
    if has_app_context():
        return int(current_app.config.get("TIMELOG_TOMBSTONE_DAYS", DEFAULT_TOMBSTONE_DAYS))
    return DEFAULT_TOMBSTONE_DAYS


class TimeLogService:
    """Creates, reads, edits, decides and deletes time entries.

    Args:
        entries: Repository over TimeLog.
        users: Repository over User.
        activity: Activity service sharing the same transaction.
    """

    def __init__(
        self,
        entries: Repository | None = None,
        users: Repository | None = None,
        activity: ActivityLogService | None = None,
        tombstone_days: int | None = None,
    ) -> None:
        self.entries = entries or SQLAlchemyRepository(TimeLog)
        self.users = users or SQLAlchemyRepository(User)
        self.activity = activity or ActivityLogService(users=self.users)
        self.tombstone_days = tombstone_days or _configured_tombstone_days()

    def _resolve_user(self, user_id) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise AuthenticationError("Unknown user")
        return user

    # ── Create ────────────────────────────────────────────────────────────

    def get_by_idempotency_key(self, user_id: str, idempotency_key: str | None) -> TimeLog | None:
        """Return the entry ``user_id`` already created with this key, if any.

        Raises:
            ConflictError: the key belongs to an entry that has since been deleted.
        """
        key = normalize_idempotency_key(idempotency_key)
        if key is None:
            return None
        entry = self.entries.first(user_id=user_id, idempotency_key=key, include_deleted=True)
        if entry is not None and entry.is_deleted:
            raise ConflictError(
                "TimeLog",
                "idempotency_key",
                key,
                message="Idempotency key was already used for a deleted time log",
            )
        return entry

    def create_entry(
        self,
        user_id: str,
        date,
        hours,
        summary,
        tickets=None,
        work_type="feature",
        idempotency_key: str | None = None,
    ) -> TimeLog:
        """Create a pending entry owned by ``user_id``.

        When ``idempotency_key`` matches an entry this user already created,
        that entry is returned and nothing is written.
        """
        user = self._resolve_user(user_id)
        if not user.can_log_time:
            raise AuthorizationError(f"Role {user.role!r} cannot log time")

        key = normalize_idempotency_key(idempotency_key)
        existing = self.get_by_idempotency_key(user.id, key)
        if existing is not None:
            logger.info(
                "Time log create replayed",
                extra={"entry_id": existing.id, "user_id": user.id, "operation": "create_replay"},
            )
            return existing

        fields = validate_entry_fields({
            "date": date,
            "hours": hours,
            "summary": summary,
            "tickets": tickets,
            "work_type": work_type,
        })

        entry = TimeLog(
            user_id=user.id,
            user_name=user.name,
            user_role=user.role,
            status=STATUS_PENDING,
            approved_by=None,
            idempotency_key=key,
            **fields,
        )
        try:
            self.entries.add(entry)
            self.activity.record(
                user.id,
                "created timesheet",
                target_type="timesheet",
                target_id=entry.id,
                target_name=f"{fields['hours']:g}h on {fields['date'].isoformat()}",
                details={"hours": fields["hours"], "work_type": fields["work_type"]},
            )
            self.entries.commit()
        except ConflictError:
            # Concurrent insert with the same key won the unique constraint.
            winner = self.get_by_idempotency_key(user.id, key)
            if winner is None:
                raise
            return winner

        logger.info(
            "Time log created",
            extra={"entry_id": entry.id, "user_id": user.id, "operation": "create"},
        )
        return entry

    # ── Read ──────────────────────────────────────────────────────────────

    def get_entry(self, entry_id: str, scope: Scope) -> TimeLog:
        entry = self.entries.get(entry_id)
        if entry is None or not scope.allows(entry.user_id):
            raise NotFoundError(resource="TimeLog", resource_id=entry_id)
        return entry

    def list_entries(
        self,
        scope: Scope,
        user_id: str | None = None,
        status: str | None = None,
        start_date=None,
        end_date=None,
    ) -> list[TimeLog]:
        """Entries visible under ``scope`` matching every supplied filter.

        Ordered by date descending, then creation time descending.
        """
        filters: dict = {}
        if isinstance(scope, SelfScope):
            if user_id and user_id != scope.user_id:
                return []
            filters["user_id"] = scope.user_id
        elif not isinstance(scope, AllScope):
            raise TypeError(f"Unsupported scope: {scope!r}")
        elif user_id:
            filters["user_id"] = user_id

        status = _clean_status_filter(status)
        if status:
            filters["status"] = status
        if start_date:
            filters["date__gte"] = parse_date_strict(start_date, "start_date")
        if end_date:
            filters["date__lte"] = parse_date_strict(end_date, "end_date")

        return self.entries.find(order_by=("-date", "-created_at"), **filters)

    # ── Update ────────────────────────────────────────────────────────────

    def update_entry(self, entry_id: str, actor_id: str, changes: dict) -> TimeLog:
        """Owner edit of a pending entry's content fields."""
        actor = self._resolve_user(actor_id)
        entry = self.entries.get(entry_id)
        if entry is None:
            raise NotFoundError(resource="TimeLog", resource_id=entry_id)
        if entry.user_id != actor.id:
            raise AuthorizationError("Only the owner can edit a time log")
        if not entry.is_pending:
            raise InvalidStateTransition("TimeLog", entry.status)

        cleaned = validate_entry_fields(changes or {}, partial=True)
        if not cleaned:
            raise ValidationError(
                "No editable fields supplied",
                details={"fields": f"expected any of {list(EDITABLE_FIELDS)}"},
            )

        updated = self.entries.update_where(
            {**cleaned, "updated_at": utcnow()},
            id=entry_id,
            status=STATUS_PENDING,
        )
        if updated == 0:
            current = self.entries.get(entry_id)
            if current is None:
                raise NotFoundError(resource="TimeLog", resource_id=entry_id)
            raise InvalidStateTransition("TimeLog", current.status)

        self.activity.record(
            actor.id,
            "updated timesheet",
            target_type="timesheet",
            target_id=entry_id,
            details={"fields": sorted(cleaned)},
        )
        self.entries.commit()
        logger.info(
            "Time log updated",
            extra={"entry_id": entry_id, "user_id": actor.id, "operation": "update"},
        )
        return self.entries.get(entry_id)

    def set_status(
        self,
        entry_id: str,
        new_status: str,
        approver_id: str,
        comment: str | None = None,
    ) -> TimeLog:
        """Approve or reject a pending entry.

        Raises:
            AuthenticationError: approver cannot be resolved.
            AuthorizationError: approver is not a manager.
            ValidationError: target status is not approved/rejected.
            NotFoundError: entry unknown or deleted.
            InvalidStateTransition: entry was already decided.
        """
        approver = self._resolve_user(approver_id)
        if not approver.is_manager:
            raise AuthorizationError("Only managers can approve or reject time logs")
        if new_status not in DECISION_STATUSES:
            raise ValidationError(
                f"Invalid status: {new_status!r}",
                details={"status": f"must be one of {list(DECISION_STATUSES)}"},
            )

        values = {
            "status": new_status,
            "approved_by": approver.id,
            "updated_at": utcnow(),
        }
        if isinstance(comment, str) and comment.strip():
            values["manager_comment"] = comment.strip()

        updated = self.entries.update_where(values, id=entry_id, status=STATUS_PENDING)
        if updated == 0:
            current = self.entries.get(entry_id)
            if current is None:
                raise NotFoundError(resource="TimeLog", resource_id=entry_id)
            raise InvalidStateTransition("TimeLog", current.status, new_status)

        entry = self.entries.get(entry_id)
        verb = "approved" if new_status == STATUS_APPROVED else "rejected"
        self.activity.record(
            approver.id,
            f"{verb} timesheet",
            target_type="timesheet",
            target_id=entry.id,
            target_name=f"{entry.user_name} {entry.date.isoformat()}",
            details={"hours": entry.hours, "comment": values.get("manager_comment")},
        )
        self.entries.commit()
        logger.info(
            "Time log %s", verb,
            extra={"entry_id": entry.id, "user_id": approver.id, "operation": "set_status"},
        )
        return entry

    # ── Delete ────────────────────────────────────────────────────────────

    def delete_entry(self, entry_id: str, requester_id: str) -> None:
        """Tombstone an entry.

        Managers may delete any entry; owners only their own pending ones.
        """
        requester = self._resolve_user(requester_id)
        entry = self.entries.get(entry_id)
        if entry is None:
            raise NotFoundError(resource="TimeLog", resource_id=entry_id)
        if not requester.is_manager:
            if entry.user_id != requester.id:
                raise AuthorizationError("You can only delete your own time logs")
            if not entry.is_pending:
                raise AuthorizationError("Decided time logs can only be deleted by a manager")

        snapshot = entry.to_dict()
        deleted = self.entries.update_where({"deleted_at": utcnow()}, id=entry_id)
        if deleted == 0:
            raise NotFoundError(resource="TimeLog", resource_id=entry_id)

        self.activity.record(
            requester.id,
            "deleted timesheet",
            target_type="timesheet",
            target_id=entry_id,
            target_name=f"{snapshot['user_name']} {snapshot['date']}",
            details=snapshot,
        )
        self.entries.commit()
        logger.info(
            "Time log deleted",
            extra={"entry_id": entry_id, "user_id": requester.id, "operation": "delete"},
        )

    def purge_tombstones(self, now: datetime | None = None) -> int:
        """Physically remove entries deleted more than ``tombstone_days`` ago."""
        cutoff = (now or utcnow()) - timedelta(days=self.tombstone_days)
        removed = self.entries.delete_where(deleted_at__lt=cutoff)
        self.entries.commit()
        logger.info(
            "Time log tombstone purge removed %d entries",
            removed,
            extra={"operation": "timelog_purge", "cutoff": cutoff.isoformat()},
        )
        return removed
