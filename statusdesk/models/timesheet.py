"""
statusdesk
Timesheet domain model.

Models:
    - TimeLog: one user's reported work for one calendar day, gated by the
      pending → approved | rejected approval workflow.
"""

from statusdesk.models import db, iso, new_id, utcnow
from statusdesk.models.soft_delete import SoftDeleteMixin

# ── Constants ────────────────────────────────────────────────────────────────

WORK_TYPES = (
    "feature", "bug", "refactor", "testing", "documentation", "planning",
    "review", "meeting", "content", "campaign", "analytics", "other",
)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

TIMELOG_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

# Allowed transitions: decided entries are terminal.
STATUS_TRANSITIONS = {
    STATUS_PENDING: frozenset({STATUS_APPROVED, STATUS_REJECTED}),
    STATUS_APPROVED: frozenset(),
    STATUS_REJECTED: frozenset(),
}

MAX_HOURS_PER_ENTRY = 24


class TimeLog(SoftDeleteMixin, db.Model):
    """
    A single time entry.

    ``user_name`` / ``user_role`` are snapshots taken at creation time;
    ``user_id`` is not a foreign key, the owner is validated by the service.
    """

    __tablename__ = "time_logs"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_time_logs_user_idempotency"),
        db.Index("idx_time_logs_user_date", "user_id", "date"),
        db.Index("idx_time_logs_status_date", "status", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    user_name = db.Column(db.String(200), nullable=False)
    user_role = db.Column(db.String(20), nullable=False)

    date = db.Column(db.Date, nullable=False, index=True)
    hours = db.Column(db.Float, nullable=False)
    summary = db.Column(db.Text, nullable=False)
    tickets = db.Column(db.JSON, nullable=False, default=list)
    work_type = db.Column(db.String(30), nullable=False, default="feature", index=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    approved_by = db.Column(db.String(36), nullable=True)
    manager_comment = db.Column(db.Text, nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    @property
    def is_billable(self) -> bool:
        return self.status == STATUS_APPROVED and not self.is_deleted

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_role": self.user_role,
            "date": iso(self.date),
            "hours": self.hours,
            "summary": self.summary,
            "tickets": list(self.tickets or []),
            "work_type": self.work_type,
            "status": self.status,
            "approved_by": self.approved_by,
            "manager_comment": self.manager_comment,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<TimeLog {self.id}: {self.user_id} {self.date} {self.hours}h [{self.status}]>"
