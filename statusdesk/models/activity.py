"""
statusdesk
Activity domain model.

Models:
    - ActivityLog: immutable, append-only record of notable user actions,
      kept for a rolling retention window.
"""

from statusdesk.models import db, iso, new_id, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_TARGET_TYPES = frozenset({
    "feature", "report", "roadmap", "user", "task", "timesheet",
})

DEFAULT_RETENTION_DAYS = 60


class ActivityLog(db.Model):
    """
    One row per audited action.

    The actor's name and role are snapshotted so the trail stays readable
    after the user record changes or disappears.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_user_ts", "user_id", "timestamp"),
        db.Index("idx_activity_action", "action"),
        db.Index("idx_activity_ts", "timestamp"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), nullable=False)
    user_name = db.Column(db.String(200), nullable=False)
    user_role = db.Column(db.String(20), nullable=False)

    action = db.Column(
        db.String(120), nullable=False,
        comment="free-text verb: created timesheet | approved timesheet | …",
    )
    target_type = db.Column(db.String(20), nullable=True)
    target_id = db.Column(db.String(64), nullable=True)
    target_name = db.Column(db.String(255), nullable=True)
    details = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_role": self.user_role,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "details": self.details,
            "timestamp": iso(self.timestamp),
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.user_name} {self.action}>"
