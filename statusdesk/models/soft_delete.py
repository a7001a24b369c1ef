"""
Soft Delete Mixin

Adds a `deleted_at` tombstone column. Models that include this mixin are
marked as deleted rather than physically removed; a scheduled purge removes
tombstones once they age past the retention window.

Usage:
    class TimeLog(SoftDeleteMixin, db.Model):
        ...

    repo.update_where({"deleted_at": utcnow()}, id=entry_id)
"""

from statusdesk.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    @property
    def is_deleted(self):
        return self.deleted_at is not None
