"""
statusdesk
Board domain models — roadmap, feature status and task board.

Models:
    - RoadmapPhase: delivery milestone with ordered deliverables.
    - FeatureStatus: operational status of a product capability.
    - Task: work item on the kanban-style board.
"""

from statusdesk.models import db, iso, new_id, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

PHASE_STATUSES = ("completed", "current", "upcoming")
PHASE_HEALTH = ("on-track", "at-risk", "delayed")
DELIVERABLE_STATUSES = ("done", "pending", "in-progress")

FEATURE_STATUSES = ("operational", "degraded", "critical")

TASK_STATUSES = ("In Progress", "In Review", "Blocked", "Done")
TASK_PRIORITIES = ("High", "Medium", "Low")


class RoadmapPhase(db.Model):
    """
    Delivery milestone.

    ``deliverables`` is a JSON array of ``{text, status}``; its order is the
    display order. Phase labels are not unique.
    """

    __tablename__ = "roadmap_phases"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    phase = db.Column(db.String(100), nullable=False)
    date = db.Column(db.String(50), nullable=False, comment="date or quarter label, e.g. Q3 2026")
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="upcoming")
    health = db.Column(db.String(20), nullable=False, default="on-track")
    deliverables = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "phase": self.phase,
            "date": self.date,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "health": self.health,
            "deliverables": [dict(d) for d in (self.deliverables or [])],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class FeatureStatus(db.Model):
    __tablename__ = "feature_statuses"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="operational")
    public_note = db.Column(db.Text, nullable=False)
    linked_ticket = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "public_note": self.public_note,
            "linked_ticket": self.linked_ticket,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    assignee = db.Column(db.String(200), nullable=False, comment="free-text name, not a user FK")
    status = db.Column(db.String(20), nullable=False, default="In Progress")
    due_date = db.Column(db.String(20), nullable=False)
    priority = db.Column(db.String(10), nullable=False, default="Medium")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "assignee": self.assignee,
            "status": self.status,
            "due_date": self.due_date,
            "priority": self.priority,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
