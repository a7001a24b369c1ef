"""
Board Service — roadmap phases, feature statuses and tasks.

The three boards share one CRUD implementation driven by ``BOARDS``: each
entry names the model, required fields, enum-constrained fields with their
defaults, and the activity target type written on every change.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select

from statusdesk.core.exceptions import NotFoundError, ValidationError
from statusdesk.models import db
from statusdesk.models.board import (
    DELIVERABLE_STATUSES,
    FEATURE_STATUSES,
    PHASE_HEALTH,
    PHASE_STATUSES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    FeatureStatus,
    RoadmapPhase,
    Task,
)
from statusdesk.services.activity_service import ActivityLogService
from statusdesk.utils.helpers import db_commit_or_raise

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Board:
    model: type
    label: str
    target_type: str
    required: tuple
    optional: tuple = ()
    enums: dict = field(default_factory=dict)
    order_by: str = "created_at"
    title_field: str = "name"


BOARDS = {
    "roadmap": Board(
        model=RoadmapPhase,
        label="RoadmapPhase",
        target_type="roadmap",
        required=("phase", "date", "title", "description"),
        optional=("deliverables",),
        enums={"status": (PHASE_STATUSES, "upcoming"), "health": (PHASE_HEALTH, "on-track")},
        order_by="date",
        title_field="title",
    ),
    "feature": Board(
        model=FeatureStatus,
        label="FeatureStatus",
        target_type="feature",
        required=("name", "public_note"),
        optional=("linked_ticket",),
        enums={"status": (FEATURE_STATUSES, "operational")},
    ),
    "task": Board(
        model=Task,
        label="Task",
        target_type="task",
        required=("name", "assignee", "due_date"),
        enums={"status": (TASK_STATUSES, "In Progress"), "priority": (TASK_PRIORITIES, "Medium")},
    ),
}


def _board(kind: str) -> Board:
    try:
        return BOARDS[kind]
    except KeyError:
        raise ValueError(f"Unknown board {kind!r}") from None


def _clean_deliverables(value) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("deliverables must be a list", details={"deliverables": "not a list"})
    cleaned = []
    for item in value:
        if not isinstance(item, dict) or not str(item.get("text") or "").strip():
            raise ValidationError(
                "Each deliverable needs a text", details={"deliverables": "missing text"},
            )
        status = item.get("status") or "pending"
        if status not in DELIVERABLE_STATUSES:
            raise ValidationError(
                f"Invalid deliverable status: {status!r}",
                details={"deliverables": f"status must be one of {list(DELIVERABLE_STATUSES)}"},
            )
        cleaned.append({"text": str(item["text"]).strip(), "status": status})
    return cleaned


def _clean(board: Board, data: dict, *, partial: bool) -> dict:
    cleaned = {}
    errors = {}
    for name in board.required:
        if partial and name not in data:
            continue
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = "required"
        else:
            cleaned[name] = value.strip()

    for name in board.optional:
        if name not in data:
            continue
        if name == "deliverables":
            cleaned[name] = _clean_deliverables(data[name])
        else:
            value = data[name]
            cleaned[name] = value.strip() if isinstance(value, str) and value.strip() else None

    for name, (allowed, default) in board.enums.items():
        if name not in data:
            if not partial:
                cleaned[name] = default
            continue
        if data[name] not in allowed:
            errors[name] = f"must be one of {list(allowed)}"
        else:
            cleaned[name] = data[name]

    if errors:
        first = next(iter(errors))
        raise ValidationError(f"Invalid {first}: {errors[first]}", details=errors)
    return cleaned


def _record(actor_id, verb: str, board: Board, item):
    if actor_id:
        ActivityLogService().record(
            actor_id,
            f"{verb} {board.target_type}",
            target_type=board.target_type,
            target_id=item.id,
            target_name=getattr(item, board.title_field),
        )


def list_items(kind: str) -> list:
    board = _board(kind)
    column = getattr(board.model, board.order_by)
    return list(db.session.execute(select(board.model).order_by(column.asc())).scalars())


def get_item(kind: str, item_id: str):
    board = _board(kind)
    item = db.session.get(board.model, item_id)
    if item is None:
        raise NotFoundError(resource=board.label, resource_id=item_id)
    return item


def create_item(kind: str, data: dict, actor_id: str | None = None):
    board = _board(kind)
    item = board.model(**_clean(board, data or {}, partial=False))
    db.session.add(item)
    db.session.flush()
    _record(actor_id, "created", board, item)
    db_commit_or_raise()
    logger.info("%s created", board.label, extra={"item_id": item.id, "operation": f"create_{kind}"})
    return item


def update_item(kind: str, item_id: str, data: dict, actor_id: str | None = None):
    board = _board(kind)
    item = get_item(kind, item_id)
    cleaned = _clean(board, data or {}, partial=True)
    if not cleaned:
        raise ValidationError("No updatable fields supplied")
    for key, value in cleaned.items():
        setattr(item, key, value)
    db.session.flush()
    _record(actor_id, "updated", board, item)
    db_commit_or_raise()
    return item


def delete_item(kind: str, item_id: str, actor_id: str | None = None) -> None:
    board = _board(kind)
    item = get_item(kind, item_id)
    _record(actor_id, "deleted", board, item)
    db.session.delete(item)
    db_commit_or_raise()
    logger.info("%s deleted", board.label, extra={"item_id": item_id, "operation": f"delete_{kind}"})
