"""
Storage repositories injected into services.

Services never touch ``db.session`` directly for the records they own; they
receive a ``Repository`` bound to one model. ``SQLAlchemyRepository`` is the
only implementation.

Filters are keyword arguments in ``field__op=value`` form:

    repo.find(user_id=uid, date__gte=start, status__in=["pending"],
              order_by=("-date", "-created_at"))

Supported ops: ``eq`` (default), ``ne``, ``lt``, ``lte``, ``gt``, ``gte``,
``in``, ``isnull``. Records with a ``deleted_at`` tombstone are hidden
unless ``include_deleted=True``.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError

from statusdesk.core.exceptions import ConflictError
from statusdesk.models import db
from statusdesk.utils.helpers import db_commit_or_raise

logger = logging.getLogger(__name__)

FILTER_OPS = ("eq", "ne", "lt", "lte", "gt", "gte", "in", "isnull")


def split_filter(key: str) -> tuple[str, str]:
    """``"date__gte"`` → ``("date", "gte")``; plain names mean equality."""
    field, _, op = key.partition("__")
    op = op or "eq"
    if op not in FILTER_OPS:
        raise ValueError(f"Unsupported filter operator {op!r} in {key!r}")
    return field, op


class Repository(ABC):
    """Storage operations a service needs for one record type."""

    @abstractmethod
    def add(self, obj):
        """Stage a new record and make its id available."""

    @abstractmethod
    def get(self, obj_id, *, include_deleted=False):
        """Return the record with ``obj_id`` or None."""

    @abstractmethod
    def find(self, *, order_by=(), limit=None, offset=None, include_deleted=False, **filters) -> list:
        """Return records matching every filter."""

    def first(self, **filters):
        rows = self.find(limit=1, **filters)
        return rows[0] if rows else None

    @abstractmethod
    def update_where(self, values: dict, *, include_deleted=False, **filters) -> int:
        """Atomically set ``values`` on matching records; return how many changed."""

    @abstractmethod
    def delete(self, obj) -> None:
        """Physically remove one record."""

    @abstractmethod
    def delete_where(self, *, include_deleted=True, **filters) -> int:
        """Physically remove matching records; return how many were removed."""

    @abstractmethod
    def commit(self) -> None:
        """Make staged changes durable.

        Raises ConflictError when a unique constraint rejects the changes.
        """


class SQLAlchemyRepository(Repository):
    """Repository over a Flask-SQLAlchemy model using the shared ``db.session``."""

    def __init__(self, model):
        self.model = model

    @property
    def session(self):
        return db.session

    def _conflict_error(self) -> ConflictError:
        name = self.model.__name__
        return ConflictError(name, message=f"{name} conflicts with an existing record")

    def _conflict(self, exc: IntegrityError) -> ConflictError:
        self.session.rollback()
        logger.warning("Integrity error on %s: %s", self.model.__name__, exc.orig)
        return self._conflict_error()

    # ── Query building ───────────────────────────────────────────────────

    def _column(self, name: str):
        column = getattr(self.model, name, None)
        if column is None:
            raise ValueError(f"{self.model.__name__} has no column {name!r}")
        return column

    def _conditions(self, filters: dict, include_deleted: bool) -> list:
        conditions = []
        for key, value in filters.items():
            field, op = split_filter(key)
            column = self._column(field)
            if op == "eq":
                conditions.append(column.is_(None) if value is None else column == value)
            elif op == "ne":
                conditions.append(column.isnot(None) if value is None else column != value)
            elif op == "lt":
                conditions.append(column < value)
            elif op == "lte":
                conditions.append(column <= value)
            elif op == "gt":
                conditions.append(column > value)
            elif op == "gte":
                conditions.append(column >= value)
            elif op == "in":
                conditions.append(column.in_(list(value)))
            elif op == "isnull":
                conditions.append(column.is_(None) if value else column.isnot(None))
        if not include_deleted and hasattr(self.model, "deleted_at"):
            conditions.append(self.model.deleted_at.is_(None))
        return conditions

    def _ordering(self, order_by) -> list:
        clauses = []
        for name in order_by:
            if name.startswith("-"):
                clauses.append(self._column(name[1:]).desc())
            else:
                clauses.append(self._column(name).asc())
        return clauses

    # ── Repository API ───────────────────────────────────────────────────

    def add(self, obj):
        self.session.add(obj)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise self._conflict(exc) from exc
        return obj

    def get(self, obj_id, *, include_deleted=False):
        if obj_id is None:
            return None
        obj = self.session.get(self.model, obj_id)
        if obj is None:
            return None
        if not include_deleted and getattr(obj, "deleted_at", None) is not None:
            return None
        return obj

    def find(self, *, order_by=(), limit=None, offset=None, include_deleted=False, **filters) -> list:
        stmt = select(self.model).where(*self._conditions(filters, include_deleted))
        ordering = self._ordering(order_by)
        if ordering:
            stmt = stmt.order_by(*ordering)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def update_where(self, values: dict, *, include_deleted=False, **filters) -> int:
        stmt = (
            sa_update(self.model)
            .where(*self._conditions(filters, include_deleted))
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return self.session.execute(stmt).rowcount

    def delete(self, obj) -> None:
        self.session.delete(obj)
        self.session.flush()

    def delete_where(self, *, include_deleted=True, **filters) -> int:
        stmt = (
            sa_delete(self.model)
            .where(*self._conditions(filters, include_deleted))
            .execution_options(synchronize_session="fetch")
        )
        return self.session.execute(stmt).rowcount

    def commit(self) -> None:
        try:
            db_commit_or_raise()
        except IntegrityError as exc:
            # db_commit_or_raise already rolled back
            logger.warning("Integrity error on %s commit: %s", self.model.__name__, exc.orig)
            raise self._conflict_error() from exc
