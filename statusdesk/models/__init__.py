"""
statusdesk
Persistence layer — shared SQLAlchemy handle and id helpers.

Every model module imports ``db`` from here so the app factory can bind a
single engine per application.
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_id() -> str:
    """Opaque string identifier used as primary key on every record."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value):
    """Serialise a date/datetime column, passing None through."""
    return value.isoformat() if value is not None else None
