"""Shared utility functions used by services and blueprints.

parse_date:          lenient, returns None on bad input (query-string filters)
parse_date_strict:   raises ValidationError on bad input (request bodies)
parse_int:           bounded integer query parameters
db_commit_or_raise:  commit with rollback + PersistenceError on failure
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from statusdesk.core.exceptions import PersistenceError, ValidationError
from statusdesk.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse an ISO date string to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        return None


def parse_date_strict(value, field: str = "date"):
    """Parse a calendar date, raising ValidationError on missing or bad input.

    Only ``YYYY-MM-DD`` (or a date object) is accepted; ``2026-02-30`` fails.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be a valid calendar date (YYYY-MM-DD)",
            details={field: "invalid date"},
        ) from exc


def parse_datetime(value):
    """Parse an ISO datetime (or date) query parameter; None on bad input."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except (ValueError, TypeError):
        return None


def parse_int(value, field: str, *, minimum=None, maximum=None, default=None):
    """Parse an integer parameter, raising ValidationError when out of range."""
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"}) from exc
    if (minimum is not None and parsed < minimum) or (maximum is not None and parsed > maximum):
        raise ValidationError(
            f"{field} must be between {minimum} and {maximum}",
            details={field: "out of range"},
        )
    return parsed


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_raise():
    """Commit the current SQLAlchemy session or roll back and raise PersistenceError.

    IntegrityError is re-raised unchanged so callers that rely on a unique
    constraint (idempotent create, duplicate email) can react to it.
    """
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except OperationalError as exc:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        raise PersistenceError() from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        raise PersistenceError() from exc
