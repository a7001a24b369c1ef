"""
User Service — CRUD, authentication, password management and payout bank details.
"""

import logging
import math

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from statusdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from statusdesk.models import db
from statusdesk.models.auth import BANK_DETAIL_FIELDS, DEPARTMENTS, REQUIRED_BANK_DETAIL_FIELDS, ROLES, User
from statusdesk.services.activity_service import ActivityLogService
from statusdesk.utils.crypto import hash_password, verify_password
from statusdesk.utils.helpers import db_commit_or_raise

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_BANK_FIELD_LENGTH = 200
UPDATABLE_FIELDS = ("name", "email", "role", "hourly_rate", "department", "daily_hours_target")


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════
def _normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("email is required", details={"email": "required"})
    try:
        valid = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"}) from e
    return valid.normalized.lower()


def _validate_role(role) -> str:
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role!r}", details={"role": f"must be one of {list(ROLES)}"})
    return role


def _validate_number(value, field: str, minimum: float, maximum: float | None = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"})
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum:g} and {maximum:g}" if maximum is not None else f"at least {minimum:g}"
        raise ValidationError(f"{field} must be {bound}", details={field: "out of range"})
    return float(value)


def _validate_department(value):
    if value in (None, ""):
        return None
    if value not in DEPARTMENTS:
        raise ValidationError("Invalid department", details={"department": f"must be one of {list(DEPARTMENTS)}"})
    return value


def _validate_password(password) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    return password


def _clean_fields(data: dict) -> dict:
    cleaned = {}
    if "name" in data:
        name = data["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name is required", details={"name": "required"})
        cleaned["name"] = name.strip()
    if "email" in data:
        cleaned["email"] = _normalize_email(data["email"])
    if "role" in data:
        cleaned["role"] = _validate_role(data["role"])
    if "hourly_rate" in data:
        cleaned["hourly_rate"] = _validate_number(data["hourly_rate"], "hourly_rate", 0)
    if "department" in data:
        cleaned["department"] = _validate_department(data["department"])
    if "daily_hours_target" in data:
        cleaned["daily_hours_target"] = _validate_number(data["daily_hours_target"], "daily_hours_target", 0, 24)
    return cleaned


def _email_taken(email: str, exclude_id: str | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    return db.session.execute(stmt).first() is not None


def _record(actor_id, action, user: User, details=None):
    if actor_id:
        ActivityLogService().record(
            actor_id, action, target_type="user", target_id=user.id, target_name=user.name, details=details,
        )


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(data: dict, actor_id: str | None = None) -> User:
    """Create a user. name, email, password and role are required."""
    missing = [f for f in ("name", "email", "password", "role") if not data.get(f)]
    if missing:
        raise ValidationError(
            "Name, email, password, and role are required",
            details={f: "required" for f in missing},
        )

    cleaned = _clean_fields(data)
    password = _validate_password(data["password"])
    if _email_taken(cleaned["email"]):
        raise ConflictError("User", "email", cleaned["email"])

    user = User(
        password_hash=hash_password(password),
        is_super_admin=bool(data.get("is_super_admin", False)),
        **cleaned,
    )
    db.session.add(user)
    db.session.flush()
    _record(actor_id, "created user", user, details={"role": user.role})
    db_commit_or_raise()
    logger.info("User created", extra={"user_id": user.id, "operation": "create_user"})
    return user


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def get_user_by_email(email: str) -> User | None:
    if not email:
        return None
    return db.session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()


def list_users(role: str | None = None) -> list[User]:
    stmt = select(User).order_by(User.name)
    if role:
        stmt = stmt.where(User.role == _validate_role(role))
    return list(db.session.execute(stmt).scalars())


def update_user(user_id: str, data: dict, actor_id: str | None = None) -> User:
    """Update profile, role and billing fields. Unknown keys are ignored."""
    user = get_user(user_id)
    cleaned = _clean_fields({k: v for k, v in (data or {}).items() if k in UPDATABLE_FIELDS})
    if not cleaned:
        raise ValidationError("No updatable fields supplied")
    if "email" in cleaned and _email_taken(cleaned["email"], exclude_id=user.id):
        raise ConflictError("User", "email", cleaned["email"])

    for key, val in cleaned.items():
        setattr(user, key, val)
    db.session.flush()
    _record(actor_id, "updated user", user, details={"fields": sorted(cleaned)})
    db_commit_or_raise()
    logger.info("User updated", extra={"user_id": user.id, "operation": "update_user"})
    return user


def delete_user(user_id: str, requester_id: str) -> None:
    """Delete a user. Nobody can delete themselves or a super admin."""
    if user_id == requester_id:
        raise AuthorizationError("Cannot delete your own account")
    user = get_user(user_id)
    if user.is_super_admin:
        raise AuthorizationError("Super admin accounts cannot be deleted")

    _record(requester_id, "deleted user", user, details={"email": user.email, "role": user.role})
    db.session.delete(user)
    db_commit_or_raise()
    logger.info("User deleted", extra={"user_id": user_id, "operation": "delete_user"})


# ═══════════════════════════════════════════════════════════════
# Bank details
# ═══════════════════════════════════════════════════════════════
def _clean_bank_details(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Bank details must be an object")
    unknown = sorted(set(data) - set(BANK_DETAIL_FIELDS))
    if unknown:
        raise ValidationError(
            "Unknown bank detail fields",
            details={f: "not allowed" for f in unknown},
        )

    cleaned, errors = {}, {}
    for field in BANK_DETAIL_FIELDS:
        value = data.get(field)
        if value is None:
            continue
        if not isinstance(value, str):
            errors[field] = "must be a string"
            continue
        value = value.strip()[:MAX_BANK_FIELD_LENGTH]
        if value:
            cleaned[field] = value
    for field in REQUIRED_BANK_DETAIL_FIELDS:
        if field not in cleaned and field not in errors:
            errors[field] = "required"
    if errors:
        raise ValidationError("Account name, bank name and account number are required", details=errors)
    return cleaned


def bank_details_view(user: User) -> dict:
    return {
        "user_id": user.id,
        "user_name": user.name,
        "has_bank_details": user.has_bank_details,
        "bank_details": user.bank_details or None,
    }


def update_bank_details(user_id: str, data: dict, actor_id: str | None = None) -> User:
    """Replace a user's payout account. The previous details are discarded."""
    user = get_user(user_id)
    user.bank_details = _clean_bank_details(data)
    db.session.flush()
    # account numbers stay out of the activity trail
    _record(actor_id, "updated bank details", user, details={"fields": sorted(user.bank_details)})
    db_commit_or_raise()
    logger.info("Bank details updated", extra={"user_id": user.id, "operation": "update_bank_details"})
    return user


def clear_bank_details(user_id: str, actor_id: str | None = None) -> User:
    user = get_user(user_id)
    user.bank_details = None
    db.session.flush()
    _record(actor_id, "cleared bank details", user)
    db_commit_or_raise()
    logger.info("Bank details cleared", extra={"user_id": user.id, "operation": "clear_bank_details"})
    return user


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════
def authenticate(email: str, password: str) -> User:
    """Return the user for valid credentials; AuthenticationError otherwise."""
    user = get_user_by_email(email)
    if user is None or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return user


def change_password(user_id: str, new_password: str, current_password: str | None = None,
                    requester: User | None = None) -> None:
    """Change a password.

    The current password is required unless a manager is resetting someone
    else's password.
    """
    user = get_user(user_id)
    forced = requester is not None and requester.id != user.id
    if forced:
        if not requester.is_manager:
            raise AuthorizationError("Unauthorized to force password reset")
    else:
        if not current_password:
            raise ValidationError("Current password is required", details={"current_password": "required"})
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Incorrect current password", details={"current_password": "incorrect"})

    user.password_hash = hash_password(_validate_password(new_password))
    _record(requester.id if requester else user.id, "changed password", user, details={"forced": forced})
    db_commit_or_raise()
    logger.info("Password changed", extra={"user_id": user.id, "operation": "change_password"})
