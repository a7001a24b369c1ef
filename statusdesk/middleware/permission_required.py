"""
Permission Decorators — role checks for route protection.

The caller's role is read from the User row on every request, not from the
token, so a role change takes effect immediately.

Usage:
    @bp.route("/timelogs", methods=["GET"])
    @require_auth
    def list_timelogs():
        user = g.current_user
        ...

    @bp.route("/users", methods=["POST"])
    @require_roles("manager")
    def create_user():
        ...
"""

import functools
import logging

from flask import g

from statusdesk.core.exceptions import AuthenticationError, AuthorizationError
from statusdesk.models import db
from statusdesk.models.auth import User

logger = logging.getLogger(__name__)


def load_current_user() -> User:
    """Resolve g.jwt_user_id to a User and cache it on g.current_user."""
    user = getattr(g, "current_user", None)
    if user is not None:
        return user

    user_id = getattr(g, "jwt_user_id", None)
    if not user_id:
        raise AuthenticationError(getattr(g, "jwt_error", None) or "Authentication required")
    user = db.session.get(User, user_id)
    if user is None:
        raise AuthenticationError("User no longer exists")
    g.current_user = user
    return user


def require_auth(f):
    """Decorator: any authenticated user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        load_current_user()
        return f(*args, **kwargs)
    return decorated


def require_roles(*roles: str):
    """
    Decorator: require the authenticated user to hold one of ``roles``.

    Args:
        roles: Role names, e.g. "manager", "finance"
    """
    allowed = frozenset(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = load_current_user()
            if user.role not in allowed:
                logger.warning(
                    "User %s denied: role '%s' not in %s on %s",
                    user.id, user.role, sorted(allowed), f.__name__,
                )
                raise AuthorizationError()
            return f(*args, **kwargs)
        return decorated
    return decorator
