"""Standardised API error responses.

Usage
-----
    from statusdesk.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "TimeLog not found")
    return api_error(E.VALIDATION_REQUIRED, "month and year are required")

Service exceptions never need a try/except in a view:
``register_error_handlers(app)`` maps each ``statusdesk.core.exceptions``
type to its code and status.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from statusdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Throttling – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field-level validation errors etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app) -> None:
    """Attach one handler per service exception type to the app."""

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return api_error(E.UNAUTHENTICATED, str(error))

    @app.errorhandler(AuthorizationError)
    def _handle_forbidden(error: AuthorizationError):
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        # resource_id stays in logs only
        logger.info("Not found: %s", error, extra={"endpoint": request.endpoint})
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @app.errorhandler(InvalidStateTransition)
    def _handle_state(error: InvalidStateTransition):
        return api_error(E.CONFLICT_STATE, str(error), details={"current_status": error.current})

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        details = {"field": error.field} if error.field else None
        return api_error(E.CONFLICT_DUPLICATE, str(error), details=details)

    @app.errorhandler(PersistenceError)
    def _handle_persistence(error: PersistenceError):
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(HTTPException)
    def _handle_http(error: HTTPException):
        if error.code == 429:
            return api_error(E.RATE_LIMITED, "Too many requests", status=429)
        if error.code == 404:
            return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})
        if error.code == 401:
            code = E.UNAUTHENTICATED
        elif error.code == 403:
            code = E.FORBIDDEN
        elif error.code < 500:
            code = E.VALIDATION_INVALID
        else:
            code = E.INTERNAL
        return api_error(code, error.description or error.name, status=error.code)

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
