"""
Application-wide exception hierarchy.

Services raise these types; ``statusdesk.utils.errors.register_error_handlers``
maps each one to a single HTTP status and error code so every blueprint
answers failures the same way.

Usage:
    from statusdesk.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="TimeLog", resource_id=entry_id)
    raise ValidationError("hours must be greater than 0", details={"hours": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist or is outside the caller's scope.

    Out-of-scope records are reported as missing too; a 403 would confirm
    that the record exists.

    Args:
        resource: Human-readable model name (e.g. "TimeLog", "User").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        message: Replaces the generated message when the field is unknown.
    """

    def __init__(
        self, resource: str, field: str | None = None, value: str | None = None, message: str | None = None
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class InvalidStateTransition(Exception):
    """Raised when a status change is not allowed from the record's current status."""

    def __init__(self, resource: str, current: str | None, target: str | None = None) -> None:
        self.resource = resource
        self.current = current
        self.target = target
        if target:
            msg = f"{resource} cannot move from {current!r} to {target!r}"
        else:
            msg = f"{resource} is {current!r} and can no longer be changed"
        super().__init__(msg)


class AuthenticationError(Exception):
    """Raised when the acting user cannot be resolved (bad credentials, unknown id)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when an authenticated user lacks the role or ownership for an action."""

    def __init__(self, message: str = "You do not have permission to perform this action") -> None:
        super().__init__(message)


class PersistenceError(Exception):
    """Raised when the database rejects a commit; the session has been rolled back."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message)
