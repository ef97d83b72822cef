"""Typed failures shared by the compliance services.

Every service error carries a stable ``code`` and the HTTP status routers
translate it to. Routers catch ``ComplianceError`` and re-raise as
``HTTPException(status_code=e.status_code, detail=str(e))``.
"""


class ComplianceError(Exception):
    """Base exception for compliance engine errors."""

    code = "ERROR"
    status_code = 400


class NotFoundError(ComplianceError):
    """Entity absent or outside the caller's organization."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(ComplianceError):
    """Request conflicts with existing state."""

    code = "CONFLICT"
    status_code = 409


class InvalidStateError(ComplianceError):
    """Transition attempted from a terminal or wrong source state."""

    code = "INVALID_STATE"
    status_code = 400


class ImmutableError(ComplianceError):
    """Attempt to mutate a hardcoded configuration value."""

    code = "IMMUTABLE"
    status_code = 403


class ValidationError(ComplianceError):
    """Malformed input or missing reference data."""

    code = "VALIDATION"
    status_code = 422
