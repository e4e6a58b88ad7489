from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base for errors that map onto a stable HTTP status.

    Raised by the workflow engine, services and routers; rendered by the
    exception handler registered in `main.create_app`.
    """

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details or None

    def __str__(self) -> str:
        return self.message


class AuthenticationError(WorkflowError):
    status_code = 401
    error = "Authentication failed"


class AuthorizationError(WorkflowError):
    status_code = 403
    error = "Forbidden"


class ValidationError(WorkflowError):
    status_code = 400
    error = "Validation failed"


class NotFoundError(WorkflowError):
    status_code = 404
    error = "Not found"


class ConflictError(WorkflowError):
    """The action's status precondition is not met (surfaced as 400)."""

    status_code = 400
    error = "Invalid status for action"


class ConcurrentModificationError(ConflictError):
    """The record changed between read and write."""

    status_code = 409
    error = "Conflict"


class InternalError(WorkflowError):
    status_code = 500
    error = "Internal server error"
