"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class DispatchError(Exception):
    """Base exception for the dispatch backend."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(DispatchError):
    """Resource not found."""

    pass


class ValidationError(DispatchError):
    """Malformed input (rule, constraint, request payload)."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.field = field


class InvalidStateError(DispatchError):
    """Operation not allowed in the current plan/occurrence state."""

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message, details=details)
        self.current_state = current_state


class ConflictError(DispatchError):
    """Occurrence date collides with an existing occurrence of the same plan."""

    def __init__(self, message: str, conflicting_date: Optional[Any] = None, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.conflicting_date = conflicting_date


class ExternalServiceError(DispatchError):
    """External collaborator (visit service) failed. Safe to retry."""

    retryable = True

