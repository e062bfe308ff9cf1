"""
Domain error to HTTP response translation.
"""

from fastapi import HTTPException, status

from dispatch.core.exceptions import (
    ConflictError,
    DispatchError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: DispatchError) -> HTTPException:
    """Map a domain error to an HTTPException with an actionable detail."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    detail: dict = {"error": type(exc).__name__, "message": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        detail["field"] = exc.field
    if isinstance(exc, InvalidStateError) and exc.current_state:
        detail["current_state"] = exc.current_state
    if isinstance(exc, ConflictError) and exc.conflicting_date:
        detail["conflicting_date"] = str(exc.conflicting_date)
    if isinstance(exc, ExternalServiceError):
        detail["retryable"] = exc.retryable
    if exc.details:
        detail["details"] = exc.details
    return HTTPException(status_code=status_code, detail=detail)
