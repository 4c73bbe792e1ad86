"""Translate engine errors into HTTP responses.

    NotFoundError     404
    ValidationError   422  detail carries the full issue list
    IntegrityError    409
    PersistenceError  503
"""

from __future__ import annotations

from fastapi import HTTPException, status

from completion_service.services.errors import (
    CompletionError,
    IntegrityError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)


def http_error(exc: CompletionError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": exc.message, "issues": exc.issues},
        )
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, IntegrityError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, PersistenceError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=exc.message)
