"""Core utilities: errors, middleware and background tasks."""

from venservice.core.exceptions import (
    AppException,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "AppException",
    "ExternalServiceError",
    "NotFoundError",
    "ValidationError",
]
