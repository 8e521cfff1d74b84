"""HTTP-layer errors.

Only the API raises these. The reservation machine reports refusals inside
its snapshots instead.
"""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Error rendered by the app exception handler as ``{"detail", "errors"}``."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "Something went wrong on our side",
        headers: dict[str, str] | None = None,
        errors: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.errors = errors or {}


class ValidationError(AppException):
    """Request the machine cannot act on, e.g. an event missing its id."""

    def __init__(self, detail: str = "Invalid request", errors: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=detail, errors=errors)


class NotFoundError(AppException):
    """Unknown session, route or schedule."""

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        detail = f"{resource} '{identifier}' does not exist" if identifier else f"{resource} does not exist"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ExternalServiceError(AppException):
    """The catalog or booking backend could not be used."""

    def __init__(self, service: str, detail: str | None = None, retry_after: int = 30) -> None:
        message = f"The {service} service is temporarily unavailable"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=message,
            headers={"Retry-After": str(retry_after)},
        )
