"""Shared response helpers for the API routers."""

from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse

from phone_accounts.middleware import CORRELATION_HEADER
from phone_accounts.models.api_models import ErrorResponse


def correlation_id_for(request: Request) -> str:
    return request.headers.get(CORRELATION_HEADER, "unknown")


def create_error_response(
    error_type: str,
    message: str,
    correlation_id: str,
    status_code: int = 500
) -> JSONResponse:
    """Create standardized error response."""
    error_response = ErrorResponse(
        error=error_type,
        message=message,
        correlation_id=correlation_id,
        timestamp=datetime.now(timezone.utc)
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json")
    )


def persistence_error(correlation_id: str) -> JSONResponse:
    return create_error_response(
        "PersistenceError",
        "The account store is unavailable, try again later",
        correlation_id,
        status_code=503
    )
