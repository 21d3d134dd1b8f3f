"""Error taxonomy for the VDR API and the FastAPI handlers that render it."""

from typing import Any
from typing import Optional

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from vdr_api.monitoring.logger import log_response_info

# Explicit exports
__all__ = [
    "AppError",
    "AuthError",
    "ConflictError",
    "ForbiddenError",
    "InputValidationError",
    "NotFoundError",
    "PaymentRequiredError",
    "PersistenceError",
    "UpstreamServiceError",
    "handle_app_errors",
    "handle_broad_exceptions",
    "handle_pydantic_validation_errors",
]


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and a JSON error body."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, extra: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class InputValidationError(AppError):
    """Missing or malformed request fields."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Missing, expired or unusable credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class PaymentRequiredError(AppError):
    """Quota or plan limits prevent the operation."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ForbiddenError(AppError):
    """Authenticated caller lacks the role or ownership required."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    """Unknown resource id."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """Resource already exists or is in a state that forbids the change."""

    status_code = status.HTTP_409_CONFLICT


class UpstreamServiceError(AppError):
    """Blob storage or payment gateway failure."""

    status_code = status.HTTP_502_BAD_GATEWAY


class PersistenceError(AppError):
    """Warehouse connection or query failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = {"error": "Internal server error", "error_type": type(err).__name__}

        # Get request body from request state (set by RequestContextMiddleware)
        request_body = getattr(request.state, "request_body", None)

        logger.error(
            f"Unhandled exception: {type(err).__name__}: {str(err)}",
            http_status=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            request_body=request_body,
            response_body=error_response,
            exc_info=True,
        )

        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )
        log_response_info(response)
        return response


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_app_errors(request: Request, exc: AppError) -> JSONResponse:
    """
    Render an AppError as ``{"error": message, "error_type": name, ...extra}``.

    Client errors are logged at warning level, server-side failures at error level
    with the traceback. For persistence failures the failing statement is always
    logged but only returned to the client when ``expose_sql_in_errors`` is set.

    Parameters
    ----------
    request : Request
        FastAPI request object
    exc : AppError
        Raised application error

    Returns
    -------
    JSONResponse
        HTTP response with the error's status code
    """
    error_type = type(exc).__name__
    error_response: dict[str, Any] = {"error": exc.message, "error_type": error_type, **exc.extra}

    statement = getattr(exc, "statement", None)
    settings = getattr(request.app.state, "settings", None)
    if statement and settings is not None and settings.expose_sql_in_errors:
        error_response["statement"] = statement

    request_body = getattr(request.state, "request_body", None)
    log_context = dict(
        http_status=exc.status_code,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=error_type,
        error_message=exc.message,
        request_body=request_body,
        response_body=error_response,
    )

    if exc.status_code >= 500:
        logger.error(f"Request failed: {error_type}: {exc.message}", statement=statement, exc_info=True, **log_context)
    else:
        logger.warning(f"Request rejected: {error_type}: {exc.message}", **log_context)

    response = JSONResponse(status_code=exc.status_code, content=error_response)
    log_response_info(response)
    return response


async def handle_pydantic_validation_errors(
    request: Request, exc: RequestValidationError | pydantic.ValidationError
) -> JSONResponse:
    """Handle request and Pydantic validation errors as 400 responses."""
    errors = exc.errors()
    details = [
        {
            "msg": error["msg"],
            "loc": [str(part) for part in error.get("loc", ())],
            "input": error.get("input"),
        }
        for error in errors
    ]
    first = details[0] if details else {"msg": "Invalid request", "loc": []}
    field = ".".join(part for part in first["loc"] if part not in ("body", "query", "path"))
    message = f"{field}: {first['msg']}" if field else first["msg"]

    error_response = {"error": message, "error_type": "ValidationError", "detail": details}

    request_body = getattr(request.state, "request_body", None)

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=400,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type="ValidationError",
        validation_errors=details,
        request_body=request_body,
    )

    response = JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=pydantic_safe(error_response),
    )
    log_response_info(response)

    return response


def pydantic_safe(payload: dict[str, Any]) -> dict[str, Any]:
    """Make validation inputs JSON serializable (uploads, bytes, datetimes)."""
    for detail in payload.get("detail", []):
        value = detail.get("input")
        if value is not None and not isinstance(value, (str, int, float, bool, list, dict)):
            detail["input"] = str(value)
    return payload
