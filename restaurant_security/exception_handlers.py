"""
Global Exception Handlers

Error Response Format:
{
    "error": "Invalid verification code",
    "code": "invalid_token"
}

Two-factor mutation endpoints (verify, disable) render the same envelope
with "success": false, see SuccessEnvelopeRoute.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from restaurant_security.exceptions import SecurityServiceError
from restaurant_security.middleware.logging import get_request_id

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    code: str,
    details: dict[str, Any] | None = None,
    success_flag: bool = False,
) -> JSONResponse:
    """
    Create a flat error response.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional error details
        success_flag: Prefix the body with "success": false
    """
    body: dict[str, Any] = {"success": False} if success_flag else {}
    body["error"] = message
    body["code"] = code
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def _render_service_error(request: Request, exc: SecurityServiceError, success_flag: bool = False) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.code, "path": request.url.path},
    )
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        code=exc.code,
        details=exc.details or None,
        success_flag=success_flag,
    )


def _render_validation_error(
    request: Request, exc: RequestValidationError, success_flag: bool = False
) -> JSONResponse:
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({"field": field, "message": error["msg"]})

    logger.warning(f"Validation error on {request.url.path}", extra={"errors": errors})

    message = errors[0]["message"] if len(errors) == 1 else "Validation error"
    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        message=message,
        code="validation_error",
        details={"validation_errors": errors},
        success_flag=success_flag,
    )


async def security_exception_handler(request: Request, exc: SecurityServiceError) -> JSONResponse:
    return _render_service_error(request, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTPException: {exc.detail}", extra={"status_code": exc.status_code, "path": request.url.path})
    return create_error_response(status_code=exc.status_code, message=str(exc.detail), code="http_error")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed request bodies with 400 before any service call."""
    return _render_validation_error(request, exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing internals."""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        code="internal_error",
        details={"request_id": get_request_id()} if get_request_id() else None,
    )


class SuccessEnvelopeRoute(APIRoute):
    """
    Route class for mutation endpoints whose failures carry "success": false.

    Errors raised by dependencies (authentication) and body validation are
    rendered here too, so these endpoints always answer with one shape.
    """

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def envelope_route_handler(request: Request) -> Response:
            try:
                return await original_route_handler(request)
            except SecurityServiceError as exc:
                return _render_service_error(request, exc, success_flag=True)
            except RequestValidationError as exc:
                return _render_validation_error(request, exc, success_flag=True)

        return envelope_route_handler


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(SecurityServiceError, security_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
