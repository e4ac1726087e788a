# storefront/core/errors.py
"""
Application error taxonomy.

Every error that crosses the HTTP boundary carries a stable, machine-readable
``code`` plus a human-readable message. Services raise these directly; the
handlers registered in ``storefront.main`` render them as

    {"success": false, "code": ..., "message": ..., "details": ...}

Anything that is not an ``AppError`` is logged and rendered as a generic 500.
"""
import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "SERVER_ERROR"

    def __init__(
        self,
        message: str,
        details: Any = None,
        *,
        code: str | None = None,
    ):
        super().__init__(status_code=self.status_code_default, detail=message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class InsufficientStockError(ValidationError):
    code = "INSUFFICIENT_STOCK"


class AuthenticationError(AppError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication failed", details: Any = None):
        super().__init__(message, details)
        self.headers = {"WWW-Authenticate": "Bearer"}


class AuthorizationError(AppError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code_default = status.HTTP_409_CONFLICT
    code = "CONFLICT"


def _error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "code": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
        headers=exc.headers,
    )


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Plain HTTPExceptions raised by FastAPI itself (404 routes, 405, ...)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTP_ERROR", str(exc.detail)),
        headers=exc.headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(ValidationError.code, "Validation failed", details),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("SERVER_ERROR", "Internal server error"),
    )
