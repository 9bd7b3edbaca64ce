"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException

logger = structlog.get_logger()


def _error_body(error: str, message: str, request: Request, **extra) -> dict:
    return {"error": error, "message": message, "path": request.url.path, **extra}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle scheduling and reporting errors.

    Validation, conflict, not-found, permission and state errors carry a
    specific message the caller needs to decide what to do next.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    logger.info(
        "request_rejected",
        error=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.__class__.__name__, exc.message, request),
        headers=headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle routing and framework HTTP errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTPException", str(exc.detail), request),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request validation errors.

    Returns:
        422 response listing each invalid field
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            "ValidationException",
            "Request validation failed",
            request,
            details=jsonable_encoder(exc.errors()),
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unexpected exception and hide its details from the caller."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("InternalServerError", "An unexpected error occurred", request),
    )
