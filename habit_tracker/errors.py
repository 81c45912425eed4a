"""
Error taxonomy.

Every error a handler raises deliberately is an ``AppError``; the exception
handlers registered in ``main`` turn them into ``{"error": message}``.
Anything else is treated as a persistence/internal failure and reported
as a generic 500.
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class NotFound(AppError):
    """Missing, or owned by somebody else. The two are never distinguished."""

    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Missing or invalid required fields"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Already exists"


def error_response(status_code: int, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return error_response(exc.status_code, exc.message, headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed", errors=len(exc.errors()))
    return error_response(status.HTTP_400_BAD_REQUEST, ValidationFailed.message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, AppError.message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
