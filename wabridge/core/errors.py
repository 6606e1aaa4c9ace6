# wabridge/core/errors.py

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger

from wabridge.core.logging_config import trace_id_var
from wabridge.models.api_common import ErrorResponse

class AppError(Exception):
    """Base for errors that map directly to an HTTP response."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

class ValidationError(AppError):
    """Missing or malformed input."""
    status_code = status.HTTP_400_BAD_REQUEST

class AuthorizationError(AppError):
    """Missing or mismatched API key."""
    status_code = status.HTTP_401_UNAUTHORIZED

class UpstreamError(AppError):
    """Document store, tag cache or job queue failure."""
    status_code = status.HTTP_502_BAD_GATEWAY

class ConfigurationError(AppError):
    """A required endpoint or environment value is absent."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())

async def app_error_handler(request: Request, exc: AppError):
    log = logger.bind(trace_id=trace_id_var.get())
    if exc.status_code >= 500:
        log.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        log.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return _error_response(exc.status_code, exc.message)

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.bind(trace_id=trace_id_var.get()).warning(f"HTTP Exception Caught: {exc.detail}")
    return _error_response(exc.status_code, str(exc.detail))

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.bind(trace_id=trace_id_var.get()).warning(f"Validation Error: {exc.errors()}")
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error")

async def generic_exception_handler(request: Request, exc: Exception):
    logger.bind(trace_id=trace_id_var.get()).exception(f"Unhandled Exception: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

EXCEPTION_HANDLERS = {
    AppError: app_error_handler,
    StarletteHTTPException: http_exception_handler,
    RequestValidationError: validation_exception_handler,
    Exception: generic_exception_handler,
}
