"""
Error Handling for the ShelfScan API

Centralized error handling:
- Structured error responses
- Translation of pipeline errors to HTTP status codes
- Logging of unexpected failures
"""

import traceback
from datetime import datetime

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from shelfscan.pipeline.orchestrator import (
    InvalidScanRequestError,
    ReenrichUnavailableError,
    ScanError,
    ScanNotFoundError,
    ServiceNotConfiguredError,
)


class ShelfScanException(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: str = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class NotFoundError(ShelfScanException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource} with identifier '{identifier}' exists",
        )


class ValidationError(ShelfScanException):
    """Input validation failed."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            detail=detail,
        )


class ConfigurationError(ShelfScanException):
    """A required external service has no credentials."""

    def __init__(self, service: str):
        super().__init__(
            message=f"{service} is not configured on the server",
            code="SERVICE_NOT_CONFIGURED",
            status_code=503,
        )


class ProcessingError(ShelfScanException):
    """Request was valid but could not be processed."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(
            message=message,
            code="PROCESSING_ERROR",
            status_code=422,
            detail=detail,
        )


class ExternalServiceError(ShelfScanException):
    """External service failure."""

    def __init__(self, service: str, detail: str = None):
        super().__init__(
            message=f"{service} service unavailable",
            code="EXTERNAL_SERVICE_ERROR",
            status_code=502,
            detail=detail,
        )


def create_error_response(
    error: str,
    code: str,
    status_code: int,
    detail: str = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "detail": detail,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


def translate_pipeline_error(exc: ScanError) -> ShelfScanException:
    """Map orchestrator errors onto API errors."""
    if isinstance(exc, ServiceNotConfiguredError):
        return ConfigurationError(exc.service)
    if isinstance(exc, ScanNotFoundError):
        return NotFoundError(exc.resource, exc.identifier)
    if isinstance(exc, ReenrichUnavailableError):
        return ShelfScanException(str(exc), code="NO_RAW_RESPONSE", status_code=409)
    if isinstance(exc, InvalidScanRequestError):
        return ValidationError(str(exc))
    return ProcessingError(str(exc))


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(ShelfScanException)
    async def shelfscan_exception_handler(request: Request, exc: ShelfScanException):
        logger.warning(f"ShelfScan error: {exc.code} - {exc.message}")
        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.detail,
        )

    @app.exception_handler(ScanError)
    async def pipeline_exception_handler(request: Request, exc: ScanError):
        translated = translate_pipeline_error(exc)
        logger.warning(f"Pipeline error: {translated.code} - {translated.message}")
        return create_error_response(
            error=translated.message,
            code=translated.code,
            status_code=translated.status_code,
            detail=translated.detail,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {str(exc)}")
        return create_error_response(
            error="Validation Error",
            code="VALIDATION_ERROR",
            status_code=400,
            detail=str(exc),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=500,
            detail="An unexpected error occurred",
        )
