"""
API middleware components.

Provides cross-cutting concerns for the API:
- Error handling
- Logging configuration and request logging
"""

from .error_handler import (
    ShelfScanException,
    NotFoundError,
    ValidationError,
    ConfigurationError,
    ProcessingError,
    ExternalServiceError,
    setup_exception_handlers,
    create_error_response,
    translate_pipeline_error,
)

from .logging import (
    LoggingConfig,
    RequestLoggingMiddleware,
    configure_logging,
    get_log_level,
    set_log_level,
    setup_logging,
    get_request_id,
    redact_sensitive_data,
)


__all__ = [
    # Error handling
    "ShelfScanException",
    "NotFoundError",
    "ValidationError",
    "ConfigurationError",
    "ProcessingError",
    "ExternalServiceError",
    "setup_exception_handlers",
    "create_error_response",
    "translate_pipeline_error",
    # Logging
    "LoggingConfig",
    "RequestLoggingMiddleware",
    "configure_logging",
    "get_log_level",
    "set_log_level",
    "setup_logging",
    "get_request_id",
    "redact_sensitive_data",
]
