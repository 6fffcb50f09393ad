"""
Logging configuration and request logging middleware.

Provides:
- A single loguru sink configured at startup, with a runtime-adjustable level
- Request timing and slow-request flagging
- Correlation IDs for tracing
- Redaction of sensitive headers and body fields
"""

import json
import sys
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set

from fastapi import FastAPI, Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID (accessible throughout request lifecycle)
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

_current_level = "INFO"
_sink_id: Optional[int] = None
_structured = False


def configure_logging(level: str = "INFO", structured: bool = False) -> str:
    """
    (Re)configure the loguru sink.

    Args:
        level: Minimum level name, case-insensitive.
        structured: Emit JSON lines instead of the colored text format.

    Returns:
        The normalized level now in effect.

    Raises:
        ValueError: If the level name is unknown.
    """
    global _current_level, _sink_id, _structured

    normalized = level.upper()
    if normalized not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    if _sink_id is None:
        # Drop loguru's default handler once; later calls only swap our own sink
        logger.remove()
    else:
        logger.remove(_sink_id)

    _structured = structured
    if structured:
        _sink_id = logger.add(sys.stderr, level=normalized, serialize=True)
    else:
        _sink_id = logger.add(sys.stderr, level=normalized, format=LOG_FORMAT)

    _current_level = normalized
    return normalized


def get_log_level() -> str:
    return _current_level


def set_log_level(level: str) -> str:
    """Change the level of the active sink, keeping its format."""
    return configure_logging(level, structured=_structured)


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True

    log_request_body: bool = False

    # Maximum body size to log (bytes)
    max_body_log_size: int = 10000

    excluded_paths: Set[str] = field(default_factory=lambda: {
        "/health",
        "/favicon.ico",
    })

    # Sensitive headers
    excluded_headers: Set[str] = field(default_factory=lambda: {
        "authorization",
        "x-plex-token",
        "cookie",
        "set-cookie",
    })

    redacted_fields: Set[str] = field(default_factory=lambda: {
        "token",
        "secret",
        "api_key",
        "apikey",
        "access_token",
    })

    # Slow request threshold (seconds)
    slow_request_threshold: float = 2.0

    request_id_header: str = "X-Request-ID"


def redact_sensitive_data(
    data: Any,
    redacted_fields: Set[str],
    replacement: str = "[REDACTED]",
) -> Any:
    """
    Recursively redact sensitive fields from data structure.

    Args:
        data: Data to redact (dict, list, or primitive).
        redacted_fields: Set of field names to redact.
        replacement: Replacement string for redacted values.

    Returns:
        Data with sensitive fields redacted.
    """
    if isinstance(data, dict):
        return {
            key: replacement if key.lower() in redacted_fields else redact_sensitive_data(value, redacted_fields, replacement)
            for key, value in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive_data(item, redacted_fields, replacement) for item in data]
    else:
        return data


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_var.get()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for request/response logging.
    """

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    def _should_log(self, path: str) -> bool:
        return path not in self.config.excluded_paths

    def _filter_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        """Filter sensitive headers from logging."""
        return {
            key: value if key.lower() not in self.config.excluded_headers else "[REDACTED]"
            for key, value in headers.items()
        }

    async def _get_request_body(self, request: Request) -> Optional[str]:
        """Get a JSON request body for logging; other content types are skipped."""
        if not self.config.log_request_body:
            return None
        if "application/json" not in request.headers.get("content-type", ""):
            return None

        body = await request.body()
        if len(body) > self.config.max_body_log_size:
            return f"[BODY TOO LARGE: {len(body)} bytes]"
        try:
            body_json = json.loads(body)
        except json.JSONDecodeError:
            return body.decode("utf-8", errors="replace")
        return json.dumps(redact_sensitive_data(body_json, self.config.redacted_fields))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(
            self.config.request_id_header,
            str(uuid.uuid4())[:8]
        )
        request_id_var.set(request_id)

        if not self.config.enabled or not self._should_log(request.url.path):
            response = await call_next(request)
            response.headers[self.config.request_id_header] = request_id
            return response

        start_time = time.time()
        headers = self._filter_headers(dict(request.headers))
        body = await self._get_request_body(request)

        response = await call_next(request)

        duration = time.time() - start_time
        duration_ms = round(duration * 1000, 2)
        response.headers[self.config.request_id_header] = request_id

        if response.status_code >= 500:
            level = "ERROR"
        elif response.status_code >= 400:
            level = "WARNING"
        elif duration > self.config.slow_request_threshold:
            level = "WARNING"
        else:
            level = "INFO"

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
        if duration > self.config.slow_request_threshold:
            message = f"[SLOW] {message}"

        logger.bind(
            request_id=request_id,
            headers=headers,
            body=body,
            duration_ms=duration_ms,
        ).log(level, message)

        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
) -> None:
    """Add the request logging middleware."""
    if config is None:
        config = LoggingConfig()

    app.add_middleware(RequestLoggingMiddleware, config=config)
