"""
ShelfScan - FastAPI Backend.

HTTP surface for scans, replays, settings and service status.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    ServiceContainer,
)
from .schemas import (
    ScanSummaryResponse,
    ScanListResponse,
    RescanRequest,
    ItemEditRequest,
    ServiceTestRequest,
    ServiceTestResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "ServiceContainer",
    # Schemas
    "ScanSummaryResponse",
    "ScanListResponse",
    "RescanRequest",
    "ItemEditRequest",
    "ServiceTestRequest",
    "ServiceTestResponse",
    "HealthResponse",
    "ErrorResponse",
]
