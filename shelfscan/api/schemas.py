"""
API Schemas for ShelfScan

Pydantic models for request validation and response serialization:
- Scan models
- Settings and usage models
- Service configuration models
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shelfscan.identification.types import ScanStatus


# =============================================================================
# Enums
# =============================================================================

class ServiceName(str, Enum):
    """External services that can be connection-tested."""
    OPENROUTER = "openrouter"
    TMDB = "tmdb"
    TVDB = "tvdb"
    PLEX = "plex"


# =============================================================================
# Scan Schemas
# =============================================================================

class ScanSummaryResponse(BaseModel):
    """One row of the scan list."""

    id: str
    image_id: str
    model_id: str
    status: ScanStatus
    item_count: int = 0
    total_cost: float = 0.0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class ScanListResponse(BaseModel):
    scans: list[ScanSummaryResponse]
    limit: int
    offset: int


class RescanRequest(BaseModel):
    """Optional model override for a rescan."""

    model_id: Optional[str] = Field(None, alias="modelId")

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class ItemEditRequest(BaseModel):
    """User correction of a single scan item."""

    title: str = Field(..., min_length=1, max_length=500)
    creator: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"title": "The Thing", "creator": "John Carpenter"}
        }
    )


class DeleteResponse(BaseModel):
    deleted: bool
    id: str


# =============================================================================
# Settings & Usage Schemas
# =============================================================================

class SettingsResponse(BaseModel):
    settings: dict[str, str]


class SettingUpdateRequest(BaseModel):
    value: str


class SettingResponse(BaseModel):
    key: str
    value: str


class UsageResponse(BaseModel):
    records: list[dict[str, Any]]
    summary: dict[str, Any]


# =============================================================================
# System Schemas
# =============================================================================

class LogLevelRequest(BaseModel):
    log_level: str = Field(..., alias="logLevel")

    model_config = ConfigDict(populate_by_name=True)


class LogLevelResponse(BaseModel):
    log_level: str = Field(..., serialization_alias="logLevel")


class ServiceTestRequest(BaseModel):
    service: ServiceName


class ServiceTestResponse(BaseModel):
    ok: bool
    message: str
    details: Optional[dict[str, Any]] = None


class LibraryRequest(BaseModel):
    """Personal library browse action."""

    action: Literal["libraries", "items"]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str]


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    code: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
