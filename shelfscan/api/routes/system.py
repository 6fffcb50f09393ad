"""
System API Routes

Settings, usage ledger, service configuration status and connectivity
checks, runtime log level, and personal library browsing.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from loguru import logger

from shelfscan.api.dependencies import ServiceContainer, get_repository, get_service_container
from shelfscan.api.middleware.error_handler import (
    ConfigurationError,
    ExternalServiceError,
    ValidationError,
)
from shelfscan.api.middleware.logging import get_log_level, set_log_level
from shelfscan.api.schemas import (
    ErrorResponse,
    LibraryRequest,
    LogLevelRequest,
    LogLevelResponse,
    ServiceName,
    ServiceTestRequest,
    ServiceTestResponse,
    SettingResponse,
    SettingsResponse,
    SettingUpdateRequest,
    UsageResponse,
)
from shelfscan.library.plex import LibraryError


router = APIRouter(tags=["system"])


SERVICE_LABELS = {
    ServiceName.OPENROUTER: "OpenRouter",
    ServiceName.TMDB: "TMDB",
    ServiceName.TVDB: "TVDB",
    ServiceName.PLEX: "Plex",
}


# =============================================================================
# Settings & Usage
# =============================================================================

@router.get("/settings", response_model=SettingsResponse)
async def get_settings(repo=Depends(get_repository)):
    """All stored key-value settings."""
    return SettingsResponse(settings=await repo.get_settings())


@router.put("/settings/{key}", response_model=SettingResponse)
async def put_setting(key: str, request: SettingUpdateRequest, repo=Depends(get_repository)):
    """Create or replace one setting."""
    await repo.upsert_setting(key, request.value)
    logger.info(f"Setting updated: {key}")
    return SettingResponse(key=key, value=request.value)


@router.get("/usage", response_model=UsageResponse)
async def get_usage(repo=Depends(get_repository)):
    """Vision usage records, newest first, with per-model totals."""
    return UsageResponse(
        records=await repo.list_usage(),
        summary=await repo.usage_summary(),
    )


# =============================================================================
# Service Configuration
# =============================================================================

@router.get("/config")
async def get_config(container: ServiceContainer = Depends(get_service_container)):
    """Which external services have credentials. Secrets are never returned."""
    settings = container.settings
    return {
        "services": {
            "openrouter": {
                "configured": settings.openrouter_configured,
                "baseUrl": settings.openrouter_base_url,
            },
            "tmdb": {"configured": settings.tmdb_configured},
            "tvdb": {"configured": settings.tvdb_configured},
            "plex": {
                "configured": settings.plex_configured,
                "url": settings.plex_url,
            },
        },
        "defaultModelId": settings.default_model_id,
        "logLevel": get_log_level(),
    }


async def _test_openrouter(container: ServiceContainer) -> ServiceTestResponse:
    ok, message = await container.vision.test_connection()
    return ServiceTestResponse(ok=ok, message=message)


async def _test_tmdb(container: ServiceContainer) -> ServiceTestResponse:
    genres = await container.tmdb.fetch_genres("movie")
    if genres is None:
        return ServiceTestResponse(ok=False, message="TMDB request failed")
    return ServiceTestResponse(ok=True, message=f"Connected to TMDB ({len(genres)} genres available)")


async def _test_tvdb(container: ServiceContainer) -> ServiceTestResponse:
    ok, message = await container.tvdb.test_connection()
    return ServiceTestResponse(ok=ok, message=message)


async def _test_plex(container: ServiceContainer) -> ServiceTestResponse:
    try:
        sections = await container.plex.list_sections()
    except LibraryError as e:
        return ServiceTestResponse(ok=False, message=str(e))
    movies = sum(1 for s in sections if s.kind == "movie")
    shows = sum(1 for s in sections if s.kind == "show")
    return ServiceTestResponse(
        ok=True,
        message=f"Connected: {movies} movie library(ies), {shows} TV library(ies)",
        details={"libraries": [{"title": s.title, "type": s.kind} for s in sections]},
    )


SERVICE_TESTS = {
    ServiceName.OPENROUTER: ("openrouter_configured", _test_openrouter),
    ServiceName.TMDB: ("tmdb_configured", _test_tmdb),
    ServiceName.TVDB: ("tvdb_configured", _test_tvdb),
    ServiceName.PLEX: ("plex_configured", _test_plex),
}


@router.post(
    "/config/test",
    response_model=ServiceTestResponse,
    response_model_exclude_none=True,
)
async def check_service(
    request: ServiceTestRequest,
    container: ServiceContainer = Depends(get_service_container),
):
    """Live connectivity check against one external service."""
    label = SERVICE_LABELS[request.service]
    configured_flag, run_test = SERVICE_TESTS[request.service]
    if not getattr(container.settings, configured_flag):
        return ServiceTestResponse(ok=False, message=f"{label} is not configured")

    result = await run_test(container)
    logger.info(f"Connection test {label}: ok={result.ok} ({result.message})")
    return result


# =============================================================================
# Log Level
# =============================================================================

@router.get("/log-level", response_model=LogLevelResponse)
async def read_log_level():
    return LogLevelResponse(log_level=get_log_level())


@router.put(
    "/log-level",
    response_model=LogLevelResponse,
    responses={400: {"model": ErrorResponse, "description": "Unknown level"}},
)
async def update_log_level(request: LogLevelRequest):
    """Change the log level for the running process."""
    try:
        level = set_log_level(request.log_level)
    except ValueError as e:
        raise ValidationError(str(e))
    logger.info(f"Log level set to {level}")
    return LogLevelResponse(log_level=level)


# =============================================================================
# Personal Library
# =============================================================================

@router.post(
    "/plex",
    responses={
        502: {"model": ErrorResponse, "description": "Plex request failed"},
        503: {"model": ErrorResponse, "description": "Plex not configured"},
    },
)
async def browse_library(
    request: LibraryRequest,
    container: ServiceContainer = Depends(get_service_container),
):
    """List Plex libraries, or every movie and show item in them."""
    plex = container.plex
    if plex is None:
        raise ConfigurationError("Plex")

    try:
        if request.action == "libraries":
            sections = await plex.list_sections()
            return {"libraries": [asdict(s) for s in sections]}
        items = await plex.list_all_items()
        return {"items": [asdict(i) for i in items]}
    except LibraryError as e:
        raise ExternalServiceError("Plex", detail=str(e))
