"""
ShelfScan API

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import Depends, FastAPI
from loguru import logger

from .schemas import HealthResponse
from .routes import scans, system
from .middleware import (
    setup_logging,
    setup_exception_handlers,
    configure_logging,
    LoggingConfig,
)
from .dependencies import (
    get_settings,
    get_service_container,
    init_services,
    ServiceContainer,
    Settings,
)

VERSION = "1.0.0"


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup creates the service container and database tables; shutdown
    closes every HTTP client and the database engine.
    """
    settings = app.state.settings
    logger.info(f"Starting ShelfScan in {settings.environment} mode")

    services = init_services(settings)
    app.state.services = services
    try:
        logger.info("Initializing database...")
        await services.repository.create_tables()

        configured = [
            name for name, flag in (
                ("OpenRouter", settings.openrouter_configured),
                ("TMDB", settings.tmdb_configured),
                ("TVDB", settings.tvdb_configured),
                ("Plex", settings.plex_configured),
            ) if flag
        ]
        logger.info(f"Configured services: {', '.join(configured) or 'none'}")
        logger.info("ShelfScan started successfully")

        yield

    finally:
        logger.info("Shutting down ShelfScan...")
        await services.close()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings.log_level, structured=settings.environment != "development")

    app = FastAPI(
        title="ShelfScan",
        description="Shelf photo media identification and catalog matching.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ==========================================================================
    # Middleware
    # ==========================================================================

    setup_logging(
        app,
        config=LoggingConfig(
            enabled=True,
            log_request_body=settings.debug,
        ),
    )
    setup_exception_handlers(app)

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"

    app.include_router(scans.router, prefix=api_prefix)
    app.include_router(system.router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "ShelfScan",
            "version": VERSION,
            "status": "running",
            "docs": "/docs" if settings.debug else None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(
        services: ServiceContainer = Depends(get_service_container),
    ) -> HealthResponse:
        """Health check with per-component status."""
        components = {}
        overall_healthy = True

        try:
            await services.repository.get_settings()
            components["database"] = "healthy"
        except Exception as e:
            components["database"] = f"unhealthy: {str(e)}"
            overall_healthy = False

        for name, flag in (
            ("openrouter", services.settings.openrouter_configured),
            ("tmdb", services.settings.tmdb_configured),
            ("tvdb", services.settings.tvdb_configured),
            ("plex", services.settings.plex_configured),
        ):
            components[name] = "configured" if flag else "not_configured"

        return HealthResponse(
            status="healthy" if overall_healthy else "degraded",
            version=VERSION,
            components=components,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "shelfscan.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
