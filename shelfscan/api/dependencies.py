"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- The scan repository
- External service clients (vision, catalogs, personal library)
- The scan orchestrator
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from loguru import logger


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./shelfscan.db"
    database_echo: bool = False

    # Vision (OpenRouter)
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_referer: str = "http://localhost:8000"
    default_model_id: str = "openai/gpt-4o"

    # Catalogs
    tmdb_api_key: Optional[str] = None
    tvdb_api_key: Optional[str] = None

    # Personal library
    plex_url: Optional[str] = None
    plex_token: Optional[str] = None

    # Timeouts (seconds)
    catalog_timeout: float = 20.0
    vision_timeout: float = 120.0

    # Logging
    log_level: str = "INFO"

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", cls.openrouter_base_url),
            openrouter_referer=os.getenv("OPENROUTER_REFERER", cls.openrouter_referer),
            default_model_id=os.getenv("DEFAULT_MODEL_ID", cls.default_model_id),
            tmdb_api_key=os.getenv("TMDB_API_KEY") or None,
            tvdb_api_key=os.getenv("TVDB_API_KEY") or None,
            plex_url=os.getenv("PLEX_URL") or None,
            plex_token=os.getenv("PLEX_TOKEN") or None,
            catalog_timeout=float(os.getenv("CATALOG_TIMEOUT", cls.catalog_timeout)),
            vision_timeout=float(os.getenv("VISION_TIMEOUT", cls.vision_timeout)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            environment=os.getenv("SHELFSCAN_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )

    @property
    def openrouter_configured(self) -> bool:
        return bool(self.openrouter_api_key)

    @property
    def tmdb_configured(self) -> bool:
        return bool(self.tmdb_api_key)

    @property
    def tvdb_configured(self) -> bool:
        return bool(self.tvdb_api_key)

    @property
    def plex_configured(self) -> bool:
        return bool(self.plex_url and self.plex_token)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Container (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Clients for services without credentials are None; routes that need
    them report the service as not configured.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._repository = None
        self._genre_cache = None
        self._token_cache = None
        self._tmdb = None
        self._tvdb = None
        self._plex = None
        self._vision = None
        self._resolver = None
        self._orchestrator = None

    @property
    def repository(self):
        """Get scan repository instance."""
        if self._repository is None:
            from ..storage.scan_repository import ScanRepository
            self._repository = ScanRepository.from_url(
                self.settings.database_url,
                echo=self.settings.database_echo,
            )
        return self._repository

    @property
    def genre_cache(self):
        """Process-wide genre map, loaded on first resolve."""
        if self._genre_cache is None:
            from ..identification.tmdb import GenreCache
            self._genre_cache = GenreCache()
        return self._genre_cache

    @property
    def token_cache(self):
        """Process-wide supplemental catalog token."""
        if self._token_cache is None:
            from ..identification.tvdb import TokenCache
            self._token_cache = TokenCache()
        return self._token_cache

    @property
    def tmdb(self):
        if self._tmdb is None and self.settings.tmdb_configured:
            from ..identification.tmdb import TMDBClient
            self._tmdb = TMDBClient(
                api_key=self.settings.tmdb_api_key,
                timeout=self.settings.catalog_timeout,
            )
        return self._tmdb

    @property
    def tvdb(self):
        if self._tvdb is None and self.settings.tvdb_configured:
            from ..identification.tvdb import TVDBClient
            self._tvdb = TVDBClient(
                api_key=self.settings.tvdb_api_key,
                token_cache=self.token_cache,
                timeout=self.settings.catalog_timeout,
            )
        return self._tvdb

    @property
    def plex(self):
        if self._plex is None and self.settings.plex_configured:
            from ..library.plex import PlexClient
            self._plex = PlexClient(
                base_url=self.settings.plex_url,
                token=self.settings.plex_token,
                timeout=self.settings.catalog_timeout,
            )
        return self._plex

    @property
    def vision(self):
        if self._vision is None and self.settings.openrouter_configured:
            from ..vision.client import VisionClient
            self._vision = VisionClient(
                api_key=self.settings.openrouter_api_key,
                base_url=self.settings.openrouter_base_url,
                referer=self.settings.openrouter_referer,
                timeout=self.settings.vision_timeout,
            )
        return self._vision

    @property
    def resolver(self):
        """Resolver over the configured catalogs, or None without TMDB."""
        if self._resolver is None and self.tmdb is not None:
            from ..identification.resolver import MultiSourceResolver
            self._resolver = MultiSourceResolver(
                tmdb=self.tmdb,
                tvdb=self.tvdb,
                genre_cache=self.genre_cache,
            )
        return self._resolver

    @property
    def orchestrator(self):
        """Get scan orchestrator instance."""
        if self._orchestrator is None:
            from ..pipeline.orchestrator import ScanOrchestrator
            self._orchestrator = ScanOrchestrator(
                repository=self.repository,
                vision=self.vision,
                resolver=self.resolver,
                library=self.plex,
            )
        return self._orchestrator

    async def close(self) -> None:
        """Close every client that was created."""
        for client in (self._tmdb, self._tvdb, self._plex, self._vision):
            if client is not None:
                await client.close()
        if self._repository is not None:
            await self._repository.dispose()
        logger.info("Service clients closed")


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_repository(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for scan repository."""
    return container.repository


def get_orchestrator(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for scan orchestrator."""
    return container.orchestrator
