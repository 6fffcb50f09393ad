"""
Pytest configuration and fixtures for ShelfScan tests.
"""

import io
import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shelfscan.api.dependencies import ServiceContainer, Settings, get_service_container
from shelfscan.api.main import create_app
from shelfscan.identification.resolver import MultiSourceResolver
from shelfscan.identification.tmdb import GenreCache
from shelfscan.pipeline.orchestrator import ScanOrchestrator
from shelfscan.storage.scan_repository import ScanRepository

from tests.fakes import StubCatalog, StubVision, movie, series, vision_payload


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings(**overrides) -> Settings:
    """Return settings configured for testing."""
    values = dict(
        database_url="sqlite+aiosqlite:///:memory:",
        database_echo=False,
        openrouter_api_key="test-openrouter-key",
        tmdb_api_key="test-tmdb-key",
        environment="test",
        debug=True,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def shelf_payload() -> str:
    """Vision reply for a small shelf: two movies, a box set and a record."""
    return vision_payload(
        {"title": "Alien", "creator": "Ridley Scott", "type": "movie", "year": 1979},
        {"title": "Breaking Bad - Season 1", "creator": "", "type": "tv", "year": 2008},
        {"title": "The Thing", "creator": "", "type": "dvd", "year": 1982},
        {"title": "Kind of Blue", "creator": "Miles Davis", "type": "vinyl", "year": 1959},
    )


@pytest.fixture
def catalog() -> StubCatalog:
    """Primary catalog knowing the titles in `shelf_payload`."""
    from shelfscan.identification.types import CatalogDetail

    return StubCatalog(
        movies={
            "Alien": [
                movie(348, "Alien", 1979, genre_ids=[878], poster_ref="/alien.jpg"),
                movie(8077, "Alien 3", 1992),
            ],
            "The Thing": [movie(1091, "The Thing", 1982, genre_ids=[878])],
        },
        tv={
            "Breaking Bad": [series(1396, "Breaking Bad", 2008, genre_ids=[18])],
        },
        details={
            ("movie", 348): CatalogDetail(348, imdb_id="tt0078748", director="Ridley Scott", runtime=117),
            ("movie", 1091): CatalogDetail(1091, imdb_id="tt0084787", director="John Carpenter", runtime=109),
            ("tv", 1396): CatalogDetail(
                1396,
                imdb_id="tt0903747",
                network="AMC",
                season_count=5,
                status="Ended",
                creators="Vince Gilligan",
            ),
        },
    )


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def sample_shelf_image() -> bytes:
    """Synthetic shelf photo: colored spines on a light background, PNG bytes."""
    img = Image.new("RGB", (640, 480), color=(240, 240, 240))
    spine_colors = [(150, 50, 50), (50, 150, 50), (50, 50, 150), (150, 150, 50)]
    x = 50
    for i, color in enumerate(spine_colors):
        width = 40 + i * 5
        img.paste(color, (x, 100, x + width, 400))
        x += width + 10

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# Storage & Pipeline Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def repository() -> AsyncGenerator[ScanRepository, None]:
    """Scan repository on a fresh in-memory database."""
    repo = ScanRepository.from_url("sqlite+aiosqlite:///:memory:")
    await repo.create_tables()
    yield repo
    await repo.dispose()


@pytest.fixture
def resolver(catalog) -> MultiSourceResolver:
    return MultiSourceResolver(tmdb=catalog, genre_cache=GenreCache())


@pytest.fixture
def vision(shelf_payload) -> StubVision:
    return StubVision(shelf_payload)


@pytest.fixture
def orchestrator(repository, vision, resolver) -> ScanOrchestrator:
    return ScanOrchestrator(repository, vision=vision, resolver=resolver)


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def container(repository, vision, resolver, orchestrator) -> ServiceContainer:
    """Service container wired to the stubs instead of live services."""
    services = ServiceContainer(get_test_settings())
    services._repository = repository
    services._vision = vision
    services._tmdb = resolver.tmdb
    services._resolver = resolver
    services._orchestrator = orchestrator
    return services


@pytest_asyncio.fixture
async def app(container):
    """Create FastAPI application for testing."""
    application = create_app(get_test_settings())
    application.dependency_overrides[get_service_container] = lambda: container

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
