"""Shared fixtures for the timetable service tests."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.services.cache_service import CacheService
from backend.services.line_service import LineService
from backend.services.refresh_service import RefreshService

from site_fixtures import BASE_URL, MONDAY, FakeBrowser, build_site


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser(build_site())


@pytest.fixture
def cache() -> CacheService:
    return CacheService(max_age_seconds=3600)


@pytest.fixture
def line_service(fake_browser: FakeBrowser, cache: CacheService) -> LineService:
    return LineService(fake_browser, cache, base_url=BASE_URL, clock=lambda: MONDAY)


@pytest.fixture
def refresh_service(line_service: LineService) -> RefreshService:
    return RefreshService(line_service)


@pytest_asyncio.fixture
async def client(line_service: LineService, refresh_service: RefreshService):
    """HTTP client bound to the app with test services installed."""
    from backend.main import app

    app.state.line_service = line_service
    app.state.refresh_service = refresh_service
    app.state.scheduler = None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
