"""Main FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .logging_utils import configure_logging
from .api import lines, schedules, system
from .services.cache_service import CacheService
from .services.line_service import LineService
from .services.refresh_service import RefreshService
from .services.scrapers.browser import BrowserManager
from .workers.scheduler import RefreshScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    configure_logging("api")
    browser = BrowserManager()
    line_service = LineService(browser, CacheService())
    refresh_service = RefreshService(line_service)
    scheduler = RefreshScheduler(refresh_service) if settings.scheduler_enabled else None

    app.state.browser = browser
    app.state.line_service = line_service
    app.state.refresh_service = refresh_service
    app.state.scheduler = scheduler
    if scheduler is not None:
        scheduler.start()
    yield
    # Shutdown
    if scheduler is not None:
        await scheduler.stop()
    await refresh_service.shutdown()
    await browser.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(lines.router, prefix="/api/lines", tags=["Lines"])
app.include_router(schedules.router, prefix="/api/schedules", tags=["Schedules"])
app.include_router(system.router, prefix="/api/system", tags=["System"])
app.include_router(lines.public_router, tags=["Public"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
