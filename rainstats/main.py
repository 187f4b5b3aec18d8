from contextlib import asynccontextmanager

from fastapi import FastAPI

from rainstats.core.config import settings
from rainstats.core.db import AsyncSessionLocal
from rainstats.core.init_db import init_db
from rainstats.core.logging_config import setup_logging
from rainstats.routers.dashboard import router as dashboard_router
from rainstats.routers.health import router as health_router
from rainstats.routers.rainfall import router as rainfall_router
from rainstats.services.dashboard import RainfallDashboard
from rainstats.services.rainfall_service import RainfallService
from rainstats.services.scheduler import RefreshScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    On startup:
    - Configures logging and makes sure the readings table exists.
    - Creates the dashboard state and starts its periodic refresh
      (first cycle right away when `REFRESH_ON_STARTUP` is set).

    On shutdown:
    - Stops the refresh schedule. In-flight store queries are not cancelled.
    """
    setup_logging()
    await init_db()

    dashboard = RainfallDashboard(RainfallService(AsyncSessionLocal))
    scheduler = RefreshScheduler(
        dashboard.scheduled_refresh,
        interval_seconds=settings.refresh_interval_seconds,
        run_immediately=settings.refresh_on_startup,
        name="dashboard-refresh",
    )
    app.state.dashboard = dashboard
    app.state.scheduler = scheduler

    scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        description="Rainfall statistics API: monthly rainfall aggregates for one weather station",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Register API routers
    app.include_router(health_router)
    app.include_router(rainfall_router)
    app.include_router(dashboard_router)

    return app


# Application entry point
app = create_app()
