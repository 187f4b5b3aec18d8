from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rainstats.core.config import settings
from rainstats.core.db import get_db
from rainstats.models.weather_reading import WeatherReading

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    summary="Service health check",
    description=(
        "Checks whether the API service is running and returns basic service information. "
        "This endpoint **does not** touch the observation store."
    ),
    response_description="Service status",
)
def health():
    """
    Basic health check for the API.

    **Returns:**
    - `status`: Always `ok` if the service is running
    - `service`: Service name (configured via `APP_NAME`)
    - `environment`: Current environment (configured via `ENVIRONMENT`)
    - `row_cap`: Maximum rows requested per store query (`QUERY_ROW_CAP`)
    """
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "row_cap": settings.query_row_cap,
    }


@router.get(
    "/health/db",
    summary="Observation store health check",
    description=(
        "Reads at most one row of the `weather_data` table. If this endpoint fails, the "
        "store is down, the table is missing, or `DATABASE_URL` is incorrect."
    ),
    response_description="Observation store status",
)
async def health_db(db: AsyncSession = Depends(get_db)):
    """
    Observation store connectivity check.

    **Returns:**
    - `status`: `ok` if the query executes successfully
    - `db`: `ok` if the table can be read
    - `has_readings`: whether the table holds at least one reading
    """
    row = (await db.execute(select(WeatherReading.id).limit(1))).first()
    return {"status": "ok", "db": "ok", "has_readings": row is not None}
