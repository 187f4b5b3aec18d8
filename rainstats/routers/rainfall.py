import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rainstats.core.db import get_db
from rainstats.repositories.weather_reading_repository import WeatherReadingRepository
from rainstats.schemas.rainfall import MonthlyStatsResponse, YearsResponse
from rainstats.services.aggregator import aggregate, summarize_year
from rainstats.services.batch_fetcher import RainfallBatchFetcher, RainfallFetchError
from rainstats.services.year_discovery import YearDiscovery, default_year

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rainfall", tags=["Rainfall"])


@router.get(
    "/years",
    response_model=YearsResponse,
    summary="Years with rainfall data",
    description=(
        "Lists the years holding at least one reading, newest first, and the suggested default year.\n\n"
        "- If the store cannot be queried the request fails with HTTP 502."
    ),
)
async def list_years(db: AsyncSession = Depends(get_db)) -> YearsResponse:
    try:
        years = await YearDiscovery(WeatherReadingRepository(db)).discover()
    except SQLAlchemyError as e:
        logger.error("Year discovery failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Year discovery failed: {e}")

    return YearsResponse(years=years, default_year=default_year(years))


@router.get(
    "/monthly",
    response_model=MonthlyStatsResponse,
    summary="Monthly rainfall statistics",
    description=(
        "Computes monthly rainfall statistics of a year from the raw station readings.\n\n"
        "- Each day counts once, with its highest accumulation reading.\n"
        "- Months without any reading are omitted.\n"
        "- If a monthly query fails the whole request fails with HTTP 502 and names the month."
    ),
)
async def monthly_stats(
    year: int = Query(..., ge=1900, le=2999, description="Calendar year (UTC)"),
    db: AsyncSession = Depends(get_db),
) -> MonthlyStatsResponse:
    fetcher = RainfallBatchFetcher(WeatherReadingRepository(db))
    try:
        observations = await fetcher.fetch_year(year)
    except RainfallFetchError as e:
        logger.error("Monthly statistics for %s unavailable: %s", year, e)
        raise HTTPException(status_code=502, detail=str(e))

    items = aggregate(observations, year)
    return MonthlyStatsResponse(year=year, items=items, summary=summarize_year(year, items))
