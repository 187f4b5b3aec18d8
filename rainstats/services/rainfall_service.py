from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rainstats.core.config import settings
from rainstats.repositories.weather_reading_repository import WeatherReadingRepository
from rainstats.schemas.rainfall import MonthlyStats, Observation
from rainstats.services.aggregator import aggregate
from rainstats.services.batch_fetcher import RainfallBatchFetcher, month_windows
from rainstats.services.year_discovery import YearDiscovery

logger = logging.getLogger(__name__)


class RainfallService:
    """
    Runs the rainfall pipeline outside of a request.

    Each call opens its own short-lived session(s) from `session_factory`,
    so the service can be shared by background refresh cycles.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        row_cap: Optional[int] = None,
        concurrent: Optional[bool] = None,
    ):
        self.session_factory = session_factory
        self.row_cap = row_cap or settings.query_row_cap
        self.concurrent = settings.concurrent_fetch if concurrent is None else concurrent

    async def fetch_observations(self, year: int) -> list[Observation]:
        """
        Fetch every reading of `year`.

        Raises:
            RainfallFetchError: if any monthly window query fails.
        """
        if self.concurrent:
            return await self._fetch_concurrently(year)

        async with self.session_factory() as session:
            fetcher = RainfallBatchFetcher(WeatherReadingRepository(session), self.row_cap)
            return await fetcher.fetch_year(year)

    async def _fetch_concurrently(self, year: int) -> list[Observation]:
        # One session per window: an AsyncSession cannot run concurrent queries.
        async def fetch_one(window):
            async with self.session_factory() as session:
                fetcher = RainfallBatchFetcher(WeatherReadingRepository(session), self.row_cap)
                return await fetcher.fetch_window(year, window)

        results = await asyncio.gather(
            *(fetch_one(w) for w in month_windows(year)),
            return_exceptions=True,
        )

        # Results are in month order, so the first failure raised is the earliest month.
        observations: list[Observation] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            observations.extend(result)

        logger.info("Fetched %d raw readings for %s (concurrent)", len(observations), year)
        return observations

    async def monthly_stats(self, year: int) -> list[MonthlyStats]:
        """
        Monthly rainfall statistics of `year`, computed from fresh readings.
        """
        observations = await self.fetch_observations(year)
        return aggregate(observations, year)

    async def discover_years(self) -> list[int]:
        async with self.session_factory() as session:
            return await YearDiscovery(WeatherReadingRepository(session)).discover()
