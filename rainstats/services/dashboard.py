from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from rainstats.core.singleflight import SingleFlight
from rainstats.schemas.rainfall import DashboardSnapshot, MonthlyStats, YearSummary
from rainstats.services.aggregator import summarize_year
from rainstats.services.batch_fetcher import RainfallFetchError
from rainstats.services.year_discovery import default_year

logger = logging.getLogger(__name__)


class StatsProvider(Protocol):
    async def monthly_stats(self, year: int) -> list[MonthlyStats]: ...

    async def discover_years(self) -> list[int]: ...


class RainfallDashboard:
    """
    In-memory state of the rainfall dashboard.

    Every refresh request takes a sequence number, whether it starts a
    cycle or joins the one already running for its year. A finishing cycle
    carries the newest number among the requests it served, and publishes
    only if no request with a higher number has published since. A slow
    cycle for a year the user left is therefore dropped, while a user who
    returns to that year gets its data once it arrives. Stale cycles are
    not cancelled; their result is simply dropped.

    Concurrent refreshes of the same year share one cycle, and concurrent
    year discoveries share one discovery.
    """

    def __init__(self, provider: StatsProvider, clock: Optional[Callable[[], datetime]] = None):
        self.provider = provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.selected_year: Optional[int] = None
        self.years: list[int] = []
        self.data_year: Optional[int] = None
        self.items: list[MonthlyStats] = []
        self.summary: Optional[YearSummary] = None
        self.error: Optional[str] = None
        self.last_updated: Optional[datetime] = None

        self._cycles = SingleFlight()
        self._discovery = SingleFlight()
        self._requests = 0
        self._latest_request: dict[int, int] = {}
        self._published_request = 0
        self._year_pinned = False
        self._discovery_error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self._cycles.busy or self._discovery.busy

    def snapshot(self) -> DashboardSnapshot:
        return DashboardSnapshot(
            selected_year=self.selected_year,
            data_year=self.data_year,
            years=list(self.years),
            items=list(self.items),
            summary=self.summary,
            loading=self.loading,
            error=self.error,
            last_updated=self.last_updated,
        )

    # ------------------------------------------------------------------
    # Year discovery
    # ------------------------------------------------------------------

    async def load_years(self) -> list[int]:
        """
        Discover the years with data.

        Unless the user picked a year, the selection follows the default
        year, so a new year becomes selected once it holds data.

        Raises:
            SQLAlchemyError: if the store cannot be queried.
        """
        return await self._discovery.run("years", self._discover_years)

    async def _discover_years(self) -> list[int]:
        try:
            years = await self.provider.discover_years()
        except SQLAlchemyError as e:
            self._discovery_error = f"Year discovery failed: {e}"
            self.error = self._discovery_error
            raise

        if self._discovery_error is not None and self.error == self._discovery_error:
            self.error = None
        self._discovery_error = None

        self.years = years
        if not self._year_pinned:
            self.selected_year = default_year(years, self._clock().date())
        logger.info("Years with data: %s (selected %s)", years, self.selected_year)
        return years

    # ------------------------------------------------------------------
    # Refresh cycles
    # ------------------------------------------------------------------

    async def select_year(self, year: int) -> DashboardSnapshot:
        self.selected_year = year
        self._year_pinned = True
        return await self.refresh()

    async def scheduled_refresh(self) -> DashboardSnapshot:
        """
        Periodic tick: rediscover the years, then refresh the selected one.
        """
        return await self.refresh(rediscover=True)

    async def refresh(self, rediscover: bool = False) -> DashboardSnapshot:
        """
        Run a refresh cycle for the selected year and return the resulting state.

        Failures are not raised: a year discovery or fetch failure is
        returned as the dashboard error, with no statistics shown for a
        failed fetch.
        """
        if rediscover or self.selected_year is None:
            try:
                await self.load_years()
            except SQLAlchemyError:
                logger.exception("Year discovery failed")
                return self.snapshot()

        year = self.selected_year
        if year is None:
            logger.info("No year with data, nothing to refresh")
            return self.snapshot()

        self._requests += 1
        self._latest_request[year] = self._requests
        await self._cycles.run(year, lambda: self._run_cycle(year))
        return self.snapshot()

    async def _run_cycle(self, year: int) -> None:
        logger.debug("Refresh cycle started for %s (request %d)", year, self._latest_request[year])

        try:
            stats = await self.provider.monthly_stats(year)
        except RainfallFetchError as e:
            logger.error("Refresh cycle for %s failed: %s", year, e)
            self._publish(year, [], str(e))
            return

        self._publish(year, stats, None)

    def _publish(self, year: int, items: list[MonthlyStats], error: Optional[str]) -> bool:
        request = self._latest_request[year]
        if request < self._published_request:
            logger.info("Discarding stale result for %s (request %d)", year, request)
            return False

        self._published_request = request
        self.data_year = year
        self.items = items
        self.summary = summarize_year(year, items) if error is None else None
        self.error = error
        self.last_updated = self._clock()
        return True
