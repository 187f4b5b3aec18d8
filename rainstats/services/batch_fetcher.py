from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import NamedTuple, Optional, Protocol, Sequence

from rainstats.core.config import settings
from rainstats.schemas.rainfall import MONTH_NAMES, Observation

logger = logging.getLogger(__name__)


class RainWindowSource(Protocol):
    async def get_rain_window(
        self, start_ts: datetime, end_ts: datetime, limit: int, offset: int = 0
    ) -> Sequence: ...


class MonthWindow(NamedTuple):
    month: int
    start: datetime
    end: datetime

    @property
    def name(self) -> str:
        return MONTH_NAMES[self.month]


class RainfallFetchError(RuntimeError):
    """
    A monthly window query failed, so the year could not be fetched.

    The message names the failing month and is meant to be shown as is.
    """

    def __init__(self, year: int, month: int, cause: BaseException | str):
        self.year = year
        self.month = month
        self.cause = cause
        super().__init__(f"Database query failed for {MONTH_NAMES[month]} {year}: {cause}")


def month_windows(year: int) -> list[MonthWindow]:
    """
    Split a year into its twelve `[first-of-month, first-of-next-month)` UTC windows.
    """
    windows = []
    for month in range(1, 13):
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else datetime(year, month + 1, 1, tzinfo=timezone.utc)
        windows.append(MonthWindow(month, start, end))
    return windows


class RainfallBatchFetcher:
    """
    Fetches all rain readings of a year without ever asking the store for
    more rows than its per-query cap.

    The year is read month by month. A month holding more readings than the
    cap is read in consecutive pages of the same window until a short page
    comes back, so nothing is truncated.
    """

    def __init__(self, repo: RainWindowSource, row_cap: Optional[int] = None):
        self.repo = repo
        self.row_cap = row_cap or settings.query_row_cap

    async def fetch_window(self, year: int, window: MonthWindow) -> list[Observation]:
        """
        Read every reading of one monthly window.

        Raises:
            RainfallFetchError: if any page query fails.
        """
        observations: list[Observation] = []
        offset = 0
        try:
            while True:
                page = await self.repo.get_rain_window(
                    window.start, window.end, limit=self.row_cap, offset=offset
                )
                observations.extend(
                    Observation(timestamp=row.obs_timestamp, rain_accumulation=row.local_day_rain_accumulation)
                    for row in page
                )
                if len(page) < self.row_cap:
                    break
                offset += len(page)
        except Exception as e:
            raise RainfallFetchError(year, window.month, e) from e

        logger.debug("%s %s: %d records", window.name, year, len(observations))
        return observations

    async def fetch_year(self, year: int) -> list[Observation]:
        """
        Read all readings of `year`, concatenated in month order.

        Either the whole year is returned or nothing: the first failing
        month aborts the fetch and earlier months are dropped.

        Raises:
            RainfallFetchError: identifying the month whose query failed.
        """
        observations: list[Observation] = []
        for window in month_windows(year):
            observations.extend(await self.fetch_window(year, window))

        logger.info("Fetched %d raw readings for %s", len(observations), year)
        return observations
