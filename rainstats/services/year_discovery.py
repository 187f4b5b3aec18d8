from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from rainstats.core.config import settings

logger = logging.getLogger(__name__)


class YearSource(Protocol):
    async def distinct_years(self) -> list[int]: ...

    async def has_readings_between(self, start_ts: datetime, end_ts: datetime) -> bool: ...


def default_year(years: Iterable[int], today: Optional[date] = None) -> Optional[int]:
    """
    Pick the year to show first: the current year when it has data,
    otherwise the most recent year with data, otherwise None.
    """
    available = set(years)
    if not available:
        return None
    today = today or datetime.now(timezone.utc).date()
    if today.year in available:
        return today.year
    return max(available)


class YearDiscovery:
    """
    Finds the years that contain at least one reading.

    Asks the store for the distinct years in one query. When the store
    cannot answer that query, each candidate year of the configured range is
    probed with a single-row existence query instead.
    """

    def __init__(
        self,
        repo: YearSource,
        probe_start: Optional[int] = None,
        probe_end: Optional[int] = None,
    ):
        self.repo = repo
        self.probe_start = settings.year_probe_start if probe_start is None else probe_start
        self.probe_end = settings.year_probe_end if probe_end is None else probe_end

    async def discover(self) -> list[int]:
        """
        Return the years with data, newest first.
        """
        try:
            years = await self.repo.distinct_years()
        except SQLAlchemyError as e:
            logger.warning("Distinct years query failed, probing %s-%s instead: %s", self.probe_start, self.probe_end, e)
            years = await self.probe_years()
        return sorted(set(years), reverse=True)

    async def probe_years(self) -> list[int]:
        found = []
        for year in range(self.probe_start, self.probe_end + 1):
            start = datetime(year, 1, 1, tzinfo=timezone.utc)
            end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
            if await self.repo.has_readings_between(start, end):
                found.append(year)
        logger.debug("Year probe found: %s", found)
        return found
