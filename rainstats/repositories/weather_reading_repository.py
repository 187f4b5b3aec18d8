from datetime import datetime
from typing import Sequence

from sqlalchemy import ColumnElement, Row, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rainstats.models.weather_reading import WeatherReading


def utc_year(dialect_name: str) -> ColumnElement[int]:
    """
    Year of `obs_timestamp` in UTC.

    PostgreSQL extracts fields of a `timestamptz` in the session time zone,
    so the value is converted to UTC first. Other backends read the stored
    value, which is written in UTC.
    """
    if dialect_name == "postgresql":
        return extract("year", func.timezone("UTC", WeatherReading.obs_timestamp))
    return extract("year", WeatherReading.obs_timestamp)


class WeatherReadingRepository:
    """
    Read-only access to the station readings table.

    Every query issued here is bounded: callers pass the row limit
    explicitly, and the store never returns more than that.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with an active database session.

        Args:
            db: Asynchronous SQLAlchemy session.
        """
        self.db = db

    async def get_rain_window(
        self,
        start_ts: datetime,
        end_ts: datetime,
        limit: int,
        offset: int = 0,
    ) -> Sequence[Row]:
        """
        Retrieve rain readings in the half-open range `[start_ts, end_ts)`.

        Only the timestamp and the rain accumulation are selected. Rows with
        a null timestamp are excluded. Ordering is by timestamp, with the
        primary key as tie-breaker so consecutive pages never overlap.

        Args:
            start_ts: Window start (inclusive).
            end_ts: Window end (exclusive).
            limit: Maximum number of rows to return.
            offset: Number of rows of the window to skip.

        Returns:
            Rows exposing `obs_timestamp` and `local_day_rain_accumulation`.
        """
        stmt = (
            select(
                WeatherReading.obs_timestamp,
                WeatherReading.local_day_rain_accumulation,
            )
            .where(
                WeatherReading.obs_timestamp.is_not(None),
                WeatherReading.obs_timestamp >= start_ts,
                WeatherReading.obs_timestamp < end_ts,
            )
            .order_by(WeatherReading.obs_timestamp.asc(), WeatherReading.id.asc())
            .limit(limit)
            .offset(offset)
        )
        res = await self.db.execute(stmt)
        return res.all()

    async def distinct_years(self) -> list[int]:
        """
        Return every UTC year that has at least one reading, newest first.
        """
        year = utc_year(self.db.get_bind().dialect.name)
        stmt = (
            select(year)
            .distinct()
            .where(WeatherReading.obs_timestamp.is_not(None))
            .order_by(year.desc())
        )
        res = await self.db.execute(stmt)
        return [int(y) for y in res.scalars().all() if y is not None]

    async def has_readings_between(self, start_ts: datetime, end_ts: datetime) -> bool:
        """
        Cheap existence probe: True if `[start_ts, end_ts)` holds any reading.
        """
        stmt = (
            select(WeatherReading.id)
            .where(
                WeatherReading.obs_timestamp.is_not(None),
                WeatherReading.obs_timestamp >= start_ts,
                WeatherReading.obs_timestamp < end_ts,
            )
            .limit(1)
        )
        res = await self.db.execute(stmt)
        return res.first() is not None
