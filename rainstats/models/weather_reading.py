from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from rainstats.models.base import Base


class WeatherReading(Base):
    """
    Raw station reading.

    One row per report sent by the station. The store is append-only and
    the service only ever reads it; the rainfall pipeline needs the report
    timestamp and the station's running rain accumulation for the local day.
    """

    __tablename__ = "weather_data"

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Internal unique identifier for the reading",
    )

    obs_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp of the observation (UTC)",
    )

    local_day_rain_accumulation: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Rain accumulated since local midnight, in millimetres",
    )

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    __table_args__ = (
        Index("ix_weather_data_obs_timestamp", "obs_timestamp"),
    )
