from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Index 0 is unused so that MONTH_NAMES[month_number] works directly.
MONTH_NAMES = (
    "", "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


class Observation(BaseModel):
    """
    One raw rain reading as fetched from the store.

    `rain_accumulation` is kept as received; the aggregator decides how to
    interpret missing or malformed values.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: Optional[datetime] = None
    rain_accumulation: Any = None


class MonthlyStats(BaseModel):
    """
    Rainfall statistics for one calendar month of the target year.
    """

    month_number: int = Field(..., ge=1, le=12)
    month_name: str
    total_days_with_data: int = Field(..., ge=0, description="Distinct days with at least one reading")
    days_with_rain: int = Field(..., ge=0, description="Days whose maximum accumulation is above zero")
    total_monthly_rain_mm: float = Field(..., description="Sum of daily maxima, rounded to 0.1 mm")
    rain_percentage: float = Field(..., description="Share of days with rain, rounded to 0.1")


class YearSummary(BaseModel):
    """
    Totals over all months shown for a year.
    """

    year: int
    total_rain_mm: float
    days_with_rain: int
    total_days_with_data: int
    rain_percentage: float


class MonthlyStatsResponse(BaseModel):
    """
    Response payload for the monthly rainfall statistics of a year.
    """

    year: int
    items: list[MonthlyStats] = Field(default_factory=list)
    summary: YearSummary


class YearsResponse(BaseModel):
    """
    Years that contain data, newest first, with the suggested default.
    """

    years: list[int] = Field(default_factory=list)
    default_year: Optional[int] = None


class YearSelection(BaseModel):
    """
    Request body for switching the dashboard to another year.
    """

    year: int = Field(..., ge=1900, le=2999, examples=[2025])


class DashboardSnapshot(BaseModel):
    """
    Current state of the dashboard as last published by a refresh cycle.
    """

    selected_year: Optional[int] = None
    data_year: Optional[int] = Field(default=None, description="Year the shown items belong to")
    years: list[int] = Field(default_factory=list)
    items: list[MonthlyStats] = Field(default_factory=list)
    summary: Optional[YearSummary] = None
    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
