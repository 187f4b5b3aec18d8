"""
Rainfall aggregation.

Turns raw station readings into monthly statistics in two steps:

1. Daily reduction: the station reports a running accumulation that resets
   at midnight, so the rain of a day is the largest value reported that day.
   Each UTC calendar day keeps its maximum reading.
2. Monthly rollup: the daily maxima of the target year are grouped by month
   into counts, totals and the share of rainy days.

Rounding uses `Decimal` with ROUND_HALF_UP to one decimal place, so a total of
0.25 mm is shown as 0.3 mm regardless of binary float representation.
"""

import logging
from collections import Counter
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from rainstats.schemas.rainfall import MONTH_NAMES, MonthlyStats, Observation, YearSummary

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
TENTH = Decimal("0.1")
HUNDRED = Decimal("100")


def coerce_rain(value: Any) -> Decimal:
    """
    Interpret a raw accumulation value as millimetres.

    Missing, non-numeric and non-finite values count as no rain.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def round_tenth(value: Decimal) -> Decimal:
    return value.quantize(TENTH, rounding=ROUND_HALF_UP)


def utc_day(ts: datetime) -> date:
    """Calendar day of a timestamp in UTC. Naive timestamps are taken as UTC."""
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(timezone.utc).date()


def rain_percentage(days_with_rain: int, total_days: int) -> Decimal:
    if total_days <= 0:
        return ZERO
    return round_tenth(Decimal(days_with_rain) * HUNDRED / Decimal(total_days))


def reduce_daily(observations: Iterable[Observation]) -> dict[date, Decimal]:
    """
    Keep the maximum accumulation of each UTC day.

    Observations without a timestamp are skipped. The result does not
    depend on the order of the input.

    Returns:
        Mapping of day to maximum accumulation in millimetres.
    """
    daily: dict[date, Decimal] = {}
    for obs in observations:
        if obs.timestamp is None:
            continue
        day = utc_day(obs.timestamp)
        amount = coerce_rain(obs.rain_accumulation)
        current = daily.get(day)
        if current is None or amount > current:
            daily[day] = amount
    return daily


def rollup_monthly(daily: Mapping[date, Decimal], target_year: int) -> list[MonthlyStats]:
    """
    Roll daily maxima of `target_year` up into per-month statistics.

    Days from any other year are ignored. Months without a single day of
    data are left out of the result, which is ordered by month number.
    """
    days_per_month: Counter = Counter()
    rainy_per_month: Counter = Counter()
    rain_per_month: dict[int, Decimal] = {}

    for day, amount in daily.items():
        if day.year != target_year:
            continue
        month = day.month
        days_per_month[month] += 1
        if amount > ZERO:
            rainy_per_month[month] += 1
        rain_per_month[month] = rain_per_month.get(month, ZERO) + amount

    logger.debug("Days per month for %s: %s", target_year, dict(sorted(days_per_month.items())))

    stats = []
    for month in sorted(days_per_month):
        total_days = days_per_month[month]
        rainy_days = rainy_per_month[month]
        stats.append(
            MonthlyStats(
                month_number=month,
                month_name=MONTH_NAMES[month],
                total_days_with_data=total_days,
                days_with_rain=rainy_days,
                total_monthly_rain_mm=float(round_tenth(rain_per_month[month])),
                rain_percentage=float(rain_percentage(rainy_days, total_days)),
            )
        )
    return stats


def aggregate(observations: Iterable[Observation], target_year: int) -> list[MonthlyStats]:
    """
    Monthly rainfall statistics of `target_year` from raw observations.

    Never raises on bad data: an empty input gives an empty list.
    """
    return rollup_monthly(reduce_daily(observations), target_year)


def summarize_year(year: int, stats: Iterable[MonthlyStats]) -> YearSummary:
    """
    Totals over the monthly rows of a year.

    The rain total is the sum of the already rounded monthly totals, so it
    matches what a reader adds up from the monthly rows.
    """
    total_rain = ZERO
    rainy_days = 0
    total_days = 0
    for row in stats:
        total_rain += Decimal(str(row.total_monthly_rain_mm))
        rainy_days += row.days_with_rain
        total_days += row.total_days_with_data

    return YearSummary(
        year=year,
        total_rain_mm=float(round_tenth(total_rain)),
        days_with_rain=rainy_days,
        total_days_with_data=total_days,
        rain_percentage=float(rain_percentage(rainy_days, total_days)),
    )
