import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from rainstats.schemas.rainfall import MonthlyStats
from rainstats.services.batch_fetcher import RainfallFetchError
from rainstats.services.dashboard import RainfallDashboard

NOW = datetime(2025, 10, 19, 8, 0, tzinfo=timezone.utc)


def stats_for(year, rain=1.0):
    return [
        MonthlyStats(month_number=1, month_name="January", total_days_with_data=2,
                     days_with_rain=1, total_monthly_rain_mm=rain, rain_percentage=50.0)
    ]


class FakeProvider:
    """
    Stats provider whose calls block until released, per year.
    """

    def __init__(self, years=(2025, 2024)):
        self.years = list(years)
        self.gates: dict[int, asyncio.Event] = {}
        self.failures: dict[int, Exception] = {}
        self.stats_calls: list[int] = []
        self.discover_calls = 0

    def gate(self, year):
        return self.gates.setdefault(year, asyncio.Event())

    async def monthly_stats(self, year):
        self.stats_calls.append(year)
        if year in self.gates:
            await self.gates[year].wait()
        if year in self.failures:
            raise self.failures[year]
        return stats_for(year, rain=float(year - 2000))

    async def discover_years(self):
        self.discover_calls += 1
        return list(self.years)


@pytest.mark.asyncio
async def test_first_refresh_discovers_years_and_selects_default():
    dashboard = RainfallDashboard(FakeProvider(), clock=lambda: NOW)

    snapshot = await dashboard.refresh()

    assert snapshot.years == [2025, 2024]
    assert snapshot.selected_year == 2025
    assert snapshot.data_year == 2025
    assert snapshot.items[0].total_monthly_rain_mm == 25.0
    assert snapshot.summary.total_rain_mm == 25.0
    assert snapshot.error is None
    assert snapshot.loading is False
    assert snapshot.last_updated == NOW


@pytest.mark.asyncio
async def test_refresh_without_any_data():
    provider = FakeProvider(years=())
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)

    snapshot = await dashboard.refresh()

    assert snapshot.selected_year is None
    assert snapshot.items == []
    assert provider.stats_calls == []


@pytest.mark.asyncio
async def test_fetch_failure_is_published_as_error_without_data():
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.refresh()

    cause = OperationalError("SELECT ...", {}, Exception("timeout"))
    provider.failures[2025] = RainfallFetchError(2025, 3, cause)
    snapshot = await dashboard.refresh()

    assert snapshot.error.startswith("Database query failed for March 2025")
    assert snapshot.items == []
    assert snapshot.summary is None

    # The next successful cycle clears the error.
    del provider.failures[2025]
    snapshot = await dashboard.refresh()
    assert snapshot.error is None
    assert len(snapshot.items) == 1


@pytest.mark.asyncio
async def test_concurrent_refreshes_of_same_year_share_one_cycle():
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.load_years()
    gate = provider.gate(2025)

    first = asyncio.create_task(dashboard.refresh())
    second = asyncio.create_task(dashboard.refresh())
    await asyncio.sleep(0.01)
    assert dashboard.loading is True
    assert dashboard.snapshot().loading is True

    gate.set()
    await asyncio.gather(first, second)

    assert provider.stats_calls == [2025]
    assert dashboard.loading is False


@pytest.mark.asyncio
async def test_concurrent_year_discoveries_share_one_query():
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)

    await asyncio.gather(dashboard.load_years(), dashboard.load_years(), dashboard.load_years())

    assert provider.discover_calls == 1


@pytest.mark.asyncio
async def test_stale_cycle_finishing_late_is_discarded():
    """
    2024 is selected and its cycle stalls; the user switches to 2025, whose
    cycle completes first. The late 2024 result must not replace 2025.
    """
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.load_years()
    slow_2024 = provider.gate(2024)

    stale = asyncio.create_task(dashboard.select_year(2024))
    await asyncio.sleep(0.01)
    fresh = await dashboard.select_year(2025)

    assert fresh.data_year == 2025
    slow_2024.set()
    await stale

    snapshot = dashboard.snapshot()
    assert snapshot.selected_year == 2025
    assert snapshot.data_year == 2025
    assert snapshot.items[0].total_monthly_rain_mm == 25.0


@pytest.mark.asyncio
async def test_earlier_cycle_finishing_first_is_then_replaced():
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.load_years()
    gate_2025 = provider.gate(2025)

    await dashboard.select_year(2024)
    assert dashboard.data_year == 2024

    pending = asyncio.create_task(dashboard.select_year(2025))
    await asyncio.sleep(0.01)
    assert dashboard.data_year == 2024
    gate_2025.set()
    await pending

    assert dashboard.data_year == 2025

@pytest.mark.asyncio
async def test_returning_to_a_year_with_a_running_cycle_shows_it():
    """
    2024 stalls, the user switches to 2025, then back to 2024 while the first
    2024 cycle is still running. The 2024 result belongs to the latest
    selection and is shown when it arrives.
    """
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.load_years()
    slow_2024 = provider.gate(2024)

    first = asyncio.create_task(dashboard.select_year(2024))
    await asyncio.sleep(0.01)
    await dashboard.select_year(2025)
    assert dashboard.data_year == 2025

    back = asyncio.create_task(dashboard.select_year(2024))
    await asyncio.sleep(0.01)
    slow_2024.set()
    await asyncio.gather(first, back)

    snapshot = dashboard.snapshot()
    assert provider.stats_calls == [2024, 2025]
    assert snapshot.selected_year == 2024
    assert snapshot.data_year == 2024
    assert snapshot.items[0].total_monthly_rain_mm == 24.0


class BrokenProvider(FakeProvider):
    def __init__(self, years=(2025, 2024)):
        super().__init__(years)
        self.broken = True

    async def discover_years(self):
        if self.broken:
            raise OperationalError("SELECT ...", {}, Exception("down"))
        return await super().discover_years()


@pytest.mark.asyncio
async def test_year_discovery_failure_is_returned_as_error():
    dashboard = RainfallDashboard(BrokenProvider(), clock=lambda: NOW)

    snapshot = await dashboard.refresh()

    assert snapshot.error.startswith("Year discovery failed")
    assert snapshot.selected_year is None
    assert snapshot.loading is False


@pytest.mark.asyncio
async def test_load_years_still_raises_on_failure():
    dashboard = RainfallDashboard(BrokenProvider(), clock=lambda: NOW)

    with pytest.raises(OperationalError):
        await dashboard.load_years()

    assert dashboard.error.startswith("Year discovery failed")


@pytest.mark.asyncio
async def test_discovery_error_is_cleared_when_store_recovers_empty():
    provider = BrokenProvider(years=())
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.refresh()
    assert dashboard.error is not None

    provider.broken = False
    snapshot = await dashboard.refresh()

    assert snapshot.error is None
    assert snapshot.years == []
    assert snapshot.selected_year is None


@pytest.mark.asyncio
async def test_fetch_error_survives_successful_rediscovery():
    provider = FakeProvider()
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    cause = OperationalError("SELECT ...", {}, Exception("timeout"))
    provider.failures[2025] = RainfallFetchError(2025, 3, cause)
    await dashboard.refresh()

    await dashboard.load_years()

    assert dashboard.error.startswith("Database query failed for March 2025")


@pytest.mark.asyncio
async def test_scheduled_refresh_moves_to_new_year():
    now = [datetime(2025, 12, 31, 23, 0, tzinfo=timezone.utc)]
    provider = FakeProvider(years=(2025,))
    dashboard = RainfallDashboard(provider, clock=lambda: now[0])
    await dashboard.scheduled_refresh()
    assert dashboard.data_year == 2025

    now[0] = datetime(2026, 1, 2, 8, 0, tzinfo=timezone.utc)
    provider.years = [2026, 2025]
    snapshot = await dashboard.scheduled_refresh()

    assert snapshot.years == [2026, 2025]
    assert snapshot.selected_year == 2026
    assert snapshot.data_year == 2026
    assert provider.discover_calls == 2


@pytest.mark.asyncio
async def test_scheduled_refresh_keeps_year_chosen_by_user():
    provider = FakeProvider(years=(2025, 2024))
    dashboard = RainfallDashboard(provider, clock=lambda: NOW)
    await dashboard.select_year(2024)

    provider.years = [2026, 2025, 2024]
    snapshot = await dashboard.scheduled_refresh()

    assert snapshot.years == [2026, 2025, 2024]
    assert snapshot.selected_year == 2024
    assert snapshot.data_year == 2024
