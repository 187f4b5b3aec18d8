from fastapi import APIRouter, Depends, Request

from rainstats.schemas.rainfall import DashboardSnapshot, YearSelection
from rainstats.services.dashboard import RainfallDashboard

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def get_dashboard(request: Request) -> RainfallDashboard:
    """
    FastAPI dependency returning the dashboard created by the application lifespan.
    """
    return request.app.state.dashboard


@router.get(
    "",
    response_model=DashboardSnapshot,
    summary="Current dashboard state",
    description=(
        "Returns the statistics last published by a refresh cycle, the selected year, "
        "whether a cycle is in progress (`loading`) and the last failure message (`error`)."
    ),
)
async def get_state(dashboard: RainfallDashboard = Depends(get_dashboard)) -> DashboardSnapshot:
    return dashboard.snapshot()


@router.post(
    "/refresh",
    response_model=DashboardSnapshot,
    summary="Refresh the selected year",
    description="Runs a refresh cycle, or joins the one already running for the same year.",
)
async def refresh(dashboard: RainfallDashboard = Depends(get_dashboard)) -> DashboardSnapshot:
    return await dashboard.refresh()


@router.put(
    "/year",
    response_model=DashboardSnapshot,
    summary="Switch the dashboard to another year",
)
async def select_year(
    payload: YearSelection,
    dashboard: RainfallDashboard = Depends(get_dashboard),
) -> DashboardSnapshot:
    return await dashboard.select_year(payload.year)
