"""Dashboard endpoint."""

from typing import Any

from fastapi import APIRouter

from summaryscribe.api.dependencies import CurrentUserDep, DashboardDep

router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard")
async def get_dashboard(dashboard: DashboardDep, user: CurrentUserDep) -> dict[str, Any]:
    """Everything the dashboard home page shows, with per-field failure reporting."""
    data = await dashboard.get_dashboard(user)
    return {"success": True, "data": data}
