from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from context import AppContext, get_context
from database import get_session
from modules.auth.config import current_active_user
from modules.monitor.dashboard_service import get_dashboard_summary

router = APIRouter(prefix="/api", tags=["monitor"], dependencies=[Depends(current_active_user)])


@router.get("/network/status")
async def network_status(ctx: AppContext = Depends(get_context)):
    """Per-customer reachability map keyed by {server_id}_{secretName}."""
    return await ctx.network_status.load()


@router.post("/network/sweep")
async def trigger_sweep(ctx: AppContext = Depends(get_context)):
    """Start a monitor sweep now, unless one is already running."""
    started = ctx.monitor.tick()
    return {"started": started}


@router.get("/dashboard/summary")
async def dashboard_summary(
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
):
    return await get_dashboard_summary(session, ctx.network_status)
