from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from context import AppContext, get_context
from database import get_session
from modules.auth.config import current_active_user
from modules.routeros.executor import resolve_command
from modules.servers.schemas import ServerRef
from modules.sync.schemas import ProxyRequest, SnapshotResponse, SyncRequest

router = APIRouter(prefix="/api", tags=["mikrotik"], dependencies=[Depends(current_active_user)])


@router.post("/mikrotik/sync", response_model=SnapshotResponse)
async def sync_resource(
    body: SyncRequest,
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
):
    """Fetch a resource live from the router, reconcile it and refresh the cache."""
    result = await ctx.sync_service.sync(session, body.server, body.resource)
    return result.to_response()


@router.get("/mikrotik/data", response_model=SnapshotResponse)
async def read_cached_resource(
    server_id: str = Query(..., alias="serverId"),
    resource: str = Query(...),
    ctx: AppContext = Depends(get_context),
):
    """Read the last synced snapshot. A cache miss is an empty data set, not an error."""
    resolve_command(resource)
    snapshot = await ctx.cache.read(server_id, resource)
    if snapshot is None:
        return {"timestamp": None, "data": []}
    return snapshot


@router.post("/proxy")
async def proxy_command(
    body: ProxyRequest,
    ctx: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    """Run one command on a router: connect, write, close."""
    if not body.host or not body.command:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing host or command")

    sentence = [body.command] if isinstance(body.command, str) else list(body.command)
    target = ServerRef(
        id=body.host,
        ip=body.host,
        port=body.port,
        username=body.user,
        password=body.password,
    )
    return await ctx.executor.run(target, sentence)
