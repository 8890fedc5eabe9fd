from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_session
from modules.auth.config import current_active_user
from modules.auth.dependencies import get_current_admin_user
from modules.servers.schemas import ServerCreate, ServerRead, ServerUpdate
from modules.servers.service import server_service

router = APIRouter(prefix="/api/servers", tags=["servers"])

@router.get("", response_model=List[ServerRead], dependencies=[Depends(current_active_user)])
async def get_servers(
    session: AsyncSession = Depends(get_session),
):
    return await server_service.get_all(session)

@router.get("/{server_id}", response_model=ServerRead, dependencies=[Depends(current_active_user)])
async def get_server(
    server_id: str,
    session: AsyncSession = Depends(get_session),
):
    server = await server_service.get_by_id(session, server_id)
    if not server:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")
    return server

@router.post("", response_model=ServerRead, status_code=status.HTTP_201_CREATED, dependencies=[Depends(get_current_admin_user)])
async def create_server(
    server_in: ServerCreate,
    session: AsyncSession = Depends(get_session),
):
    return await server_service.create(session, server_in)

@router.put("/{server_id}", response_model=ServerRead, dependencies=[Depends(get_current_admin_user)])
async def update_server(
    server_id: str,
    server_in: ServerUpdate,
    session: AsyncSession = Depends(get_session),
):
    server = await server_service.update(session, server_id, server_in)
    if not server:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")
    return server

@router.delete("/{server_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(get_current_admin_user)])
async def delete_server(
    server_id: str,
    session: AsyncSession = Depends(get_session),
):
    if not await server_service.delete(session, server_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")
    return None
