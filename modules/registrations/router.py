from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from context import AppContext, get_context
from database import get_session
from modules.auth.config import current_active_user
from modules.registrations.schemas import CompletionRequest, RegistrationIn
from modules.registrations.service import complete_work_order

router = APIRouter(prefix="/api/registrations", tags=["registrations"], dependencies=[Depends(current_active_user)])


@router.get("")
async def get_registrations(ctx: AppContext = Depends(get_context)) -> List[dict]:
    return list((await ctx.registrations.all()).values())


@router.get("/{registration_id}")
async def get_registration(registration_id: str, ctx: AppContext = Depends(get_context)):
    record = await ctx.registrations.get(registration_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
    return record


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_registration(data: RegistrationIn, ctx: AppContext = Depends(get_context)):
    fields = data.model_dump(exclude_none=True)
    fields.setdefault("status", "pending")
    return await ctx.registrations.create(fields)


@router.put("/{registration_id}")
async def update_registration(registration_id: str, data: RegistrationIn, ctx: AppContext = Depends(get_context)):
    record = await ctx.registrations.update(registration_id, data.model_dump(exclude_unset=True))
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
    return record


@router.delete("/{registration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_registration(registration_id: str, ctx: AppContext = Depends(get_context)):
    if not await ctx.registrations.delete(registration_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
    return None


@router.post("/{registration_id}/complete")
async def complete_registration(
    registration_id: str,
    body: CompletionRequest,
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
):
    """Close an installation work order and link its PPP secret to a Customer."""
    return await complete_work_order(session, ctx.registrations, ctx.connections, registration_id, body)
