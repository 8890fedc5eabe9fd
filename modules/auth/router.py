from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from database import get_session
from modules.auth.models import User
from modules.auth.schemas import UserRead
from modules.auth.dependencies import get_current_admin_user

router = APIRouter()


@router.get("", response_model=List[UserRead])
async def list_users(
    user: User = Depends(get_current_admin_user),
    session: AsyncSession = Depends(get_session),
):
    """List operator accounts (admin only)."""
    result = await session.execute(select(User).order_by(User.email))
    return result.scalars().all()
