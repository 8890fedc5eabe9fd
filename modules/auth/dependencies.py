from fastapi import Depends, HTTPException, status
from modules.auth.models import User
from modules.auth.config import current_active_user


async def get_current_admin_user(
    user: User = Depends(current_active_user)
) -> User:
    """Gate for server management endpoints: superusers only."""
    if not user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required",
        )
    return user
