"""
Profile metadata (price, description) kept outside the router, keyed
"{serverId}_{profileName}" because profile .id values change when a router is reset.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from context import AppContext, get_context
from modules.auth.config import current_active_user
from modules.cache.store import utc_timestamp
from modules.profiles.schemas import ProfileMetaIn

router = APIRouter(prefix="/api/profiles", tags=["profiles"], dependencies=[Depends(current_active_user)])


def profile_key(server_id: str, profile_name: str) -> str:
    return f"{server_id}_{profile_name}"


@router.get("/meta")
async def get_profiles_meta(ctx: AppContext = Depends(get_context)):
    return await ctx.profiles_meta.all()


@router.post("/meta")
async def save_profile_meta(data: ProfileMetaIn, ctx: AppContext = Depends(get_context)):
    if not data.serverId or not data.profileName:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing identity")
    fields = data.model_dump(exclude={"serverId", "profileName"}, exclude_none=True)
    fields["lastUpdated"] = utc_timestamp()
    record = await ctx.profiles_meta.put(profile_key(data.serverId, data.profileName), fields)
    return {"success": True, "data": record}
