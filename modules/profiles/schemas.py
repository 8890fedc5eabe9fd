from typing import Optional
from pydantic import BaseModel, ConfigDict


class ProfileMetaIn(BaseModel):
    """Back-office metadata for one router profile. Extra fields are stored as sent."""
    model_config = ConfigDict(extra="allow")

    serverId: str
    profileName: str
    price: Optional[float] = None
    description: Optional[str] = None
