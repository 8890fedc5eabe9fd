from typing import Optional
from pydantic import BaseModel, ConfigDict


class RegistrationIn(BaseModel):
    """Installation work order. Unknown fields are stored as sent."""
    fullName: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[str] = None
    subAreaId: Optional[str] = None
    locationId: Optional[str] = None  # server name
    status: Optional[str] = None
    workingOrderStatus: Optional[str] = None
    installation: Optional[dict] = None

    model_config = ConfigDict(extra="allow")


class CompletionRequest(BaseModel):
    server_id: str
    secret_id: str  # router .id of the provisioned PPP secret
