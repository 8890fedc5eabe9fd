from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

CustomerStatus = Literal["active", "isolated", "disabled"]


class CustomerRead(BaseModel):
    id: str
    mikrotik_name: str
    server_id: str
    name: Optional[str] = None
    phone_number: Optional[str] = None
    profile: Optional[str] = None
    status: str
    address: Optional[str] = None
    coordinates: Optional[str] = None
    odp_id: Optional[str] = None
    sub_area_id: Optional[str] = None
    custom_billing_day: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerUpdate(BaseModel):
    """Manually edited metadata. Profile comes from the router and is not editable here."""
    name: Optional[str] = None
    phone_number: Optional[str] = None
    status: Optional[CustomerStatus] = None
    address: Optional[str] = None
    coordinates: Optional[str] = None
    odp_id: Optional[str] = None
    sub_area_id: Optional[str] = None
    custom_billing_day: Optional[int] = Field(default=None, ge=1, le=28)
