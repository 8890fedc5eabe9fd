from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ServerBase(BaseModel):
    name: str
    ip: str
    username: str
    port: int = 8728
    default_billing_day: int = Field(default=1, ge=1, le=28)
    payment_due_days: int = Field(default=7, ge=1, le=30)


class ServerCreate(ServerBase):
    id: Optional[str] = None
    password: Optional[str] = None


class ServerUpdate(BaseModel):
    name: Optional[str] = None
    ip: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    port: Optional[int] = None
    default_billing_day: Optional[int] = Field(default=None, ge=1, le=28)
    payment_due_days: Optional[int] = Field(default=None, ge=1, le=30)


class ServerRead(ServerBase):
    id: str
    is_online: bool = False

    model_config = ConfigDict(from_attributes=True)


class ServerRef(BaseModel):
    """Router connection details as sent by the UI with sync and work-order requests."""
    id: str
    ip: str
    port: Optional[int] = 8728
    username: str
    password: Optional[str] = None
    name: Optional[str] = None
