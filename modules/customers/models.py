import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from database import utc_now

CUSTOMER_STATUSES = ("active", "isolated", "disabled")


class Customer(SQLModel, table=True):
    # (server_id, mikrotik_name) is the natural key used by router sync
    __table_args__ = (
        UniqueConstraint("server_id", "mikrotik_name", name="uq_customer_server_secret"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    mikrotik_name: str = Field(index=True)  # PPPoE secret name
    # No FK constraint: deleting a server leaves its customers orphaned
    server_id: str = Field(index=True)
    name: Optional[str] = None  # real name
    phone_number: Optional[str] = None
    profile: Optional[str] = None
    status: str = "active"
    address: Optional[str] = None
    coordinates: Optional[str] = None  # "lat,long"
    odp_id: Optional[str] = None
    sub_area_id: Optional[str] = None
    custom_billing_day: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
