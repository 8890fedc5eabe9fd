import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from database import utc_now


def new_id() -> str:
    return str(uuid.uuid4())


class Server(SQLModel, table=True):
    # id is part of cache filenames and referenced by customers and invoices
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    ip: str
    port: int = 8728
    username: str
    password: Optional[str] = None
    default_billing_day: int = 1
    payment_due_days: int = 7
    is_online: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
