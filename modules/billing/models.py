import uuid
from datetime import date, datetime
from typing import Optional
from sqlmodel import Field, SQLModel

from database import utc_now

INVOICE_STATUSES = ("UNPAID", "PAID", "CANCELLED", "INVALID")


def new_id() -> str:
    return str(uuid.uuid4())


class Invoice(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    customer_id: str = Field(index=True)
    server_id: str = Field(index=True)  # snapshot for filtering
    period: str = Field(index=True)  # "YYYY-MM"
    amount: float
    status: str = "UNPAID"
    due_date: date
    generated_at: datetime = Field(default_factory=utc_now)


class Payment(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    invoice_id: str = Field(foreign_key="invoice.id", index=True)
    amount: float
    method: str
    proof_url: Optional[str] = None
    verified_at: Optional[datetime] = None
    transaction_date: datetime = Field(default_factory=utc_now)


class InvoiceHistory(SQLModel, table=True):
    """Append-only audit trail of invoice changes."""
    __tablename__ = "invoice_audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: str = Field(index=True)
    user_name: str
    action: str  # GENERATED, STATUS_UPDATE, PAYMENT
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
