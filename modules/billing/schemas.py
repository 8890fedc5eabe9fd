from typing import Literal, Optional
from pydantic import BaseModel, Field

InvoiceStatus = Literal["UNPAID", "PAID", "CANCELLED", "INVALID"]


class GenerateRequest(BaseModel):
    period: Optional[str] = Field(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")  # defaults to the current month


class PaymentCreate(BaseModel):
    invoice_id: str
    amount: Optional[float] = None  # defaults to the invoice amount
    method: str = "cash"
    proof_url: Optional[str] = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    note: Optional[str] = None
