from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from context import AppContext, get_context
from database import get_session
from modules.auth.config import current_active_user
from modules.auth.models import User
from modules.billing.models import Invoice
from modules.billing.schemas import GenerateRequest, InvoiceStatusUpdate, PaymentCreate
from modules.billing import service

router = APIRouter(prefix="/api/billing", tags=["billing"])


async def _get_invoice(session: AsyncSession, invoice_id: str) -> Invoice:
    invoice = await session.get(Invoice, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.post("/generate")
async def generate_invoices(
    body: Optional[GenerateRequest] = None,
    session: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
    user: User = Depends(current_active_user),
):
    """Generate the period's invoices for every active customer with a priced profile."""
    profiles_meta = await ctx.profiles_meta.all()
    period = body.period if body else None
    return await service.generate_invoices(session, profiles_meta, period, user.display_name)


@router.get("/invoices")
async def get_invoices(
    server_id: Optional[str] = None,
    period: Optional[str] = None,
    status: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(current_active_user),
):
    return await service.list_invoices(session, server_id, period, status)


@router.put("/invoices/{invoice_id}")
async def update_invoice_status(
    invoice_id: str,
    body: InvoiceStatusUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(current_active_user),
):
    invoice = await _get_invoice(session, invoice_id)
    return await service.set_invoice_status(session, invoice, body.status, user.display_name, body.note)


@router.get("/invoices/{invoice_id}/history")
async def get_invoice_history(
    invoice_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(current_active_user),
):
    return await service.get_history(session, invoice_id)


@router.post("/pay")
async def pay_invoice(
    body: PaymentCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(current_active_user),
):
    invoice = await _get_invoice(session, body.invoice_id)
    if invoice.status != "UNPAID":
        raise HTTPException(status_code=400, detail=f"Invoice is {invoice.status}, not UNPAID")
    return await service.pay_invoice(
        session, invoice, user.display_name, body.method, body.amount, body.proof_url
    )
