"""
Billing: monthly invoices priced from profile metadata.

Price lookup key is "{server_id}_{profile}" in the profile metadata store, so
the profile a customer got from the last router sync decides what they pay.
"""
import calendar
import json
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from database import utc_now
from utils.logging import logger
from modules.billing.models import Invoice, InvoiceHistory, Payment
from modules.customers.models import Customer
from modules.servers.models import Server

SYSTEM_USER = "system"


def current_period(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%Y-%m")


def profile_price(profiles_meta: Dict[str, dict], server_id: str, profile: Optional[str]) -> float:
    meta = profiles_meta.get(f"{server_id}_{profile}") or {}
    try:
        return float(meta.get("price") or 0)
    except (TypeError, ValueError):
        return 0.0


def due_date_for(period: str, billing_day: int, payment_due_days: int) -> date:
    year, month = (int(p) for p in period.split("-"))
    day = min(max(billing_day, 1), calendar.monthrange(year, month)[1])
    return date(year, month, day) + timedelta(days=payment_due_days)


def add_history(session: AsyncSession, invoice_id: str, user_name: str, action: str, details=None) -> None:
    if details is not None and not isinstance(details, str):
        details = json.dumps(details, default=str)
    session.add(InvoiceHistory(invoice_id=invoice_id, user_name=user_name, action=action, details=details))


async def generate_invoices(
    session: AsyncSession,
    profiles_meta: Dict[str, dict],
    period: Optional[str] = None,
    user_name: str = SYSTEM_USER,
) -> dict:
    """One UNPAID invoice per active customer and period; customers without a price are skipped."""
    period = period or current_period()
    servers = {s.id: s for s in (await session.execute(select(Server))).scalars().all()}
    customers = (await session.execute(select(Customer).where(Customer.status == "active"))).scalars().all()

    existing = await session.execute(select(Invoice.customer_id).where(Invoice.period == period))
    already_billed = set(existing.scalars().all())

    created, skipped = 0, 0
    for customer in customers:
        if customer.id in already_billed:
            continue
        price = profile_price(profiles_meta, customer.server_id, customer.profile)
        if price <= 0:
            logger.debug(f"Billing: no price for {customer.server_id}_{customer.profile}, skipping {customer.mikrotik_name}")
            skipped += 1
            continue

        server = servers.get(customer.server_id)
        billing_day = customer.custom_billing_day or (server.default_billing_day if server else 1)
        due_days = server.payment_due_days if server else 7

        invoice = Invoice(
            customer_id=customer.id,
            server_id=customer.server_id,
            period=period,
            amount=price,
            due_date=due_date_for(period, billing_day, due_days),
        )
        session.add(invoice)
        add_history(session, invoice.id, user_name, "GENERATED", {"period": period, "amount": price})
        created += 1

    await session.commit()
    logger.info(f"Billing: generated {created} invoices for {period} ({skipped} without price)")
    return {"period": period, "generated": created, "skipped": skipped}


async def list_invoices(
    session: AsyncSession,
    server_id: Optional[str] = None,
    period: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Invoice]:
    query = select(Invoice).order_by(Invoice.period.desc(), Invoice.generated_at)
    if server_id:
        query = query.where(Invoice.server_id == server_id)
    if period:
        query = query.where(Invoice.period == period)
    if status:
        query = query.where(Invoice.status == status)
    return (await session.execute(query)).scalars().all()


async def set_invoice_status(
    session: AsyncSession, invoice: Invoice, new_status: str, user_name: str, note: Optional[str] = None
) -> Invoice:
    old_status = invoice.status
    if old_status == new_status:
        return invoice
    invoice.status = new_status
    session.add(invoice)
    add_history(session, invoice.id, user_name, "STATUS_UPDATE", {"from": old_status, "to": new_status, "note": note})
    await session.commit()
    await session.refresh(invoice)
    return invoice


async def pay_invoice(
    session: AsyncSession,
    invoice: Invoice,
    user_name: str,
    method: str = "cash",
    amount: Optional[float] = None,
    proof_url: Optional[str] = None,
) -> Payment:
    payment = Payment(
        invoice_id=invoice.id,
        amount=invoice.amount if amount is None else amount,
        method=method,
        proof_url=proof_url,
        verified_at=utc_now(),
    )
    session.add(payment)
    add_history(session, invoice.id, user_name, "PAYMENT", {"amount": payment.amount, "method": method})
    invoice.status = "PAID"
    session.add(invoice)
    await session.commit()
    await session.refresh(payment)
    return payment


async def get_history(session: AsyncSession, invoice_id: str) -> List[InvoiceHistory]:
    result = await session.execute(
        select(InvoiceHistory).where(InvoiceHistory.invoice_id == invoice_id).order_by(InvoiceHistory.timestamp, InvoiceHistory.id)
    )
    return result.scalars().all()
