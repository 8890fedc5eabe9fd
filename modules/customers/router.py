from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_session
from modules.auth.config import current_active_user
from modules.customers.schemas import CustomerRead, CustomerUpdate
from modules.customers.service import CustomerRepository

router = APIRouter(prefix="/api/customers", tags=["customers"], dependencies=[Depends(current_active_user)])


@router.get("", response_model=List[CustomerRead])
async def get_customers(
    server_id: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    return await CustomerRepository(session).find_all(server_id)


@router.get("/{customer_id}", response_model=CustomerRead)
async def get_customer(
    customer_id: str,
    session: AsyncSession = Depends(get_session),
):
    customer = await CustomerRepository(session).get(customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.put("/{customer_id}", response_model=CustomerRead)
async def update_customer(
    customer_id: str,
    data: CustomerUpdate,
    session: AsyncSession = Depends(get_session),
):
    customer = await CustomerRepository(session).update(customer_id, data.model_dump(exclude_unset=True))
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: str,
    session: AsyncSession = Depends(get_session),
):
    if not await CustomerRepository(session).delete(customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return None
