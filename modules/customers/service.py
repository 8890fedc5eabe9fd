from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from database import utc_now
from modules.customers.models import Customer


class CustomerRepository:
    """
    Persistence operations over Customer used by router sync and the API:
    find_one(server_id, mikrotik_name), find_all(server_id), create(fields),
    update(id, fields).

    Each write commits on its own; a failed write is rolled back so the
    session stays usable for the next one.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_one(self, server_id: str, mikrotik_name: str) -> Optional[Customer]:
        result = await self.session.execute(
            select(Customer)
            .where(Customer.server_id == server_id, Customer.mikrotik_name == mikrotik_name)
            .order_by(Customer.created_at)
        )
        return result.scalars().first()

    async def find_all(self, server_id: Optional[str] = None) -> List[Customer]:
        query = select(Customer).order_by(Customer.mikrotik_name)
        if server_id is not None:
            query = query.where(Customer.server_id == server_id)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get(self, customer_id: str) -> Optional[Customer]:
        return await self.session.get(Customer, customer_id)

    async def create(self, fields: Dict[str, Any]) -> Customer:
        customer = Customer(**fields)
        self.session.add(customer)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(customer)
        return customer

    async def update(self, customer_id: str, fields: Dict[str, Any]) -> Optional[Customer]:
        customer = await self.get(customer_id)
        if not customer:
            return None
        for key, value in fields.items():
            setattr(customer, key, value)
        customer.updated_at = utc_now()
        self.session.add(customer)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(customer)
        return customer

    async def delete(self, customer_id: str) -> bool:
        customer = await self.get(customer_id)
        if not customer:
            return False
        await self.session.delete(customer)
        await self.session.commit()
        return True
