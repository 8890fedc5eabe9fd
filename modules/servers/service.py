from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from utils.logging import logger
from modules.customers.models import Customer
from modules.servers.models import Server
from modules.servers.schemas import ServerCreate, ServerRef, ServerUpdate


class ServerService:
    async def get_all(self, session: AsyncSession) -> List[Server]:
        result = await session.execute(select(Server).order_by(Server.name))
        return result.scalars().all()

    async def get_by_id(self, session: AsyncSession, server_id: str) -> Optional[Server]:
        return await session.get(Server, server_id)

    async def create(self, session: AsyncSession, server_in: ServerCreate) -> Server:
        data = server_in.model_dump(exclude_none=True)
        server_db = Server(**data)
        session.add(server_db)
        await session.commit()
        await session.refresh(server_db)
        return server_db

    async def update(self, session: AsyncSession, server_id: str, server_in: ServerUpdate) -> Optional[Server]:
        server_db = await self.get_by_id(session, server_id)
        if not server_db:
            return None

        for key, value in server_in.model_dump(exclude_unset=True).items():
            setattr(server_db, key, value)

        session.add(server_db)
        await session.commit()
        await session.refresh(server_db)
        return server_db

    async def delete(self, session: AsyncSession, server_id: str) -> bool:
        """Delete a server. Its customers are kept (orphaned), never cascaded."""
        server_db = await self.get_by_id(session, server_id)
        if not server_db:
            return False

        result = await session.execute(
            select(func.count(Customer.id)).where(Customer.server_id == server_id)
        )
        orphaned = result.scalar() or 0
        if orphaned:
            logger.warning(
                f"Server {server_db.name} ({server_id}) deleted; {orphaned} customers are now orphaned"
            )

        await session.delete(server_db)
        await session.commit()
        return True

    async def ensure(self, session: AsyncSession, ref: ServerRef) -> Server:
        """Find-or-create the Server row for a sync request."""
        server_db = await self.get_by_id(session, ref.id)
        if server_db:
            return server_db

        server_db = Server(
            id=ref.id,
            name=ref.name or ref.ip,
            ip=ref.ip,
            port=ref.port or 8728,
            username=ref.username,
            password=ref.password,
        )
        session.add(server_db)
        await session.commit()
        await session.refresh(server_db)
        logger.info(f"Registered server {server_db.name} ({server_db.id}) from sync request")
        return server_db


server_service = ServerService()
