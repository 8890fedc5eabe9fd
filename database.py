from datetime import datetime, timezone
from typing import AsyncGenerator
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from config import DATABASE_URL

engine = create_async_engine(DATABASE_URL, echo=False)
async_session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

def utc_now() -> datetime:
    # Aware UTC; the datetime column type rejects naive values
    return datetime.now(timezone.utc)

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session

def register_models():
    # Imported here so SQLModel.metadata knows every table (avoids circular imports)
    from modules.auth.models import User  # noqa: F401
    from modules.servers.models import Server  # noqa: F401
    from modules.customers.models import Customer  # noqa: F401
    from modules.billing.models import Invoice, Payment, InvoiceHistory  # noqa: F401

async def init_db(db_engine=None):
    register_models()
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
