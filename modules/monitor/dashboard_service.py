"""
Dashboard summary.

Customer counts come from the database, reachability counts from the network
status map the monitor maintains. No router calls are made here.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func

from modules.customers.models import Customer, CUSTOMER_STATUSES
from modules.monitor.network_status import NetworkStatusStore
from modules.servers.models import Server


async def get_dashboard_summary(session: AsyncSession, status_store: NetworkStatusStore) -> dict:
    clients_result = await session.execute(
        select(Customer.status, func.count(Customer.id)).group_by(Customer.status)
    )
    counts = dict(clients_result.all())

    servers_result = await session.execute(select(func.count(Server.id)))
    total_servers = servers_result.scalar() or 0

    network = status_store.summary(await status_store.load())

    return {
        "servers": {"total": total_servers},
        "customers": {
            "total": sum(counts.values()),
            **{s: counts.get(s, 0) for s in CUSTOMER_STATUSES},
        },
        "network": {
            **network,
            "checking": network["total"] == 0,  # monitor has not reported yet
        },
    }
