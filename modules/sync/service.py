"""
Router sync - merges live RouterOS state with the cache and the Customer table.

sync(server, resource):
  1. fetch rows live (any failure aborts before the cache is touched)
  2. write cache snapshot v1 with the raw rows
  3. secrets only: find-or-create the Server, then upsert one Customer per
     secret, sequentially in reply order; per-row failures are counted and
     logged, never fatal to the batch
  4. reload the server's Customers
  5. enrich each row with realName / whatsapp / address / sub_area_id /
     coordinates from its Customer
  6. overwrite the cache snapshot with the enriched rows (v2)
  7. return {timestamp, data}

The router is authoritative only for profile and enabled/disabled state; names,
phones, addresses and coordinates entered in the back office are never
overwritten by router data. Customers are never deleted here, even when their
secret disappears from the router.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from utils.logging import logger
from modules.cache.store import CacheStore
from modules.customers.models import Customer
from modules.customers.service import CustomerRepository
from modules.routeros.executor import CommandExecutor, as_bool
from modules.servers.schemas import ServerRef
from modules.servers.service import server_service


class UpsertError(Exception):
    """A single router row could not be reconciled into a Customer."""


@dataclass
class ReconcileSummary:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    failed: List[str] = field(default_factory=list)


@dataclass
class SyncResult:
    timestamp: str
    data: List[Dict[str, Any]]
    summary: Optional[ReconcileSummary] = None

    def to_response(self) -> dict:
        return {"timestamp": self.timestamp, "data": self.data}


def derive_status(row: Mapping[str, Any]) -> str:
    return "disabled" if as_bool(row.get("disabled")) else "active"


async def upsert_customer(
    repo: CustomerRepository,
    server_id: str,
    mikrotik_name: str,
    update_fields: Dict[str, Any],
    create_fields: Optional[Dict[str, Any]] = None,
) -> Tuple[Customer, Optional[bool]]:
    """
    Find-or-create the Customer for (server_id, mikrotik_name).

    An existing Customer only receives `update_fields`, and only the ones
    whose value actually changed. A new Customer gets `update_fields` plus
    `create_fields`. Returns (customer, True) when created, (customer, False)
    when updated and (customer, None) when nothing changed.
    """
    existing = await repo.find_one(server_id, mikrotik_name)
    if existing:
        changes = {k: v for k, v in update_fields.items() if getattr(existing, k) != v}
        if not changes:
            return existing, None
        customer = await repo.update(existing.id, changes)
        return customer, False

    fields = {**(create_fields or {}), **update_fields}
    fields.update(server_id=server_id, mikrotik_name=mikrotik_name)
    customer = await repo.create(fields)
    return customer, True


def _optional_str(row: Mapping[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None or isinstance(value, str):
        return value
    raise UpsertError(f"field '{key}' must be a string, got {type(value).__name__}")


async def reconcile_secret(repo: CustomerRepository, server_id: str, row: Mapping[str, Any]) -> Optional[bool]:
    """Upsert one PPP secret row. Raises UpsertError for malformed rows."""
    name = row.get("name")
    if not isinstance(name, str):
        raise UpsertError(f"secret name must be a string, got {type(name).__name__}")
    profile = _optional_str(row, "profile")
    comment = _optional_str(row, "comment")

    _, outcome = await upsert_customer(
        repo,
        server_id,
        name,
        update_fields={"profile": profile, "status": derive_status(row)},
        create_fields={"name": comment or name},
    )
    return outcome


async def reconcile_secrets(
    repo: CustomerRepository, server_id: str, rows: List[Mapping[str, Any]]
) -> ReconcileSummary:
    summary = ReconcileSummary()
    for row in rows:
        if not row.get("name"):
            summary.skipped += 1
            continue
        try:
            outcome = await reconcile_secret(repo, server_id, row)
        except Exception as e:
            summary.errors += 1
            summary.failed.append(str(row.get("name")))
            logger.warning(f"Sync {server_id}: error processing secret {row.get('name')!r}: {e}")
            continue

        if outcome is True:
            summary.created += 1
        elif outcome is False:
            summary.updated += 1
        else:
            summary.unchanged += 1
    return summary


def enrich_rows(rows: List[Dict[str, Any]], customers: List[Customer]) -> List[Dict[str, Any]]:
    """Merge back-office fields into router rows; rows without a Customer pass through."""
    by_name = {}
    for customer in customers:
        # first match wins if duplicates ever exist
        by_name.setdefault(customer.mikrotik_name, customer)

    enriched = []
    for row in rows:
        customer = by_name.get(row.get("name"))
        if customer is None:
            enriched.append(row)
            continue
        enriched.append({
            **row,
            "realName": customer.name,
            "whatsapp": customer.phone_number,
            "address": customer.address,
            "sub_area_id": customer.sub_area_id,
            "coordinates": customer.coordinates,
        })
    return enriched


class SyncService:

    def __init__(self, executor: CommandExecutor, cache: CacheStore, timeout: Optional[float] = None):
        self.executor = executor
        self.cache = cache
        self.timeout = timeout

    async def sync(self, session: AsyncSession, server: ServerRef, resource: str) -> SyncResult:
        rows = await self.executor.fetch(server, resource, timeout=self.timeout)
        snapshot = await self.cache.write(server.id, resource, rows)

        if resource != "secrets":
            logger.info(f"Sync {server.id}/{resource}: cached {len(rows)} rows")
            return SyncResult(timestamp=snapshot["timestamp"], data=snapshot["data"])

        await server_service.ensure(session, server)
        repo = CustomerRepository(session)
        summary = await reconcile_secrets(repo, server.id, rows)
        logger.info(
            f"Sync {server.id}/secrets: {len(rows)} rows, created={summary.created} "
            f"updated={summary.updated} unchanged={summary.unchanged} errors={summary.errors}"
        )

        customers = await repo.find_all(server.id)
        enriched = enrich_rows(rows, customers)
        snapshot = await self.cache.write(server.id, resource, enriched)
        return SyncResult(timestamp=snapshot["timestamp"], data=snapshot["data"], summary=summary)
