"""
Completing an installation work order.

The technician picks the PPP secret provisioned for the order; completion
stamps the secret's comment on the router, closes the order and links the
secret to a Customer with the same find-or-create upsert used by router sync.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from utils.logging import logger
from utils.json_store import JsonRecordStore
from modules.customers.service import CustomerRepository
from modules.customers.schemas import CustomerRead
from modules.registrations.schemas import CompletionRequest
from modules.routeros.connection_manager import RouterConnectionManager
from modules.routeros.executor import normalize_row
from modules.servers.service import server_service
from modules.sync.service import derive_status, upsert_customer

# work-order field -> Customer field
CUSTOMER_FIELDS = {
    "fullName": "name",
    "phone": "phone_number",
    "address": "address",
    "coordinates": "coordinates",
    "subAreaId": "sub_area_id",
}


def customer_fields_from(registration: Dict[str, Any]) -> Dict[str, Any]:
    """Back-office fields the order supplies; empty values never overwrite a Customer."""
    return {
        target: registration[source]
        for source, target in CUSTOMER_FIELDS.items()
        if registration.get(source)
    }


def completion_comment(server_name: str, full_name: str, on: date) -> str:
    return f"{server_name} - {full_name} - {on.isoformat()}"


async def complete_work_order(
    session: AsyncSession,
    registrations: JsonRecordStore,
    connections: RouterConnectionManager,
    registration_id: str,
    body: CompletionRequest,
) -> dict:
    registration = await registrations.get(registration_id)
    if not registration:
        raise HTTPException(status_code=404, detail="Registration not found")

    server = await server_service.get_by_id(session, body.server_id)
    if not server:
        raise HTTPException(status_code=404, detail="Server not found")

    comment = completion_comment(server.name, registration.get("fullName") or "", date.today())
    async with connections.session(server) as api:
        rows = await api.write("/ppp/secret/print", words=[f"?.id={body.secret_id}"])
        if not rows:
            raise HTTPException(status_code=404, detail=f"Secret {body.secret_id} not found on {server.name}")
        secret = normalize_row(rows[0])
        await api.write("/ppp/secret/set", {".id": body.secret_id, "comment": comment})

    installation = {
        **(registration.get("installation") or {}),
        "finishDate": datetime.now(timezone.utc).isoformat(),
    }
    updated = await registrations.update(registration_id, {
        "status": "done",
        "workingOrderStatus": "done",
        "installation": installation,
        "serverId": server.id,
        "secretName": secret["name"],
    })

    customer, outcome = await upsert_customer(
        CustomerRepository(session),
        server.id,
        secret["name"],
        update_fields=customer_fields_from(registration),
        create_fields={
            "name": secret.get("comment") or secret["name"],
            "profile": secret.get("profile"),
            "status": derive_status(secret),
        },
    )
    action = {True: "created", False: "updated", None: "unchanged"}[outcome]
    logger.info(f"Work order {registration_id} completed: secret {secret['name']} on {server.name}, customer {action}")

    return {
        "registration": updated,
        "customer": CustomerRead.model_validate(customer).model_dump(),
        "comment": comment,
    }
