import json

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from modules.cache.store import CacheStore
from modules.customers.models import Customer
from modules.customers.service import CustomerRepository
from modules.routeros.connection_manager import RouterConnectionManager
from modules.routeros.exceptions import ConnectRefused
from modules.routeros.executor import CommandExecutor
from modules.servers.models import Server
from modules.sync.service import (
    SyncService,
    derive_status,
    enrich_rows,
    reconcile_secrets,
    upsert_customer,
)

from tests.conftest import secret_rows


@pytest.fixture
def repo(db_session) -> CustomerRepository:
    return CustomerRepository(db_session)


@pytest.fixture
def sync_service(tmp_path) -> SyncService:
    executor = CommandExecutor(RouterConnectionManager(default_timeout=2))
    return SyncService(executor, CacheStore(tmp_path), timeout=2)


def test_derive_status():
    assert derive_status({"disabled": True}) == "disabled"
    assert derive_status({"disabled": "yes"}) == "disabled"
    assert derive_status({"disabled": False}) == "active"
    assert derive_status({}) == "active"


async def test_upsert_creates_then_reports_unchanged(repo):
    customer, outcome = await upsert_customer(
        repo, "srv1", "alice", {"profile": "10M", "status": "active"}, {"name": "Alice A."}
    )
    assert outcome is True
    assert customer.name == "Alice A."

    again, outcome = await upsert_customer(repo, "srv1", "alice", {"profile": "10M", "status": "active"})
    assert outcome is None
    assert again.id == customer.id


async def test_upsert_only_updates_router_fields(repo):
    customer, _ = await upsert_customer(repo, "srv1", "alice", {"profile": "10M", "status": "active"})
    await repo.update(customer.id, {"name": "Alice Manual", "phone_number": "0812", "address": "Jl. Mawar 1"})

    updated, outcome = await upsert_customer(
        repo, "srv1", "alice", {"profile": "20M", "status": "disabled"}, {"name": "from router"}
    )
    assert outcome is False
    assert (updated.profile, updated.status) == ("20M", "disabled")
    assert (updated.name, updated.phone_number, updated.address) == ("Alice Manual", "0812", "Jl. Mawar 1")


async def test_same_secret_name_on_two_servers(repo):
    await upsert_customer(repo, "srv1", "alice", {"profile": "10M"})
    await upsert_customer(repo, "srv2", "alice", {"profile": "20M"})
    assert len(await repo.find_all()) == 2


async def test_unique_customer_per_server_secret(repo):
    await repo.create({"server_id": "srv1", "mikrotik_name": "alice"})
    with pytest.raises(IntegrityError):
        await repo.create({"server_id": "srv1", "mikrotik_name": "alice"})
    # session is still usable after the rollback
    assert len(await repo.find_all("srv1")) == 1


async def test_reconcile_counts_and_isolates_bad_rows(repo):
    rows = [
        {"name": "alice", "profile": "10M", "disabled": False, "comment": "Alice A."},
        {"name": "bob", "profile": 5, "disabled": False},
        {"profile": "10M"},
        {"name": "carol", "profile": "20M", "disabled": True},
    ]
    summary = await reconcile_secrets(repo, "srv1", rows)

    assert (summary.created, summary.errors, summary.skipped) == (2, 1, 1)
    assert summary.failed == ["bob"]
    customers = {c.mikrotik_name: c for c in await repo.find_all("srv1")}
    assert set(customers) == {"alice", "carol"}
    assert customers["alice"].name == "Alice A."
    assert customers["carol"].name == "carol"
    assert customers["carol"].status == "disabled"


def test_enrich_rows_passes_unknown_rows_through():
    customer = Customer(
        server_id="srv1", mikrotik_name="alice", name="Alice A.", phone_number="0812",
        address="Jl. Mawar 1", sub_area_id="area-3", coordinates="-6.2,106.8",
    )
    rows = [{"name": "alice", "profile": "10M"}, {"name": "dave"}]

    enriched = enrich_rows(rows, [customer])

    assert enriched[0] == {
        "name": "alice", "profile": "10M", "realName": "Alice A.", "whatsapp": "0812",
        "address": "Jl. Mawar 1", "sub_area_id": "area-3", "coordinates": "-6.2,106.8",
    }
    assert enriched[1] == {"name": "dave"}


async def test_sync_secrets_end_to_end(sync_service, db_session, fake_router):
    fake_router.responses["/ppp/secret/print"] = secret_rows("alice", "bob")

    result = await sync_service.sync(db_session, fake_router.ref(), "secrets")

    assert result.summary.created == 2
    assert [row["realName"] for row in result.data] == ["alice", "bob"]
    assert await db_session.get(Server, "srv1") is not None

    cached = json.loads(sync_service.cache.path_for("srv1", "secrets").read_text())
    assert cached == result.to_response()


async def test_sync_twice_is_idempotent(sync_service, db_session, fake_router):
    fake_router.responses["/ppp/secret/print"] = secret_rows("alice")
    await sync_service.sync(db_session, fake_router.ref(), "secrets")
    result = await sync_service.sync(db_session, fake_router.ref(), "secrets")

    assert (result.summary.created, result.summary.unchanged) == (0, 1)
    assert len(await CustomerRepository(db_session).find_all("srv1")) == 1


async def test_sync_other_resources_skip_reconcile(sync_service, db_session, fake_router):
    fake_router.responses["/ppp/profile/print"] = [{"name": "10M", "rate-limit": "10M/10M"}]

    result = await sync_service.sync(db_session, fake_router.ref(), "profiles")

    assert result.summary is None
    assert result.data == [{"name": "10M", "rate-limit": "10M/10M"}]
    assert await db_session.get(Server, "srv1") is None


async def test_failed_fetch_leaves_cache_untouched(sync_service, db_session, fake_router, closed_port):
    await sync_service.cache.write("srv1", "secrets", [{"name": "old"}], timestamp="2024-01-01T00:00:00.000Z")

    with pytest.raises(ConnectRefused):
        await sync_service.sync(db_session, fake_router.ref(port=closed_port), "secrets")

    snapshot = await sync_service.cache.read("srv1", "secrets")
    assert snapshot["data"] == [{"name": "old"}]


async def test_new_secret_is_enriched_in_the_same_sync(sync_service, db_session, fake_router):
    fake_router.responses["/ppp/secret/print"] = [
        {".id": "*1", "name": "bob01", "profile": "10M", "disabled": "false", "comment": "Bob"},
    ]

    result = await sync_service.sync(db_session, fake_router.ref("S1"), "secrets")

    assert len(result.data) == 1
    assert result.data[0]["realName"] == "Bob"
    assert result.data[0]["disabled"] is False


async def test_sync_updates_only_profile_and_status(sync_service, db_session, fake_router, repo):
    await repo.create({
        "server_id": "srv1", "mikrotik_name": "alice", "name": "Alice Custom",
        "address": "123 St", "profile": "P1",
    })
    fake_router.responses["/ppp/secret/print"] = [
        {".id": "*1", "name": "alice", "profile": "P2", "disabled": "true", "comment": "Ignored Name"},
    ]

    result = await sync_service.sync(db_session, fake_router.ref(), "secrets")

    assert (result.summary.created, result.summary.updated) == (0, 1)
    customer = await repo.find_one("srv1", "alice")
    assert (customer.profile, customer.status) == ("P2", "disabled")
    assert (customer.name, customer.address) == ("Alice Custom", "123 St")
    assert result.data[0]["realName"] == "Alice Custom"


async def test_reconcile_survives_failed_create_commit(repo):
    await repo.create({"server_id": "srv1", "mikrotik_name": "bob", "name": "Bob Original"})

    # bob is created concurrently between lookup and insert
    find_one = repo.find_one

    async def lookup_misses_bob(server_id, mikrotik_name):
        if mikrotik_name == "bob":
            return None
        return await find_one(server_id, mikrotik_name)

    repo.find_one = lookup_misses_bob
    rows = [
        {"name": "alice", "profile": "10M"},
        {"name": "bob", "profile": "10M", "comment": "Bob From Router"},
        {"name": "carol", "profile": "20M"},
    ]
    summary = await reconcile_secrets(repo, "srv1", rows)

    assert (summary.created, summary.errors) == (2, 1)
    assert summary.failed == ["bob"]
    customers = {c.mikrotik_name: c for c in await repo.find_all("srv1")}
    assert set(customers) == {"alice", "bob", "carol"}
    assert customers["bob"].name == "Bob Original"


async def test_reconcile_survives_failed_update_commit(repo, db_session):
    await repo.create({"server_id": "srv1", "mikrotik_name": "alice", "profile": "10M"})
    await repo.create({"server_id": "srv1", "mikrotik_name": "carol", "profile": "10M"})

    commit = db_session.commit
    calls = []

    async def locked_once():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("UPDATE customer", {}, Exception("database is locked"))
        await commit()

    db_session.commit = locked_once
    rows = [{"name": "alice", "profile": "20M"}, {"name": "carol", "profile": "20M"}]
    summary = await reconcile_secrets(repo, "srv1", rows)

    assert (summary.updated, summary.errors) == (1, 1)
    assert summary.failed == ["alice"]
    customers = {c.mikrotik_name: c for c in await repo.find_all("srv1")}
    assert customers["alice"].profile == "10M"
    assert customers["carol"].profile == "20M"
