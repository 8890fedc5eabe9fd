import asyncio

import pytest

from modules.routeros.exceptions import (
    AuthFailed,
    ConnectError,
    ConnectRefused,
    ConnectTimeout,
    ProtocolError,
    RouterError,
)
from modules.routeros.session import RouterSession

from tests.conftest import BAD_LOGIN, FakeRouter, secret_rows


async def connect(router: FakeRouter, password: str = "secret", timeout: float = 2) -> RouterSession:
    return await RouterSession.connect("127.0.0.1", router.port, "admin", password, timeout=timeout)


async def test_login_and_print(fake_router):
    fake_router.responses["/ppp/secret/print"] = secret_rows("alice", "bob")
    api = await connect(fake_router)
    try:
        rows = await api.write("/ppp/secret/print")
    finally:
        await api.close()

    assert [r["name"] for r in rows] == ["alice", "bob"]
    assert rows[0]["disabled"] == "false"
    assert fake_router.commands() == ["/login", "/ppp/secret/print"]


async def test_legacy_md5_login():
    router = await FakeRouter(legacy=True).start()
    try:
        api = await connect(router)
        await api.close()
        logins = [w for w in router.received if w[0] == "/login"]
        assert len(logins) == 2
        assert any(w.startswith("=response=00") for w in logins[1])
    finally:
        await router.stop()


async def test_wrong_password_is_auth_failed(fake_router):
    with pytest.raises(AuthFailed) as exc:
        await connect(fake_router, password="nope")
    assert BAD_LOGIN in str(exc.value)


async def test_wrong_password_legacy_is_auth_failed():
    router = await FakeRouter(legacy=True).start()
    try:
        with pytest.raises(AuthFailed):
            await connect(router, password="nope")
    finally:
        await router.stop()


async def test_connection_refused(closed_port):
    with pytest.raises(ConnectRefused):
        await RouterSession.connect("127.0.0.1", closed_port, "admin", "", timeout=2)


async def test_login_timeout(fake_router):
    fake_router.silent.add("/login")
    with pytest.raises(ConnectTimeout):
        await connect(fake_router, timeout=0.2)


async def test_trap_raises_router_error_and_session_stays_usable(fake_router):
    fake_router.traps["/ppp/secret/set"] = "no such item"
    fake_router.responses["/system/identity/print"] = [{"name": "core-1"}]
    api = await connect(fake_router)
    try:
        with pytest.raises(RouterError) as exc:
            await api.write("/ppp/secret/set", {".id": "*99", "comment": "x"})
        assert exc.value.message == "no such item"

        assert await api.write("/system/identity/print") == [{"name": "core-1"}]
    finally:
        await api.close()


async def test_command_timeout(fake_router):
    fake_router.silent.add("/tool/bandwidth-test")
    api = await connect(fake_router, timeout=0.2)
    try:
        with pytest.raises(ConnectTimeout):
            await api.write("/tool/bandwidth-test")
    finally:
        await api.close()


async def test_replies_are_dispatched_by_tag(fake_router):
    fake_router.responses["/interface/print"] = [{"name": "ether1"}]
    fake_router.responses["/ip/pool/print"] = [{"name": "pool1"}, {"name": "pool2"}]
    api = await connect(fake_router)
    try:
        interfaces, pools = await asyncio.gather(
            api.write("/interface/print"), api.write("/ip/pool/print")
        )
    finally:
        await api.close()
    assert interfaces == [{"name": "ether1"}]
    assert [p["name"] for p in pools] == ["pool1", "pool2"]


async def test_connection_lost_mid_command(fake_router):
    api = await connect(fake_router)
    fake_router.silent.add("/ppp/active/print")
    pending = asyncio.create_task(api.write("/ppp/active/print"))
    await asyncio.sleep(0.05)
    api._writer.transport.abort()

    with pytest.raises((ProtocolError, ConnectError)):
        await asyncio.wait_for(pending, 2)
    await api.close()


async def test_close_is_idempotent(fake_router):
    api = await connect(fake_router)
    await api.close()
    await api.close()
    assert not api.connected
    with pytest.raises(ConnectError):
        await api.write("/interface/print")
