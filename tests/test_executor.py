import pytest

from modules.routeros.connection_manager import RouterConnectionManager
from modules.routeros.exceptions import ConnectRefused, InvalidCommand, InvalidResource
from modules.routeros.executor import CommandExecutor, as_bool, normalize_row, resolve_command, validate_sentence

from tests.conftest import secret_rows


@pytest.fixture
def executor() -> CommandExecutor:
    return CommandExecutor(RouterConnectionManager(default_timeout=2))


@pytest.mark.parametrize("value, expected", [
    (True, True), ("true", True), ("yes", True), ("1", True),
    (False, False), ("false", False), ("no", False), (None, False),
])
def test_as_bool(value, expected):
    assert as_bool(value) is expected


def test_normalize_row_only_touches_disabled():
    assert normalize_row({"name": "a", "disabled": "yes"}) == {"name": "a", "disabled": True}
    assert normalize_row({"name": "a"}) == {"name": "a"}


def test_resolve_command():
    assert resolve_command("secrets") == "/ppp/secret/print"
    assert resolve_command("active_ppp") == "/ppp/active/print"
    with pytest.raises(InvalidResource):
        resolve_command("users")


async def test_fetch_normalizes_and_closes_session(executor, fake_router):
    fake_router.responses["/ppp/secret/print"] = secret_rows("alice", "bob")

    rows = await executor.fetch(fake_router.ref(), "secrets")

    assert [r["name"] for r in rows] == ["alice", "bob"]
    assert rows[0]["disabled"] is False
    assert fake_router.connections == 1


async def test_fetch_invalid_resource_does_no_io(executor, fake_router):
    with pytest.raises(InvalidResource):
        await executor.fetch(fake_router.ref(), "firewall")
    assert fake_router.connections == 0


async def test_fetch_unreachable_router(executor, fake_router, closed_port):
    with pytest.raises(ConnectRefused):
        await executor.fetch(fake_router.ref(port=closed_port), "profiles")


async def test_run_passes_raw_words(executor, fake_router):
    fake_router.responses["/ppp/secret/print"] = secret_rows("alice", "bob")

    rows = await executor.run(fake_router.ref(), ["/ppp/secret/print", "?name=bob"])

    assert [r["name"] for r in rows] == ["bob"]
    assert fake_router.received[-1][:2] == ["/ppp/secret/print", "?name=bob"]


@pytest.mark.parametrize("sentence", [[], ["ppp/secret/print"], ["/ppp/secret/print", ""], ["", "?name=bob"]])
def test_validate_sentence_rejects_malformed(sentence):
    with pytest.raises(InvalidCommand):
        validate_sentence(sentence)


async def test_run_malformed_sentence_does_no_io(executor, fake_router):
    with pytest.raises(InvalidCommand):
        await executor.run(fake_router.ref(), ["/ppp/secret/print", ""])
    assert fake_router.connections == 0
