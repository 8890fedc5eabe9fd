import asyncio
import os
import socket
from typing import Callable, Dict, List, Optional

os.environ.setdefault("MONITOR_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from database import get_session, init_db
from context import AppContext
from modules.auth.config import current_active_user
from modules.auth.models import User
from modules.routeros.exceptions import ProtocolError
from modules.routeros.protocol import decode_sentence, encode_sentence, md5_challenge_response
from modules.servers.schemas import ServerRef

LEGACY_CHALLENGE = "00112233445566778899aabbccddeeff"
BAD_LOGIN = "invalid user name or password (6)"


class FakeRouter:
    """
    Minimal RouterOS API server for tests.

    `responses` maps a command word to either a list of row dicts or a
    callable(attrs, words) returning one. Commands listed in `silent` are
    never answered; commands in `traps` are answered with !trap + !done.
    """

    def __init__(self, username: str = "admin", password: str = "secret", legacy: bool = False):
        self.username = username
        self.password = password
        self.legacy = legacy
        self.responses: Dict[str, object] = {}
        self.traps: Dict[str, str] = {}
        self.silent: set = set()
        self.received: List[List[str]] = []
        self.connections = 0
        self.port: Optional[int] = None
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> "FakeRouter":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()

    def ref(self, server_id: str = "srv1", **overrides) -> ServerRef:
        fields = dict(id=server_id, ip="127.0.0.1", port=self.port,
                      username=self.username, password=self.password, name="Main POP")
        fields.update(overrides)
        return ServerRef(**fields)

    def commands(self) -> List[str]:
        return [words[0] for words in self.received]

    def _login(self, attrs: Dict[str, str]) -> List[List[str]]:
        if "response" in attrs:
            expected = md5_challenge_response(self.password, LEGACY_CHALLENGE)
            ok = attrs.get("name") == self.username and attrs["response"] == expected
        elif self.legacy:
            return [["!done", f"=ret={LEGACY_CHALLENGE}"]]
        else:
            ok = attrs.get("name") == self.username and attrs.get("password") == self.password
        if ok:
            return [["!done"]]
        return [["!trap", f"=message={BAD_LOGIN}"], ["!done"]]

    def _reply(self, command: str, attrs: Dict[str, str], words: List[str]) -> List[List[str]]:
        if command == "/login":
            return self._login(attrs)
        if command in self.traps:
            return [["!trap", f"=message={self.traps[command]}"], ["!done"]]
        response = self.responses.get(command, [])
        rows = response(attrs, words) if callable(response) else response
        return [["!re"] + [f"={k}={v}" for k, v in row.items()] for row in rows] + [["!done"]]

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        try:
            while True:
                sentence = await decode_sentence(reader)
                self.received.append(sentence)
                command, tag, attrs, words = sentence[0], None, {}, []
                for word in sentence[1:]:
                    if word.startswith(".tag="):
                        tag = word[5:]
                    elif word.startswith("="):
                        key, _, value = word[1:].partition("=")
                        attrs[key] = value
                    else:
                        words.append(word)
                if command in self.silent:
                    continue
                for reply in self._reply(command, attrs, words):
                    if tag is not None:
                        reply = reply + [f".tag={tag}"]
                    writer.write(encode_sentence(reply))
                await writer.drain()
        except (ProtocolError, ConnectionError):
            pass
        finally:
            writer.close()


@pytest.fixture
async def fake_router():
    router = await FakeRouter().start()
    yield router
    await router.stop()


@pytest.fixture
def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def app_context(tmp_path, session_maker) -> AppContext:
    return AppContext.create(data_dir=tmp_path / "data", session_maker=session_maker)


@pytest.fixture
def operator() -> User:
    return User(id=1, email="noc@example.com", hashed_password="x",
                is_active=True, is_superuser=True, is_verified=True, full_name="NOC Operator")


@pytest.fixture
async def client(app_context, session_maker, operator):
    from main import app

    async def override_session():
        async with session_maker() as session:
            yield session

    app.state.context = app_context
    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[current_active_user] = lambda: operator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def secret_rows(*names: str, **extra) -> Callable:
    """Response factory for /ppp/secret/print honouring ?.id= and ?name= queries."""
    rows = [
        {".id": f"*{i + 1}", "name": name, "profile": "10M", "disabled": "false",
         "remote-address": f"10.0.0.{i + 2}", **extra}
        for i, name in enumerate(names)
    ]

    def respond(attrs, words):
        for word in words:
            if word.startswith("?.id="):
                return [r for r in rows if r[".id"] == word[5:]]
            if word.startswith("?name="):
                return [r for r in rows if r["name"] == word[6:]]
        return rows

    respond.rows = rows
    return respond
