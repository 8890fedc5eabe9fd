from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

from utils.logging import logger
from modules.routeros.session import DEFAULT_PORT, RouterSession


class RouterTarget(Protocol):
    """Anything that carries router connection details (Server model, ServerRef schema)."""
    ip: str
    port: Optional[int]
    username: str
    password: Optional[str]


class RouterConnectionManager:
    """
    Hands out RouterOS sessions.

    Strategy: connect, use, close. Every `session()` block opens a fresh
    connection and closes it on exit, so unrelated operations never share a
    socket. A pooled strategy can replace this class as long as it keeps the
    `session()` context-manager interface.

    Uso:
        async with manager.session(server) as api:
            rows = await api.write('/ppp/secret/print')
    """

    def __init__(self, default_timeout: float = 15.0):
        self.default_timeout = default_timeout

    async def connect(self, target: RouterTarget, timeout: Optional[float] = None) -> RouterSession:
        return await RouterSession.connect(
            target.ip,
            port=target.port or DEFAULT_PORT,
            username=target.username,
            password=target.password or "",
            timeout=timeout or self.default_timeout,
        )

    @asynccontextmanager
    async def session(
        self, target: RouterTarget, timeout: Optional[float] = None
    ) -> AsyncIterator[RouterSession]:
        api = await self.connect(target, timeout)
        try:
            yield api
        finally:
            await api.close()
            logger.debug(f"RouterOS session closed: {target.ip}")
