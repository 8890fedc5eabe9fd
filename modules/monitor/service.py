"""
Network monitor - background sweep of PPP customers' reachability.

Every `interval` seconds (first run after `initial_delay`), for each Server:
  - read the cached secrets snapshot; skip the server if there is none
    (the monitor never triggers a live secrets fetch)
  - targets = secrets with a remote-address that are not disabled
  - open one RouterOS session and /ping each target once; online iff the
    reply carries a `time` field
  - persist all results for that server in one write

Failures are logged per target and per server and never stop the sweep. A
tick that fires while the previous sweep is still running is skipped.
"""
import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlmodel import select

from utils.logging import logger
from modules.cache.store import CacheStore, utc_timestamp
from modules.monitor.network_status import NetworkStatusStore, status_key
from modules.routeros.connection_manager import RouterConnectionManager
from modules.routeros.exceptions import RouterOSError
from modules.routeros.executor import as_bool
from modules.routeros.session import RouterSession
from modules.servers.models import Server


def classify_ping(rows: Iterable[Dict[str, Any]]) -> Tuple[bool, Optional[str]]:
    """(is_online, latency) from /ping reply rows."""
    for row in rows:
        if row.get("time"):
            return True, row["time"]
    return False, None


def ping_targets(secrets: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        s for s in secrets
        if s.get("name") and s.get("remote-address") and not as_bool(s.get("disabled"))
    ]


async def ping_once(api: RouterSession, address: str) -> List[Dict[str, str]]:
    return await api.write("/ping", {"address": address, "count": 1})


class NetworkMonitor:

    def __init__(
        self,
        connections: RouterConnectionManager,
        cache: CacheStore,
        status_store: NetworkStatusStore,
        session_maker: Optional[Callable] = None,
        interval: float = 300,
        initial_delay: float = 10,
        timeout: float = 15,
    ):
        self.connections = connections
        self.cache = cache
        self.status_store = status_store
        self.session_maker = session_maker
        self.interval = interval
        self.initial_delay = initial_delay
        self.timeout = timeout

        self._task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None

    # ─── Sweep ────────────────────────────────────────────────────────────────

    async def load_servers(self) -> List[Server]:
        if self.session_maker is None:
            from database import async_session_maker
            self.session_maker = async_session_maker
        async with self.session_maker() as session:
            result = await session.execute(select(Server))
            return result.scalars().all()

    async def sweep_server(self, server: Server) -> Dict[str, dict]:
        """Ping every target of one server and persist the results in one write."""
        secrets = await self.cache.read_rows(server.id, "secrets")
        if not secrets:
            logger.debug(f"Monitor: no cached secrets for {server.name}, skipping")
            return {}

        targets = ping_targets(secrets)
        if not targets:
            return {}

        results: Dict[str, dict] = {}
        async with self.connections.session(server, self.timeout) as api:
            for secret in targets:
                name = secret["name"]
                try:
                    rows = await ping_once(api, secret["remote-address"])
                except RouterOSError as e:
                    logger.warning(f"Monitor: ping {name} on {server.name} failed: {e}")
                    if not api.connected:
                        break
                    continue
                is_online, latency = classify_ping(rows)
                results[status_key(server.id, name)] = {
                    "isOnline": is_online,
                    "lastCheck": utc_timestamp(),
                    "latency": latency,
                }

        if results:
            await self.status_store.merge(results)
        online = sum(1 for r in results.values() if r["isOnline"])
        logger.info(f"Monitor: {server.name} {online}/{len(results)} online")
        return results

    async def sweep(self, servers: Optional[List[Server]] = None) -> int:
        """One pass over all servers. Returns the number of servers that failed."""
        if servers is None:
            servers = await self.load_servers()

        failures = 0
        for server in servers:
            try:
                await self.sweep_server(server)
            except Exception as e:
                failures += 1
                logger.warning(f"Monitor: sweep of {server.name} ({server.ip}) failed: {e}")
        return failures

    # ─── Loop ─────────────────────────────────────────────────────────────────

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        for task in (self._task, self._sweep_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = self._sweep_task = None

    @property
    def busy(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def tick(self) -> bool:
        """Start a sweep unless one is still running. Returns True if started."""
        if self.busy:
            logger.warning("Monitor: previous sweep still running, skipping this tick")
            return False
        self._sweep_task = asyncio.create_task(self._guarded_sweep())
        return True

    async def _guarded_sweep(self) -> None:
        try:
            await self.sweep()
        except Exception as e:
            logger.error(f"Monitor: sweep failed: {e}")

    async def _run(self) -> None:
        logger.info(f"Network monitor started (interval: {self.interval}s, first run in {self.initial_delay}s)")
        await asyncio.sleep(self.initial_delay)
        while True:
            self.tick()
            await asyncio.sleep(self.interval)
