"""
Network status store - one JSON map for every monitored PPP customer.

Key:   "{server_id}_{secretName}"
Value: {"isOnline": bool, "lastCheck": ISO8601, "latency": str | None}

Entries are only ever overwritten, never purged.
"""
import asyncio
from pathlib import Path
from typing import Dict

from utils.json_store import read_json, write_json
from utils.logging import logger
from modules.cache.store import CacheIOError


def status_key(server_id: str, secret_name: str) -> str:
    return f"{server_id}_{secret_name}"


class NetworkStatusStore:

    def __init__(self, path: Path):
        self.path = Path(path)
        self._write_lock = asyncio.Lock()

    async def load(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = await read_json(self.path)
        except (OSError, ValueError) as e:
            logger.warning(f"Network status file unreadable, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    async def merge(self, entries: Dict[str, dict]) -> Dict[str, dict]:
        """Read-modify-write: overwrite `entries` in the stored map and persist it once."""
        async with self._write_lock:
            data = await self.load()
            data.update(entries)
            try:
                await write_json(self.path, data)
            except (OSError, TypeError, ValueError) as e:
                raise CacheIOError(f"Failed to write {self.path}: {e}") from e
            return data

    def summary(self, data: Dict[str, dict]) -> dict:
        online = sum(1 for s in data.values() if s.get("isOnline"))
        return {"total": len(data), "online": online, "offline": len(data) - online}
