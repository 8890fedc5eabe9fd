"""
Router cache - per (server, resource) JSON snapshots.

File layout: {DATA_DIR}/cache_{serverId}_{resource}.json
Content:     {"timestamp": "<ISO8601>", "data": [row, ...]}

Snapshots are derived data: every write replaces the whole file, and any read
failure is reported as "no cache" so a live fetch can regenerate it.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.json_store import read_json, write_json
from utils.logging import logger


class CacheIOError(Exception):
    """A cache snapshot could not be written."""


def utc_timestamp() -> str:
    """ISO8601 UTC with millisecond precision and a Z suffix (2024-01-31T08:00:00.000Z)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CacheStore:

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, server_id: str, resource: str) -> Path:
        return self.data_dir / f"cache_{server_id}_{resource}.json"

    async def read(self, server_id: str, resource: str) -> Optional[Dict[str, Any]]:
        """Return the snapshot, or None when it is missing or unreadable."""
        path = self.path_for(server_id, resource)
        if not path.exists():
            return None
        try:
            snapshot = await read_json(path)
        except (OSError, ValueError) as e:
            logger.warning(f"Cache read failed for {path.name}, treating as absent: {e}")
            return None
        if not isinstance(snapshot, dict) or not isinstance(snapshot.get("data"), list):
            logger.warning(f"Cache file {path.name} has an unexpected shape, treating as absent")
            return None
        return snapshot

    async def read_rows(self, server_id: str, resource: str) -> List[Dict[str, Any]]:
        snapshot = await self.read(server_id, resource)
        return snapshot["data"] if snapshot else []

    async def write(
        self,
        server_id: str,
        resource: str,
        rows: List[Dict[str, Any]],
        timestamp: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Replace the snapshot for (server_id, resource). Raises CacheIOError."""
        snapshot = {"timestamp": timestamp or utc_timestamp(), "data": list(rows)}
        path = self.path_for(server_id, resource)
        try:
            await write_json(path, snapshot)
        except (OSError, TypeError, ValueError) as e:
            raise CacheIOError(f"Failed to write {path}: {e}") from e
        return snapshot

    async def delete(self, server_id: str, resource: str) -> bool:
        path = self.path_for(server_id, resource)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(f"Failed to delete {path}: {e}") from e
