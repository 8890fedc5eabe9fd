"""
JSON file persistence helpers.

Every JSON document the application owns (cache snapshots, the network status
map, work orders, profile metadata) goes through these helpers: reads are
offloaded with asyncio.to_thread() and writes go to a temporary file that is
then renamed over the target, so a reader never observes a half-written file.
"""
import asyncio
import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from utils.logging import logger


def read_json_file(path: Path) -> Any:
    """Blocking read. Raises FileNotFoundError / ValueError / OSError."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_file(path: Path, payload: Any) -> None:
    """Blocking atomic write (temp file + os.replace)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


async def read_json(path: Path) -> Any:
    return await asyncio.to_thread(read_json_file, path)


async def write_json(path: Path, payload: Any) -> None:
    await asyncio.to_thread(write_json_file, path, payload)


class JsonRecordStore:
    """
    A dict-of-records persisted as one JSON file: {key: {field: value}}.

    Used for the CRUD resources that live outside the relational store
    (installation work orders, profile metadata). A missing or corrupt file
    reads as an empty store.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._write_lock = asyncio.Lock()

    async def load(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = await read_json(self.path)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    async def all(self) -> Dict[str, dict]:
        return await self.load()

    async def get(self, key: str) -> Optional[dict]:
        return (await self.load()).get(key)

    async def create(self, fields: dict) -> dict:
        """Insert a new record under a generated id and return it."""
        async with self._write_lock:
            data = await self.load()
            key = str(uuid.uuid4())
            record = {**fields, "id": key}
            data[key] = record
            await write_json(self.path, data)
            return record

    async def put(self, key: str, fields: dict, merge: bool = True) -> dict:
        """Create or update the record at `key`; merges into the existing record by default."""
        async with self._write_lock:
            data = await self.load()
            current = data.get(key, {}) if merge else {}
            record = {**current, **fields}
            data[key] = record
            await write_json(self.path, data)
            return record

    async def update(self, key: str, fields: dict) -> Optional[dict]:
        """Merge `fields` into an existing record. Returns None if absent."""
        async with self._write_lock:
            data = await self.load()
            if key not in data:
                return None
            data[key] = {**data[key], **fields, "id": key}
            await write_json(self.path, data)
            return data[key]

    async def delete(self, key: str) -> bool:
        async with self._write_lock:
            data = await self.load()
            if key not in data:
                return False
            del data[key]
            await write_json(self.path, data)
            return True
