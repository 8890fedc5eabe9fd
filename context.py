"""
Process-lifetime application context.

Owns the stateful collaborators (stores, router connections, sync service,
network monitor) so route handlers and background tasks receive them
explicitly instead of importing module-level globals.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Request

import config
from utils.json_store import JsonRecordStore
from modules.cache.store import CacheStore
from modules.monitor.network_status import NetworkStatusStore
from modules.monitor.service import NetworkMonitor
from modules.routeros.connection_manager import RouterConnectionManager
from modules.routeros.executor import CommandExecutor
from modules.sync.service import SyncService


@dataclass
class AppContext:
    data_dir: Path
    cache: CacheStore
    network_status: NetworkStatusStore
    connections: RouterConnectionManager
    executor: CommandExecutor
    sync_service: SyncService
    monitor: NetworkMonitor
    registrations: JsonRecordStore
    profiles_meta: JsonRecordStore

    @classmethod
    def create(cls, data_dir: Optional[Path] = None, session_maker=None) -> "AppContext":
        data_dir = Path(data_dir or config.DATA_DIR)
        data_dir.mkdir(parents=True, exist_ok=True)

        cache = CacheStore(data_dir)
        network_status = NetworkStatusStore(data_dir / "network_status.json")
        connections = RouterConnectionManager(default_timeout=config.ROUTEROS_TIMEOUT)
        executor = CommandExecutor(connections)
        return cls(
            data_dir=data_dir,
            cache=cache,
            network_status=network_status,
            connections=connections,
            executor=executor,
            sync_service=SyncService(executor, cache, timeout=config.SYNC_TIMEOUT),
            monitor=NetworkMonitor(
                connections,
                cache,
                network_status,
                session_maker=session_maker,
                interval=config.MONITOR_INTERVAL,
                initial_delay=config.MONITOR_INITIAL_DELAY,
                timeout=config.ROUTEROS_TIMEOUT,
            ),
            registrations=JsonRecordStore(data_dir / "registrations.json"),
            profiles_meta=JsonRecordStore(data_dir / "profiles.json"),
        )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
