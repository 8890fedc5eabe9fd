# RouterOS API client: wire codec, session, executor

from modules.routeros.exceptions import (
    InvalidCommand,
    AuthFailed,
    ConnectError,
    ConnectRefused,
    ConnectTimeout,
    InvalidResource,
    ProtocolError,
    RouterError,
    RouterOSError,
)
from modules.routeros.session import RouterSession
from modules.routeros.connection_manager import RouterConnectionManager
from modules.routeros.executor import CommandExecutor, RESOURCE_COMMANDS, as_bool

__all__ = [
    "AuthFailed",
    "ConnectError",
    "ConnectRefused",
    "ConnectTimeout",
    "InvalidCommand",
    "InvalidResource",
    "ProtocolError",
    "RouterError",
    "RouterOSError",
    "RouterSession",
    "RouterConnectionManager",
    "CommandExecutor",
    "RESOURCE_COMMANDS",
    "as_bool",
]
