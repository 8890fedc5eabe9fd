"""
Command executor: maps resource kinds to RouterOS print commands and
normalizes the reply rows.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from utils.logging import logger
from modules.routeros.connection_manager import RouterConnectionManager, RouterTarget
from modules.routeros.exceptions import InvalidCommand, InvalidResource

RESOURCE_COMMANDS: Dict[str, str] = {
    "secrets": "/ppp/secret/print",
    "profiles": "/ppp/profile/print",
    "pools": "/ip/pool/print",
    "interfaces": "/interface/print",
    "active_ppp": "/ppp/active/print",
}

_TRUE_VALUES = {"true", "yes", "1"}


def as_bool(value: Any) -> bool:
    """RouterOS reports flags as true/"true"/"yes"/"1" depending on version and caller."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {str(k): v for k, v in row.items()}
    if "disabled" in normalized:
        normalized["disabled"] = as_bool(normalized["disabled"])
    return normalized


def resolve_command(resource: str) -> str:
    try:
        return RESOURCE_COMMANDS[resource]
    except KeyError:
        raise InvalidResource(
            f"Unknown resource '{resource}'. Expected one of: {', '.join(RESOURCE_COMMANDS)}"
        ) from None


def validate_sentence(sentence: Sequence[str]) -> None:
    """Caller-supplied sentences: a /command word followed by non-empty words."""
    if not sentence:
        raise InvalidCommand("empty command")
    if not sentence[0].startswith("/"):
        raise InvalidCommand(f"command must start with '/': {sentence[0]!r}")
    if any(not word for word in sentence):
        raise InvalidCommand("empty word in command sentence")


@dataclass
class CommandExecutor:
    connections: RouterConnectionManager

    async def fetch(
        self, target: RouterTarget, resource: str, timeout: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """Fetch every row of `resource` from the router in one session."""
        command = resolve_command(resource)
        async with self.connections.session(target, timeout) as api:
            rows = await api.write(command)
        logger.debug(f"{target.ip}: {command} returned {len(rows)} rows")
        return [normalize_row(r) for r in rows]

    async def run(
        self, target: RouterTarget, sentence: Sequence[str], timeout: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """Run an arbitrary command sentence (command word + raw argument words)."""
        validate_sentence(sentence)
        command, *words = sentence
        async with self.connections.session(target, timeout) as api:
            rows = await api.write(command, words=words)
        return [normalize_row(r) for r in rows]
