from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel

from modules.servers.schemas import ServerRef


class SyncRequest(BaseModel):
    server: ServerRef
    resource: str


class SnapshotResponse(BaseModel):
    timestamp: Optional[str] = None
    data: List[Dict[str, Any]] = []


class ProxyRequest(BaseModel):
    host: Optional[str] = None
    port: Optional[int] = 8728
    user: str = "admin"
    password: Optional[str] = None
    command: Union[str, List[str], None] = None
