from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.fleet import RouterStatus
from app.models.subscriber import ConnectionType


class RouterNodeBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    host: str = Field(min_length=1, max_length=255)
    port: int = Field(default=8728, ge=1, le=65535)


class RouterNodeWrite(RouterNodeBase):
    """One entry of an administrator's bulk node list."""
    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, max_length=64)
    username: str | None = Field(default=None, max_length=120)
    password: str | None = Field(default=None, max_length=255)
    status: RouterStatus | None = None


class RouterNodeRead(RouterNodeBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str | None = None
    status: RouterStatus
    cpu: float = 0
    memory: int = 0
    total_memory: int = 0
    version: str | None = None
    model: str | None = None
    sessions: int = 0
    uptime: str = "0s"
    last_sync: datetime | None = None


class RouterNodeState(RouterNodeRead):
    """Full node snapshot, credentials included, handed to worker threads."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    password: str | None = None


class NodeRebootResult(BaseModel):
    node_id: str
    requested: bool = True
    detail: str


class SessionRead(BaseModel):
    """A live subscriber session as reported by one router."""
    id: str | None = None
    username: str
    full_name: str
    connection_type: ConnectionType
    uptime: str
    download_bytes: int
    upload_bytes: int
    download_rate: float
    upload_rate: float
    node_id: str
    connected_node: str
    address: str | None = None


class OperationResult(BaseModel):
    success: bool = True
    detail: str | None = None
