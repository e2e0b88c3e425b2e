from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.subscriber import ConnectionType


class PlanBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    type: ConnectionType = ConnectionType.pppoe
    speed_limit: str = Field(default="", max_length=120)


class PlanUpsert(PlanBase):
    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, max_length=64)


class PlanRead(PlanBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    updated_at: datetime | None = None


class ClientBase(BaseModel):
    username: str = Field(min_length=1, max_length=120)
    full_name: str | None = Field(default=None, max_length=200)
    connection_type: ConnectionType = ConnectionType.pppoe
    plan_id: str | None = Field(default=None, max_length=64)


class ClientUpsert(ClientBase):
    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, max_length=64)
    password: str | None = Field(default=None, max_length=255)
    # Optional already-resolved plan; otherwise plan_id is looked up.
    plan: PlanUpsert | None = None


class ClientRead(ClientBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    updated_at: datetime | None = None


class NodeSyncFailure(BaseModel):
    node_id: str
    node_name: str
    error: str


class SyncReport(BaseModel):
    """Outcome of storing a record and pushing it to every online router."""
    success: bool = True
    record_id: str
    targeted: int = 0
    pushed: list[str] = Field(default_factory=list)
    failed: list[NodeSyncFailure] = Field(default_factory=list)
