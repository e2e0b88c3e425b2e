from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DiscoveryRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    host: str
    name: str
    first_seen_at: datetime
    last_seen_at: datetime
    checkins: int


class DiscoveryFinalize(BaseModel):
    """Administrator input that turns a discovery record into a node."""
    name: str = Field(min_length=1, max_length=160)
    username: str | None = Field(default=None, max_length=120)
    password: str | None = Field(default=None, max_length=255)
    port: int | None = Field(default=None, ge=1, le=65535)
