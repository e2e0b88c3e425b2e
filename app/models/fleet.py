import enum
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.services.common import new_id


class RouterStatus(enum.Enum):
    """Reachability of a managed router as seen by the last poll."""
    online = "ONLINE"
    offline = "OFFLINE"
    maintenance = "MAINTENANCE"


class RouterNode(Base):
    """
    A registered access router (one physical MikroTik box).

    Identity and credentials are set by an administrator; the telemetry
    columns are overwritten by every poll. Rows are only removed by an
    explicit delete.
    """
    __tablename__ = "router_nodes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("r"))
    name: Mapped[str] = mapped_column(String(160), nullable=False)

    # Management access
    host: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, default=8728)
    username: Mapped[str | None] = mapped_column(String(120))
    password: Mapped[str | None] = mapped_column(String(255))

    status: Mapped[RouterStatus] = mapped_column(
        Enum(RouterStatus, values_callable=lambda x: [e.value for e in x]),
        default=RouterStatus.offline,
    )

    # Telemetry
    cpu: Mapped[float] = mapped_column(Float, default=0)
    memory: Mapped[int] = mapped_column(Integer, default=0)  # free MiB
    total_memory: Mapped[int] = mapped_column(Integer, default=0)  # MiB
    version: Mapped[str | None] = mapped_column(String(80))
    model: Mapped[str | None] = mapped_column(String(120))
    sessions: Mapped[int] = mapped_column(Integer, default=0)
    uptime: Mapped[str] = mapped_column(String(80), default="0s")
    last_sync: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )


class DiscoveryRecord(Base):
    """Unclaimed boot-script check-in from hardware that is not yet registered."""
    __tablename__ = "discovery_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: new_id("d"))
    host: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(160), default="New Node Signal")
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    checkins: Mapped[int] = mapped_column(Integer, default=1)
