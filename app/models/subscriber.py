import enum
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.services.common import new_id


class ConnectionType(enum.Enum):
    """Subscriber access method; each has its own credential and profile store on the router."""
    pppoe = "PPPoE"
    hotspot = "Hotspot"


class Plan(Base):
    """Billing plan as far as the router cares: a named rate-limit profile."""
    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("p")
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[ConnectionType] = mapped_column(
        Enum(ConnectionType, values_callable=lambda x: [e.value for e in x]),
        default=ConnectionType.pppoe,
    )
    speed_limit: Mapped[str] = mapped_column(String(120), default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class Client(Base):
    """Subscriber login pushed to routers as a PPPoE secret or hotspot user."""
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("c")
    )
    username: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    password: Mapped[str | None] = mapped_column(String(255))
    full_name: Mapped[str | None] = mapped_column(String(200))
    connection_type: Mapped[ConnectionType] = mapped_column(
        Enum(ConnectionType, values_callable=lambda x: [e.value for e in x]),
        default=ConnectionType.pppoe,
    )
    plan_id: Mapped[str | None] = mapped_column(String(64))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
