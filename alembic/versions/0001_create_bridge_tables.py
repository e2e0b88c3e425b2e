"""create router, discovery, client and plan tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

router_status = sa.Enum("ONLINE", "OFFLINE", "MAINTENANCE", name="routerstatus")
connection_type = sa.Enum("PPPoE", "Hotspot", name="connectiontype")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "router_nodes" not in existing_tables:
        op.create_table(
            "router_nodes",
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("name", sa.String(160), nullable=False),
            sa.Column("host", sa.String(255), nullable=False),
            sa.Column("port", sa.Integer, nullable=True),
            sa.Column("username", sa.String(120), nullable=True),
            sa.Column("password", sa.String(255), nullable=True),
            sa.Column("status", router_status, nullable=True),
            sa.Column("cpu", sa.Float, nullable=True),
            sa.Column("memory", sa.Integer, nullable=True),
            sa.Column("total_memory", sa.Integer, nullable=True),
            sa.Column("version", sa.String(80), nullable=True),
            sa.Column("model", sa.String(120), nullable=True),
            sa.Column("sessions", sa.Integer, nullable=True),
            sa.Column("uptime", sa.String(80), nullable=True),
            sa.Column("last_sync", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )

    if "discovery_records" not in existing_tables:
        op.create_table(
            "discovery_records",
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("host", sa.String(255), nullable=False, unique=True),
            sa.Column("name", sa.String(160), nullable=True),
            sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("checkins", sa.Integer, nullable=True),
        )

    if "plans" not in existing_tables:
        op.create_table(
            "plans",
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("name", sa.String(120), nullable=False),
            sa.Column("type", connection_type, nullable=True),
            sa.Column("speed_limit", sa.String(120), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("username", sa.String(120), nullable=False),
            sa.Column("password", sa.String(255), nullable=True),
            sa.Column("full_name", sa.String(200), nullable=True),
            sa.Column("connection_type", connection_type, nullable=True),
            sa.Column("plan_id", sa.String(64), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_clients_username", "clients", ["username"])


def downgrade() -> None:
    op.drop_index("ix_clients_username", table_name="clients")
    op.drop_table("clients")
    op.drop_table("plans")
    op.drop_table("discovery_records")
    op.drop_table("router_nodes")
    bind = op.get_bind()
    connection_type.drop(bind, checkfirst=True)
    router_status.drop(bind, checkfirst=True)
