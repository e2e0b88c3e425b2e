"""Live subscriber sessions, read straight from every ONLINE router."""
from __future__ import annotations

import logging
from functools import partial

from sqlalchemy.orm import Session

from app.models.subscriber import Client, ConnectionType
from app.schemas.fleet import RouterNodeState, SessionRead
from app.services.fleet import RouterNodes, snapshot
from app.services.node_tasks import run_per_node
from app.services.routeros_link import (
    LinkFactory,
    LinkTarget,
    Row,
    default_link_factory,
    open_link,
)
from app.services.telemetry import HOTSPOT_ACTIVE_COMMAND, PPP_ACTIVE_COMMAND
from app.services.throughput import ThroughputRateEngine

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = "Unknown Device"

RawSessions = list[tuple[ConnectionType, Row]]


def _to_int(value: str | None) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0


def fetch_active_sessions(
    state: RouterNodeState, link_factory: LinkFactory = default_link_factory
) -> RawSessions:
    with open_link(LinkTarget.for_node(state), link_factory) as link:
        ppp = link.execute(PPP_ACTIVE_COMMAND)
        hotspot = link.execute(HOTSPOT_ACTIVE_COMMAND)
    return [(ConnectionType.pppoe, row) for row in ppp] + [
        (ConnectionType.hotspot, row) for row in hotspot
    ]


def build_session(
    state: RouterNodeState,
    kind: ConnectionType,
    row: Row,
    engine: ThroughputRateEngine,
    full_names: dict[str, str],
) -> SessionRead | None:
    username = row.get("name") or row.get("user")
    if not username:
        return None
    bytes_in = _to_int(row.get("bytes-in"))
    bytes_out = _to_int(row.get("bytes-out"))
    rate = engine.observe(state.id, username, bytes_in, bytes_out)
    return SessionRead(
        id=row.get("id") or row.get(".id"),
        username=username,
        full_name=full_names.get(username) or UNKNOWN_DEVICE,
        connection_type=kind,
        uptime=row.get("uptime") or "0s",
        download_bytes=bytes_in,
        upload_bytes=bytes_out,
        download_rate=rate.download_rate,
        upload_rate=rate.upload_rate,
        node_id=state.id,
        connected_node=state.name,
        address=row.get("address") or row.get("caller-id"),
    )


async def collect_sessions(
    db: Session,
    engine: ThroughputRateEngine,
    link_factory: LinkFactory = default_link_factory,
) -> list[SessionRead]:
    """Query every ONLINE router for active sessions and attach live bitrates.

    A router that cannot be reached contributes no sessions; its status is
    left for the next fleet refresh to update.
    """
    states = [snapshot(node) for node in RouterNodes.list_online(db)]
    if not states:
        return []
    full_names = {
        client.username: client.full_name
        for client in db.query(Client).all()
        if client.full_name
    }

    results = await run_per_node(states, partial(fetch_active_sessions, link_factory=link_factory))

    sessions: list[SessionRead] = []
    for state, result in zip(states, results):
        if isinstance(result, BaseException):
            logger.warning("Could not read sessions from %s (%s): %r", state.name, state.host, result)
            continue
        for kind, row in result:
            session = build_session(state, kind, row, engine, full_names)
            if session is not None:
                sessions.append(session)
    return sessions
