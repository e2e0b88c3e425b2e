"""
Router telemetry polling.

``poll_node`` takes a node snapshot and returns a new one: refreshed and
ONLINE when the router answered, OFFLINE with zeroed counters otherwise.
The input is never mutated, so any number of polls can run side by side.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime

from app.models.fleet import RouterStatus
from app.schemas.fleet import RouterNodeState
from app.services.routeros_link import (
    LinkFactory,
    LinkTarget,
    NodeUnreachable,
    Row,
    default_link_factory,
    open_link,
)

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

RESOURCE_COMMAND = "/system/resource/print"
ROUTERBOARD_COMMAND = "/system/routerboard/print"
PPP_ACTIVE_COMMAND = "/ppp/active/print"
HOTSPOT_ACTIVE_COMMAND = "/ip/hotspot/active/print"


def _first(rows: list[Row], command: str) -> Row:
    if not rows:
        raise ValueError(f"{command} returned no rows")
    return rows[0]


def _to_mib(value: str | None) -> int:
    if value in (None, ""):
        return 0
    return round(int(value) / MIB)


def _cpu_load(value: str | None) -> float:
    if value in (None, ""):
        return 0.0
    return float(str(value).rstrip("%"))


def mark_offline(node: RouterNodeState) -> RouterNodeState:
    """Return ``node`` as OFFLINE with live counters zeroed."""
    return node.model_copy(
        update={
            "status": RouterStatus.offline,
            "cpu": 0,
            "memory": 0,
            "sessions": 0,
            "uptime": "Down",
        }
    )


def poll_node(
    node: RouterNodeState,
    link_factory: LinkFactory = default_link_factory,
    now: datetime | None = None,
) -> RouterNodeState:
    target = LinkTarget.for_node(node)
    try:
        with open_link(target, link_factory) as link:
            resource = _first(link.execute(RESOURCE_COMMAND), RESOURCE_COMMAND)
            board_rows = link.execute(ROUTERBOARD_COMMAND)
            ppp_sessions = link.execute(PPP_ACTIVE_COMMAND)
            hotspot_sessions = link.execute(HOTSPOT_ACTIVE_COMMAND)

        board = board_rows[0] if board_rows else {}
        refreshed = node.model_copy(
            update={
                "status": RouterStatus.online,
                "cpu": _cpu_load(resource.get("cpu-load")),
                "memory": _to_mib(resource.get("free-memory")),
                "total_memory": _to_mib(resource.get("total-memory")),
                "version": resource.get("version") or "unknown",
                "model": board.get("model") or resource.get("board-name") or node.model,
                "sessions": len(ppp_sessions) + len(hotspot_sessions),
                "uptime": resource.get("uptime") or "0s",
                "last_sync": now or datetime.now(UTC),
            }
        )
    except NodeUnreachable as exc:
        logger.warning("Router %s (%s) unreachable: %s", node.name, node.host, exc.reason)
        return mark_offline(node)
    except (ValueError, TypeError, AttributeError) as exc:
        logger.warning("Router %s (%s) returned malformed telemetry: %s", node.name, node.host, exc)
        return mark_offline(node)

    logger.debug(
        "Polled %s: cpu=%s%% sessions=%s", refreshed.name, refreshed.cpu, refreshed.sessions
    )
    return refreshed
