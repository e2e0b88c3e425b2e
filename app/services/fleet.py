"""Fleet registry: the durable node list merged with live telemetry."""
from __future__ import annotations

import logging
from functools import partial

from sqlalchemy.orm import Session

from app.models.fleet import RouterNode, RouterStatus
from app.schemas.fleet import NodeRebootResult, RouterNodeState, RouterNodeWrite
from app.services.common import get_or_404, new_id
from app.services.node_tasks import run_per_node
from app.services.routeros_link import (
    LinkFactory,
    LinkTarget,
    NodeUnreachable,
    default_link_factory,
    open_link,
)
from app.services.telemetry import mark_offline, poll_node

logger = logging.getLogger(__name__)

TELEMETRY_FIELDS = (
    "status",
    "cpu",
    "memory",
    "total_memory",
    "version",
    "model",
    "sessions",
    "uptime",
    "last_sync",
)

REBOOT_COMMAND = "/system/reboot"


def snapshot(node: RouterNode) -> RouterNodeState:
    return RouterNodeState.model_validate(node)


def apply_telemetry(node: RouterNode, state: RouterNodeState) -> None:
    for field in TELEMETRY_FIELDS:
        setattr(node, field, getattr(state, field))


def request_reboot(state: RouterNodeState, link_factory: LinkFactory = default_link_factory) -> str:
    """Send the reboot command; a dropped connection still counts as requested."""
    try:
        with open_link(LinkTarget.for_node(state), link_factory) as link:
            link.execute(REBOOT_COMMAND)
    except NodeUnreachable as exc:
        logger.info("Reboot of %s sent, link ended with: %s", state.name, exc.reason)
        return "Reboot requested; router did not acknowledge"
    logger.info("Reboot of %s acknowledged", state.name)
    return "Reboot requested"


class RouterNodes:
    @staticmethod
    def list(db: Session) -> list[RouterNode]:
        return db.query(RouterNode).order_by(RouterNode.created_at, RouterNode.id).all()

    @staticmethod
    def list_online(db: Session) -> list[RouterNode]:
        return (
            db.query(RouterNode)
            .filter(RouterNode.status == RouterStatus.online)
            .order_by(RouterNode.created_at, RouterNode.id)
            .all()
        )

    @staticmethod
    def get(db: Session, node_id: str) -> RouterNode:
        return get_or_404(db, RouterNode, node_id, detail="Router not found")

    @staticmethod
    def get_by_host(db: Session, host: str) -> RouterNode | None:
        return db.query(RouterNode).filter(RouterNode.host == host).first()

    @staticmethod
    async def refresh_all(
        db: Session, link_factory: LinkFactory = default_link_factory
    ) -> list[RouterNode]:
        """Poll every node concurrently, persist the results and return the fleet.

        MAINTENANCE nodes are skipped and returned as stored.
        """
        nodes = RouterNodes.list(db)
        polled = [node for node in nodes if node.status != RouterStatus.maintenance]
        states = [snapshot(node) for node in polled]

        results = await run_per_node(states, partial(poll_node, link_factory=link_factory))

        online = 0
        for node, state, result in zip(polled, states, results):
            if isinstance(result, BaseException):
                logger.warning("Polling %s (%s) did not finish: %r", node.name, node.host, result)
                result = mark_offline(state)
            apply_telemetry(node, result)
            if result.status == RouterStatus.online:
                online += 1
        db.commit()
        for node in nodes:
            db.refresh(node)
        logger.info("Fleet refresh: %d of %d polled routers online", online, len(polled))
        return nodes

    @staticmethod
    def replace_all(db: Session, payload: list[RouterNodeWrite]) -> list[RouterNode]:
        """Replace the registry with ``payload``.

        Entries matching a stored id keep their telemetry, and keep their
        credentials when the entry leaves them out. Stored nodes missing
        from the payload are deleted.
        """
        existing = {node.id: node for node in RouterNodes.list(db)}
        kept: set[str] = set()
        for item in payload:
            node_id = item.id or new_id("r")
            node = existing.get(node_id)
            if node is None:
                node = RouterNode(id=node_id)
                db.add(node)
            node.name = item.name
            node.host = item.host
            node.port = item.port
            if item.username is not None:
                node.username = item.username
            if item.password is not None:
                node.password = item.password
            if item.status is not None:
                node.status = item.status
            kept.add(node_id)

        removed = [node for node_id, node in existing.items() if node_id not in kept]
        for node in removed:
            db.delete(node)
        db.commit()
        logger.info("Router list replaced: %d nodes, %d removed", len(kept), len(removed))
        return RouterNodes.list(db)

    @staticmethod
    def delete(db: Session, node_id: str) -> None:
        node = RouterNodes.get(db, node_id)
        db.delete(node)
        db.commit()
        logger.info("Router %s (%s) removed from registry", node.name, node.id)

    @staticmethod
    def reboot(
        db: Session, node_id: str, link_factory: LinkFactory = default_link_factory
    ) -> NodeRebootResult:
        node = RouterNodes.get(db, node_id)
        detail = request_reboot(snapshot(node), link_factory)
        return NodeRebootResult(node_id=node.id, requested=True, detail=detail)
