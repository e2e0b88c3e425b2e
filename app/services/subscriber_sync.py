"""
Subscriber and plan sync.

Saving a client or plan stores the record first and then pushes the
matching RouterOS object to every ONLINE router:

- clients become PPPoE secrets (``/ppp/secret``) or hotspot users
  (``/ip/hotspot/user``) depending on their connection type;
- plans become PPP profiles (``/ppp/profile``) or hotspot user profiles
  (``/ip/hotspot/user/profile``) carrying the plan's ``rate-limit``.

Each push looks the object up by name and updates it in place when it
exists, so repeating a push never creates duplicates. Routers are handled
independently; one failing router does not affect the others or the saved
record.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import partial

from sqlalchemy.orm import Session

from app.config import settings
from app.models.subscriber import Client, ConnectionType, Plan
from app.schemas.fleet import RouterNodeState
from app.schemas.subscriber import (
    ClientUpsert,
    NodeSyncFailure,
    PlanUpsert,
    SyncReport,
)
from app.services.common import get_by_id, new_id
from app.services.fleet import RouterNodes, snapshot
from app.services.node_tasks import run_per_node
from app.services.routeros_link import (
    LinkFactory,
    LinkTarget,
    NodeUnreachable,
    default_link_factory,
    open_link,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"

SECRET_PATHS = {
    ConnectionType.pppoe: "/ppp/secret",
    ConnectionType.hotspot: "/ip/hotspot/user",
}
PROFILE_PATHS = {
    ConnectionType.pppoe: "/ppp/profile",
    ConnectionType.hotspot: "/ip/hotspot/user/profile",
}


@dataclass(frozen=True)
class RemoteEntry:
    """One named object to create or update on a router.

    ``fields`` are written on both create and update, ``create_fields``
    only when the object is new.
    """
    path: str
    name: str
    fields: dict[str, str]
    create_fields: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PlanProfile:
    name: str
    type: ConnectionType
    speed_limit: str


def client_entry(client: Client, plan: PlanProfile | None) -> RemoteEntry:
    fields = {
        "name": client.username,
        "profile": plan.name if plan else DEFAULT_PROFILE,
        "comment": f"{settings.sync_comment_prefix}:{client.id}",
    }
    create_fields = {}
    if client.password:
        fields["password"] = client.password
    else:
        create_fields["password"] = settings.default_subscriber_password
    return RemoteEntry(
        path=SECRET_PATHS[client.connection_type],
        name=client.username,
        fields=fields,
        create_fields=create_fields,
    )


def plan_entry(plan: PlanProfile) -> RemoteEntry:
    return RemoteEntry(
        path=PROFILE_PATHS[plan.type],
        name=plan.name,
        fields={"name": plan.name, "rate-limit": plan.speed_limit},
    )


def push_entry(
    state: RouterNodeState,
    entry: RemoteEntry,
    link_factory: LinkFactory = default_link_factory,
) -> str:
    """Create or update ``entry`` on one router. Returns ``created`` or ``updated``."""
    with open_link(LinkTarget.for_node(state), link_factory) as link:
        existing = link.execute(f"{entry.path}/print", {"name": entry.name})
        if existing:
            remote_id = existing[0].get("id") or existing[0].get(".id")
            link.execute(f"{entry.path}/set", {"id": remote_id, **entry.fields})
            return "updated"
        link.execute(f"{entry.path}/add", {**entry.fields, **entry.create_fields})
        return "created"


def push_with_retry(
    state: RouterNodeState,
    entry: RemoteEntry,
    link_factory: LinkFactory = default_link_factory,
    attempts: int | None = None,
    backoff: float | None = None,
) -> str:
    attempts = attempts or settings.sync_max_attempts
    backoff = settings.sync_retry_backoff_sec if backoff is None else backoff
    attempt = 1
    while True:
        try:
            outcome = push_entry(state, entry, link_factory)
        except NodeUnreachable as exc:
            logger.warning(
                "Push of %s %r to %s failed (attempt %d/%d): %s",
                entry.path, entry.name, state.name, attempt, attempts, exc.reason,
            )
            if attempt >= attempts:
                logger.error(
                    "Giving up on %s %r for router %s after %d attempts",
                    entry.path, entry.name, state.name, attempts,
                )
                raise
            attempt += 1
            if backoff:
                time.sleep(backoff)
        else:
            logger.info("%s %r %s on %s", entry.path, entry.name, outcome, state.name)
            return outcome


async def fan_out(
    db: Session,
    entry: RemoteEntry,
    record_id: str,
    link_factory: LinkFactory = default_link_factory,
) -> SyncReport:
    """Push ``entry`` to every ONLINE router and report per-router outcomes."""
    states = [snapshot(node) for node in RouterNodes.list_online(db)]
    results = await run_per_node(states, partial(push_with_retry, entry=entry, link_factory=link_factory))

    report = SyncReport(record_id=record_id, targeted=len(states))
    for state, result in zip(states, results):
        if isinstance(result, BaseException):
            if not isinstance(result, NodeUnreachable):
                logger.error("Push of %r to %s did not finish: %r", entry.name, state.name, result)
            report.failed.append(
                NodeSyncFailure(node_id=state.id, node_name=state.name, error=str(result) or repr(result))
            )
        else:
            report.pushed.append(state.id)
    return report


class SubscriberSync:
    @staticmethod
    def list_clients(db: Session) -> list[Client]:
        return db.query(Client).order_by(Client.updated_at.desc(), Client.id).all()

    @staticmethod
    def list_plans(db: Session) -> list[Plan]:
        return db.query(Plan).order_by(Plan.name, Plan.id).all()

    @staticmethod
    def upsert_plan(db: Session, payload: PlanUpsert) -> Plan:
        plan = get_by_id(db, Plan, payload.id)
        if plan is None:
            plan = Plan(id=payload.id or new_id("p"))
            db.add(plan)
        plan.name = payload.name
        plan.type = payload.type
        plan.speed_limit = payload.speed_limit
        db.commit()
        db.refresh(plan)
        return plan

    @staticmethod
    def upsert_client(db: Session, payload: ClientUpsert) -> Client:
        client = get_by_id(db, Client, payload.id)
        if client is None:
            client = Client(id=payload.id or new_id("c"))
            db.add(client)
        client.username = payload.username
        client.full_name = payload.full_name
        client.connection_type = payload.connection_type
        client.plan_id = payload.plan_id or (payload.plan.id if payload.plan else None)
        # An omitted password keeps the stored one.
        if payload.password:
            client.password = payload.password
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def resolve_plan(db: Session, client: Client, supplied: PlanUpsert | None = None) -> PlanProfile | None:
        if supplied is not None:
            return PlanProfile(supplied.name, supplied.type, supplied.speed_limit)
        plan = get_by_id(db, Plan, client.plan_id)
        if plan is None:
            return None
        return PlanProfile(plan.name, plan.type, plan.speed_limit)

    @staticmethod
    async def save_client(
        db: Session, payload: ClientUpsert, link_factory: LinkFactory = default_link_factory
    ) -> SyncReport:
        client = SubscriberSync.upsert_client(db, payload)
        plan = SubscriberSync.resolve_plan(db, client, payload.plan)
        report = await fan_out(db, client_entry(client, plan), client.id, link_factory)
        logger.info(
            "Client %s saved; pushed to %d/%d routers",
            client.username, len(report.pushed), report.targeted,
        )
        return report

    @staticmethod
    async def save_plan(
        db: Session, payload: PlanUpsert, link_factory: LinkFactory = default_link_factory
    ) -> SyncReport:
        plan = SubscriberSync.upsert_plan(db, payload)
        profile = PlanProfile(plan.name, plan.type, plan.speed_limit)
        report = await fan_out(db, plan_entry(profile), plan.id, link_factory)
        logger.info(
            "Plan %s saved; pushed to %d/%d routers",
            plan.name, len(report.pushed), report.targeted,
        )
        return report
