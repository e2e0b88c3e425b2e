"""
Zero-touch provisioning.

A fresh router is told (by pasting :func:`loader_command`) to fetch
``/boot`` from this server and import the result. That request both
returns the RouterOS configuration script built by :func:`build_boot_script`
and queues a :class:`DiscoveryRecord` for the reporting address, which an
administrator later names and finalizes into a registered node.

Every creating statement in the script is guarded by a ``find`` so the
script can be imported again on an already-configured router without
producing duplicates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.fleet import DiscoveryRecord, RouterNode, RouterStatus
from app.schemas.provisioning import DiscoveryFinalize
from app.services.common import get_or_404, new_id
from app.services.fleet import RouterNodes

logger = logging.getLogger(__name__)

BOOT_SCRIPT_NAME = "dartbit.rsc"
BRIDGE_NAME = "dartbit-bridge"
PPPOE_POOL = "dartbit-pool-pppoe"
HOTSPOT_POOL = "dartbit-pool-hotspot"
PPPOE_PROFILE = "dartbit-pppoe-default"
HOTSPOT_SERVER_PROFILE = "hsprof-dartbit"
HOTSPOT_USER_PROFILE = "dartbit-hotspot-default"


@dataclass(frozen=True)
class BootProfile:
    """Everything the boot script depends on."""
    server_host: str
    username: str
    password: str
    identity: str
    timezone: str
    uplink: str
    dns_servers: str
    api_port: int
    pppoe_gateway: str = "10.10.10.1"
    pppoe_pool: str = "10.10.10.2-10.10.254.254"
    hotspot_gateway: str = "10.11.10.1"
    hotspot_network: str = "10.11.0.0/16"
    hotspot_pool: str = "10.11.10.2-10.11.254.254"

    @classmethod
    def from_settings(cls, server_host: str) -> "BootProfile":
        return cls(
            server_host=server_host,
            username=settings.provision_username,
            password=settings.provision_password,
            identity=settings.provision_identity,
            timezone=settings.provision_timezone,
            uplink=settings.provision_uplink_interface,
            dns_servers=settings.provision_dns_servers,
            api_port=settings.routeros_default_port,
        )


def rsc_quote(value: str) -> str:
    """Quote a value for a RouterOS script string literal."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
    return f'"{escaped}"'


def guarded(find: str, add: str) -> str:
    """Run ``add`` only when ``find`` matches nothing."""
    return f":if ([:len [{find}]] = 0) do={{ {add} }}"


def build_boot_script(profile: BootProfile) -> str:
    q = rsc_quote
    bridge = q(BRIDGE_NAME)
    uplink = q(profile.uplink)
    hotspot_prefix = profile.hotspot_network.split("/")[1]

    lines = [
        "# dartbit zero-touch provisioning",
        f"# management server: {profile.server_host}",
        '/log info "dartbit: provisioning started"',
        "",
        "# identity and clock",
        f"/system identity set name={q(profile.identity)}",
        f"/system clock set time-zone-name={profile.timezone}",
        "",
        "# management account and API service",
        f"/ip service set api disabled=no port={profile.api_port}",
        guarded(
            f"/user find name={q(profile.username)}",
            f"/user add name={q(profile.username)} group=full "
            f"password={q(profile.password)} comment=\"dartbit automation\"",
        ),
        "",
        "# client access bridge over every port except the uplink",
        guarded(
            f"/interface bridge find name={bridge}",
            f"/interface bridge add name={bridge} comment=\"dartbit access bridge\"",
        ),
        f":foreach i in=[/interface ethernet find where name!={uplink}] do={{ "
        ":local n [/interface ethernet get $i name]; "
        f":if ([:len [/interface bridge port find interface=$n bridge={bridge}]] = 0) do={{ "
        ":if ([:len [/interface bridge port find interface=$n]] > 0) do={ "
        f"/interface bridge port set [/interface bridge port find interface=$n] bridge={bridge} "
        f"}} else={{ /interface bridge port add bridge={bridge} interface=$n }} }} }}",
        guarded(
            f"/ip address find interface={bridge}",
            f"/ip address add address={profile.hotspot_gateway}/{hotspot_prefix} interface={bridge}",
        ),
        "",
        "# address pools",
        guarded(
            f"/ip pool find name={q(PPPOE_POOL)}",
            f"/ip pool add name={q(PPPOE_POOL)} ranges={profile.pppoe_pool}",
        ),
        guarded(
            f"/ip pool find name={q(HOTSPOT_POOL)}",
            f"/ip pool add name={q(HOTSPOT_POOL)} ranges={profile.hotspot_pool}",
        ),
        "",
        "# DNS and DHCP",
        f"/ip dns set allow-remote-requests=yes servers={profile.dns_servers}",
        guarded(
            f"/ip dhcp-server network find address={q(profile.hotspot_network)}",
            f"/ip dhcp-server network add address={profile.hotspot_network} "
            f"gateway={profile.hotspot_gateway} dns-server={profile.hotspot_gateway}",
        ),
        guarded(
            '/ip dhcp-server find name="dartbit-dhcp"',
            f'/ip dhcp-server add name="dartbit-dhcp" interface={bridge} '
            f"address-pool={q(HOTSPOT_POOL)} disabled=no",
        ),
        "",
        "# PPPoE",
        guarded(
            f"/ppp profile find name={q(PPPOE_PROFILE)}",
            f"/ppp profile add name={q(PPPOE_PROFILE)} local-address={profile.pppoe_gateway} "
            f"remote-address={q(PPPOE_POOL)} dns-server={profile.dns_servers}",
        ),
        guarded(
            '/interface pppoe-server server find service-name="dartbit-pppoe"',
            f'/interface pppoe-server server add service-name="dartbit-pppoe" interface={bridge} '
            f"default-profile={q(PPPOE_PROFILE)} one-session-per-host=yes disabled=no",
        ),
        "",
        "# Hotspot",
        guarded(
            f"/ip hotspot profile find name={q(HOTSPOT_SERVER_PROFILE)}",
            f"/ip hotspot profile add name={q(HOTSPOT_SERVER_PROFILE)} "
            f"hotspot-address={profile.hotspot_gateway} dns-name=connect.dartbit "
            "login-by=http-chap,cookie",
        ),
        guarded(
            '/ip hotspot find name="dartbit-hotspot"',
            f'/ip hotspot add name="dartbit-hotspot" interface={bridge} '
            f"profile={q(HOTSPOT_SERVER_PROFILE)} address-pool={q(HOTSPOT_POOL)} disabled=no",
        ),
        guarded(
            f"/ip hotspot user profile find name={q(HOTSPOT_USER_PROFILE)}",
            f"/ip hotspot user profile add name={q(HOTSPOT_USER_PROFILE)} "
            "shared-users=1 status-autorefresh=1m",
        ),
        "",
        "# NAT and MSS clamping",
        guarded(
            '/ip firewall nat find comment="dartbit WAN NAT"',
            f"/ip firewall nat add chain=srcnat action=masquerade out-interface={uplink} "
            'comment="dartbit WAN NAT"',
        ),
        guarded(
            '/ip firewall mangle find comment="dartbit MSS clamp"',
            "/ip firewall mangle add chain=forward protocol=tcp tcp-flags=syn "
            "action=change-mss new-mss=clamp-to-pmtu passthrough=yes "
            'comment="dartbit MSS clamp"',
        ),
        "",
        "# input firewall: keep management reachable, drop the rest from the uplink",
        guarded(
            '/ip firewall filter find comment="dartbit established"',
            "/ip firewall filter add chain=input connection-state=established,related "
            'action=accept comment="dartbit established"',
        ),
        guarded(
            '/ip firewall filter find comment="dartbit icmp"',
            '/ip firewall filter add chain=input protocol=icmp action=accept comment="dartbit icmp"',
        ),
        guarded(
            '/ip firewall filter find comment="dartbit api"',
            f"/ip firewall filter add chain=input protocol=tcp dst-port={profile.api_port} "
            'action=accept comment="dartbit api"',
        ),
        guarded(
            '/ip firewall filter find comment="dartbit drop uplink input"',
            f"/ip firewall filter add chain=input in-interface={uplink} action=drop "
            'comment="dartbit drop uplink input"',
        ),
        "",
        '/log info "dartbit: provisioning complete"',
    ]
    return "\n".join(lines) + "\n"


def loader_command(server_host: str, device_host: str | None = None, port: int | None = None) -> str:
    """One-line command an operator pastes on a fresh router."""
    port = port or settings.bridge_public_port
    url = f"http://{server_host}:{port}/boot"
    if device_host:
        url += f"?ip={device_host}"
    return (
        f'/tool fetch url="{url}" dst-path={BOOT_SCRIPT_NAME}; '
        f":delay 3s; /import {BOOT_SCRIPT_NAME}"
    )


class DiscoveryQueue:
    @staticmethod
    def list(db: Session) -> list[DiscoveryRecord]:
        return (
            db.query(DiscoveryRecord)
            .order_by(DiscoveryRecord.last_seen_at, DiscoveryRecord.id)
            .all()
        )

    @staticmethod
    def latest(db: Session) -> DiscoveryRecord | None:
        """The most recently seen record; older ones stay queued."""
        return (
            db.query(DiscoveryRecord)
            .order_by(DiscoveryRecord.last_seen_at.desc(), DiscoveryRecord.checkins.desc())
            .first()
        )

    @staticmethod
    def clear(db: Session) -> int:
        count = db.query(DiscoveryRecord).delete()
        db.commit()
        logger.info("Discovery queue cleared (%d records)", count)
        return count

    @staticmethod
    def record_checkin(
        db: Session, host: str, now: datetime | None = None
    ) -> DiscoveryRecord | None:
        """Queue a boot-script fetch from ``host``.

        Registered routers re-importing the script are not queued. A repeat
        check-in from a queued host refreshes that record instead of adding
        another one.
        """
        now = now or datetime.now(UTC)
        if RouterNodes.get_by_host(db, host) is not None:
            logger.info("Boot script fetched by registered router %s", host)
            return None
        record = DiscoveryQueue.get_by_host(db, host)
        if record is None:
            record = DiscoveryRecord(
                id=new_id("d"), host=host, first_seen_at=now, last_seen_at=now, checkins=1
            )
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                # another request queued the same host first
                db.rollback()
                record = DiscoveryQueue.get_by_host(db, host)
                if record is None:
                    raise
                DiscoveryQueue._touch(db, record, now)
            else:
                logger.info("New router signal from %s", host)
        else:
            DiscoveryQueue._touch(db, record, now)
        db.refresh(record)
        return record

    @staticmethod
    def get_by_host(db: Session, host: str) -> DiscoveryRecord | None:
        return db.query(DiscoveryRecord).filter(DiscoveryRecord.host == host).first()

    @staticmethod
    def _touch(db: Session, record: DiscoveryRecord, now: datetime) -> None:
        record.last_seen_at = now
        record.checkins += 1
        db.commit()
        logger.info("Router %s checked in again (%d times)", record.host, record.checkins)

    @staticmethod
    def finalize(db: Session, record_id: str, payload: DiscoveryFinalize) -> RouterNode:
        """Register the discovered router under an administrator-chosen name."""
        record = get_or_404(db, DiscoveryRecord, record_id, detail="Discovery record not found")
        node = RouterNode(
            id=new_id("r"),
            name=payload.name,
            host=record.host,
            port=payload.port or settings.routeros_default_port,
            username=payload.username or settings.provision_username,
            password=payload.password or settings.provision_password,
            status=RouterStatus.offline,
        )
        db.add(node)
        db.delete(record)
        db.commit()
        db.refresh(node)
        logger.info("Discovered router %s registered as %s (%s)", node.host, node.name, node.id)
        return node
