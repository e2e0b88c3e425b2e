"""
RouterOS management link.

The only code that talks to router hardware. A link is opened for one
operation, used for a handful of commands and closed again; nothing is
pooled between requests.

Commands are written as a menu path plus a verb, e.g. ``/ppp/secret/print``
or ``/system/reboot``, with an optional parameter map. ``print`` parameters
act as equality filters. Every failure (refused, timed out, bad login,
protocol error) surfaces as :class:`NodeUnreachable`.
"""
from __future__ import annotations

import logging
import socket
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol

import routeros_api
from routeros_api.exceptions import RouterOsApiError

from app.config import settings

logger = logging.getLogger(__name__)

Row = dict[str, str]


class NodeUnreachable(Exception):
    """Raised when a router cannot be reached, authenticated or understood."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"{host}: {reason}")


@dataclass(frozen=True)
class LinkTarget:
    """Connection parameters for a single router."""
    host: str
    port: int
    username: str
    password: str
    timeout: float
    use_ssl: bool = False

    @classmethod
    def for_node(cls, node) -> "LinkTarget":
        return cls(
            host=node.host,
            port=int(node.port or settings.routeros_default_port),
            username=node.username or settings.routeros_default_username,
            password=node.password or "",
            timeout=settings.routeros_timeout_sec,
            use_ssl=settings.routeros_use_ssl,
        )


class HardwareLink(Protocol):
    def connect(self) -> None: ...

    def execute(self, command: str, params: dict | None = None) -> list[Row]: ...

    def close(self) -> None: ...


LinkFactory = Callable[[LinkTarget], HardwareLink]


def split_command(command: str) -> tuple[str, str]:
    """Split ``/ip/hotspot/user/print`` into (``/ip/hotspot/user``, ``print``)."""
    cleaned = "/" + command.strip().strip("/").replace(" ", "/")
    path, _, verb = cleaned.rpartition("/")
    if not verb:
        raise ValueError(f"Command has no verb: {command!r}")
    return path or "/", verb


class RouterOsLink:
    """HardwareLink over the binary RouterOS API (port 8728/8729)."""

    def __init__(self, target: LinkTarget):
        self.target = target
        self._pool: routeros_api.RouterOsApiPool | None = None
        self._api = None

    def connect(self) -> None:
        try:
            pool = routeros_api.RouterOsApiPool(
                self.target.host,
                username=self.target.username,
                password=self.target.password,
                port=self.target.port,
                use_ssl=self.target.use_ssl,
                ssl_verify=False,
                plaintext_login=True,
            )
            pool.set_timeout(self.target.timeout)
            self._pool = pool
            self._api = pool.get_api()
        except (RouterOsApiError, OSError, socket.timeout) as exc:
            self.close()
            raise NodeUnreachable(self.target.host, f"connect failed: {exc}") from exc

    def execute(self, command: str, params: dict | None = None) -> list[Row]:
        if self._api is None:
            raise NodeUnreachable(self.target.host, "link is not open")
        path, verb = split_command(command)
        params = dict(params or {})
        try:
            resource = self._api.get_resource(path)
            if verb == "print":
                rows = resource.get(**params)
            elif verb == "add":
                resource.add(**params)
                rows = []
            elif verb == "set":
                resource.set(**params)
                rows = []
            elif verb == "remove":
                resource.remove(**params)
                rows = []
            else:
                rows = resource.call(verb, params)
        except (RouterOsApiError, OSError, socket.timeout) as exc:
            raise NodeUnreachable(self.target.host, f"{command} failed: {exc}") from exc
        return [dict(row) for row in (rows or [])]

    def close(self) -> None:
        if self._pool is None:
            return
        try:
            self._pool.disconnect()
        except (RouterOsApiError, OSError) as exc:
            logger.debug("Error disconnecting from %s: %s", self.target.host, exc)
        finally:
            self._pool = None
            self._api = None


def default_link_factory(target: LinkTarget) -> HardwareLink:
    return RouterOsLink(target)


@contextmanager
def open_link(target: LinkTarget, factory: LinkFactory = default_link_factory) -> Iterator[HardwareLink]:
    """Open one link, yield it, and always close it afterwards."""
    link = factory(target)
    link.connect()
    try:
        yield link
    finally:
        link.close()
