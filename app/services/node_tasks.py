"""Run a blocking per-router operation across many routers at once."""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Sequence, TypeVar

from app.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_executor: ThreadPoolExecutor | None = None


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.fleet_max_workers,
            thread_name_prefix="node-io",
        )
    return _executor


async def run_per_node(
    nodes: Iterable[T],
    func: Callable[[T], Any],
    *,
    timeout: float | None = None,
) -> list[Any]:
    """
    Call ``func(node)`` for every node in worker threads.

    Results come back in input order. A node whose call raised or ran past
    ``timeout`` gets the exception object in its slot instead of a result,
    so one slow router never holds up or breaks the others.

    The timeout counts from the moment a worker picks the call up, not from
    when it was queued, so a node waiting behind busy workers is not failed
    for time it never got.
    """
    items: Sequence[T] = list(nodes)
    if not items:
        return []
    loop = asyncio.get_running_loop()
    limit = timeout if timeout is not None else settings.node_operation_timeout_sec
    executor = get_executor()

    def _mark_started(started: asyncio.Future) -> None:
        if not started.done():
            started.set_result(None)

    async def _one(node: T):
        started = loop.create_future()

        def _call():
            loop.call_soon_threadsafe(_mark_started, started)
            return func(node)

        work = loop.run_in_executor(executor, _call)
        await asyncio.wait([started, work], return_when=asyncio.FIRST_COMPLETED)
        return await asyncio.wait_for(work, limit)

    return await asyncio.gather(*(_one(node) for node in items), return_exceptions=True)
