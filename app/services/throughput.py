"""
Throughput rate engine.

Routers only expose cumulative byte counters per session, so live bitrate is
derived by differencing two consecutive samples of the same session over the
wall-clock time between them. The previous sample for every
``(node_id, username)`` pair lives in a :class:`SampleStore`.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Protocol

from app.config import settings

SampleKey = tuple[str, str]


@dataclass(frozen=True)
class ThroughputSample:
    time: float
    bytes_in: int
    bytes_out: int


@dataclass(frozen=True)
class Throughput:
    download_rate: float
    upload_rate: float


class SampleStore(Protocol):
    def get(self, key: SampleKey) -> ThroughputSample | None: ...

    def put(self, key: SampleKey, sample: ThroughputSample) -> None: ...


class InMemorySampleStore:
    """Process-local sample cache, bounded to ``max_entries`` keys.

    When full, the least recently written key is evicted first.
    """

    def __init__(self, max_entries: int | None = None):
        self.max_entries = max_entries or settings.throughput_cache_max_entries
        self._samples: OrderedDict[SampleKey, ThroughputSample] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: SampleKey) -> ThroughputSample | None:
        with self._lock:
            return self._samples.get(key)

    def put(self, key: SampleKey, sample: ThroughputSample) -> None:
        with self._lock:
            self._samples[key] = sample
            self._samples.move_to_end(key)
            while len(self._samples) > self.max_entries:
                self._samples.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._samples


def _rate(current: int, previous: int, elapsed: float) -> float:
    # Counter resets (reboot, re-dial) show up as a negative delta.
    return max(0.0, (current - previous) * 8 / elapsed)


class ThroughputRateEngine:
    def __init__(
        self,
        store: SampleStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else InMemorySampleStore()
        self.clock = clock

    def observe(
        self,
        node_id: str,
        username: str,
        bytes_in: int,
        bytes_out: int,
        now: float | None = None,
    ) -> Throughput:
        """Record the current counters for a session and return its bitrate.

        ``bytes_in`` is traffic delivered to the subscriber (download),
        ``bytes_out`` traffic sent by the subscriber (upload). The first
        observation of a session only sets the baseline and yields zero.
        """
        key = (node_id, username)
        now = self.clock() if now is None else now
        previous = self.store.get(key)

        download = upload = 0.0
        if previous is not None:
            elapsed = now - previous.time
            if elapsed > 0:
                download = _rate(bytes_in, previous.bytes_in, elapsed)
                upload = _rate(bytes_out, previous.bytes_out, elapsed)

        self.store.put(key, ThroughputSample(time=now, bytes_in=bytes_in, bytes_out=bytes_out))
        return Throughput(download_rate=download, upload_rate=upload)


_engine: ThroughputRateEngine | None = None


def get_rate_engine() -> ThroughputRateEngine:
    """Shared engine for the running process."""
    global _engine
    if _engine is None:
        _engine = ThroughputRateEngine()
    return _engine
