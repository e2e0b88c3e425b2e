from app.db import get_db
from app.services.routeros_link import LinkFactory, default_link_factory
from app.services.throughput import ThroughputRateEngine, get_rate_engine


def get_link_factory() -> LinkFactory:
    """Factory used to open router links; overridden in tests."""
    return default_link_factory


def get_throughput_engine() -> ThroughputRateEngine:
    return get_rate_engine()


__all__ = [
    "get_db",
    "get_link_factory",
    "get_throughput_engine",
]
