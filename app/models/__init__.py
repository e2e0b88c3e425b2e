from app.models.fleet import DiscoveryRecord, RouterNode, RouterStatus  # noqa: F401
from app.models.subscriber import Client, ConnectionType, Plan  # noqa: F401
