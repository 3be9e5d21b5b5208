from .client import ReplayClient, TrackingClient
from .gateway import TrackingGateway
from .rate_limit import IntervalGate
from .trackingmore import TrackingMoreClient, TrackingMoreConfig
from .transport import RequestsTransport

__all__ = [
    "ReplayClient",
    "TrackingClient",
    "TrackingGateway",
    "IntervalGate",
    "TrackingMoreClient",
    "TrackingMoreConfig",
    "RequestsTransport",
]
