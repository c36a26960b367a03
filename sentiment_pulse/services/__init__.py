# Services package
from sentiment_pulse.services.gateway import GatewayClient
from sentiment_pulse.services.scheduler import RefreshScheduler

__all__ = [
    "GatewayClient",
    "RefreshScheduler",
]
