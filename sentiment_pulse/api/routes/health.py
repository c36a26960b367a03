"""Health routes - gateway and scheduler status."""

from typing import Optional

from fastapi import APIRouter, Depends

from sentiment_pulse.api.deps import get_gateway, get_scheduler
from sentiment_pulse.core.upstreams import UPSTREAMS
from sentiment_pulse.ingestion.transport import ProxyTransport
from sentiment_pulse.schemas.api import HealthResponse
from sentiment_pulse.services.gateway import GatewayClient
from sentiment_pulse.services.scheduler import RefreshScheduler

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health(
    gateway: GatewayClient = Depends(get_gateway),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
):
    """
    Health check endpoint for load balancer and Docker health checks.

    Reports which upstreams have a usable credential. A missing key degrades the
    matching data kind but does not make the service unhealthy.
    """
    credentials = {name: gateway.transport.has_credential(name) for name in UPSTREAMS}
    return HealthResponse(
        status="ok" if all(credentials.values()) else "degraded",
        env=gateway.config.ENV,
        transport="proxy" if isinstance(gateway.transport, ProxyTransport) else "direct",
        scheduler_running=scheduler.running if scheduler else False,
        pending_fetches=len(gateway.pending()),
        credentials=credentials,
    )
