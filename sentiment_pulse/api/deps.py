"""API dependencies"""

from typing import Optional

from fastapi import HTTPException, Request

from sentiment_pulse.services.gateway import GatewayClient
from sentiment_pulse.services.scheduler import RefreshScheduler


def get_gateway(request: Request) -> GatewayClient:
    """Gateway built by the application lifespan"""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Gateway not initialised")
    return gateway


def get_scheduler(request: Request) -> Optional[RefreshScheduler]:
    return getattr(request.app.state, "scheduler", None)
