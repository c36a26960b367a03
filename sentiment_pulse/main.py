from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from sentiment_pulse.api.routes import health_router, market_router, proxy_router
from sentiment_pulse.core.config import settings
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.services.gateway import GatewayClient
from sentiment_pulse.services.scheduler import RefreshScheduler

log = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Log environment mode
    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    # Startup: a gateway placed on app.state beforehand is reused
    gateway: Optional[GatewayClient] = getattr(app.state, "gateway", None)
    if gateway is None:
        gateway = GatewayClient()
        app.state.gateway = gateway

    scheduler = RefreshScheduler(gateway)
    app.state.scheduler = scheduler
    if app.state.scheduler_enabled:
        scheduler.subscribe_tracked()
        log.info("Starting refresh scheduler...")
        scheduler.start()
    else:
        log.info("Scheduled refresh is disabled (SCHEDULER_ENABLED=false)")

    yield

    # Shutdown
    log.info("Shutting down services...")
    scheduler.stop()
    await gateway.aclose()
    log.info("Application shutdown complete")


def create_app(gateway: Optional[GatewayClient] = None, scheduler_enabled: Optional[bool] = None) -> FastAPI:
    # Configure FastAPI based on environment
    app = FastAPI(
        title="Crypto Sentiment Pulse",
        description="Resilient sentiment, on-chain and event data for the dashboard",
        version="1.0.0",
        lifespan=lifespan,
        # Disable docs in production for security
        docs_url="/docs" if settings.docs_enabled else None,
        redoc_url="/redoc" if settings.docs_enabled else None,
        openapi_url="/openapi.json" if settings.docs_enabled else None,
        # Debug mode only in development
        debug=settings.debug_enabled,
    )
    app.state.gateway = gateway
    app.state.scheduler_enabled = settings.SCHEDULER_ENABLED if scheduler_enabled is None else scheduler_enabled

    app.include_router(market_router)
    app.include_router(health_router)
    app.include_router(proxy_router)
    return app


app = create_app()
