from sentiment_pulse.api.routes.health import router as health_router
from sentiment_pulse.api.routes.market import router as market_router
from sentiment_pulse.api.routes.proxy import router as proxy_router

__all__ = ["health_router", "market_router", "proxy_router"]
