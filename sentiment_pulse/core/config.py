from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    SLACK_WEBHOOK_URL: str | None = None
    SLACK_ALERT_COOLDOWN_SECONDS: float = 15 * 60  # same alert at most once per window

    # Upstream credentials (one per provider)
    SANTIMENT_API_KEY: str | None = None
    COINMETRICS_API_KEY: str | None = None  # community endpoint works without a key
    CRYPTOPANIC_API_TOKEN: str | None = None
    OPENAI_API_KEY: str | None = None
    NEWSAPI_KEY: str | None = None

    OPENAI_MODEL: str = "gpt-3.5-turbo"

    # When set, all upstream calls go through the serverless proxy instead of direct
    PROXY_URL: str | None = None

    # Timeouts
    UPSTREAM_TIMEOUT_SECONDS: float = 10.0  # single HTTP call
    FETCH_TIMEOUT_SECONDS: float = 20.0  # whole fallback chain

    # Retry policy
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_SECONDS: float = 60.0
    RETRY_MAX_DELAY_SECONDS: float = 300.0
    RETRY_JITTER: bool = True

    # Events provider
    EVENT_CURRENCIES: str | list[str] = "BTC,ETH,USDT,SOL"
    EVENTS_CACHE_TTL_SECONDS: float = 5 * 60

    # Scheduled refresh
    SCHEDULER_ENABLED: bool = True
    TRACKED_COINS: str | list[str] = "BTC,ETH,USDT,SOL"
    SENTIMENT_REFRESH_SECONDS: int = 60 * 60  # hourly
    ONCHAIN_REFRESH_SECONDS: int = 5 * 60
    EVENTS_REFRESH_SECONDS: int = 15 * 60

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @field_validator("EVENT_CURRENCIES", "TRACKED_COINS", mode="before")
    @classmethod
    def parse_ticker_list(cls, v):
        """Accept both 'BTC,ETH' and ['BTC', 'ETH']."""
        if isinstance(v, str):
            return [ticker.strip().upper() for ticker in v.split(",") if ticker.strip()]
        return [str(ticker).upper() for ticker in v]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            # In production, minimum INFO level (ignore DEBUG)
            return self.LOG_LEVEL if self.LOG_LEVEL.upper() != "DEBUG" else "INFO"
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development


settings = Settings()
