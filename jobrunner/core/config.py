# jobrunner/core/config.py

import os
from functools import lru_cache
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/jobs.db"
    RUN_MIGRATIONS: bool = False

    # Shared secret for the cron / admin endpoints (Authorization: Bearer <secret>)
    CRON_SECRET: str = ""

    # Job processing
    JOB_BATCH_SIZE: int = 10
    JOB_HANDLER_TIMEOUT_SECONDS: float = 300.0
    STALE_JOB_MINUTES: int = 30

    # In-process timer invoker (off by default, an external cron is expected)
    JOB_TIMER_ENABLED: bool = False
    JOB_TIMER_SECONDS: int = 60

    # Market data provider (CoinMarketCap compatible)
    MARKET_DATA_BASE_URL: str = "https://pro-api.coinmarketcap.com"
    MARKET_DATA_API_KEY: str = ""
    MARKET_DATA_TIMEOUT_SECONDS: float = 30.0

    # News feed endpoint returning {"newsItems": [...]}
    NEWS_FEED_URL: str = ""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists(os.environ.get('ENV_FILE', '.env')) else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
