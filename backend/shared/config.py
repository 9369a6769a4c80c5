from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator

from shared.logging_config import setup_logging, get_logger


class Settings(BaseSettings):
    # .env
    ALPHAVANTAGE_API_KEY: str = "demo"
    POSTGRES_USER: str = "marketfolio"
    POSTGRES_PASSWORD: str = "marketfolio"
    POSTGRES_DB: str = "marketfolio"
    POSTGRES_HOST: str = "db"

    # Market data
    QUOTE_CACHE_TTL_MINUTES: int = 15
    QUOTE_CACHE_RETENTION_DAYS: int = 7
    QUOTE_CACHE_MEMORY_TIER: bool = True
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    ALPHAVANTAGE_MIN_INTERVAL_SECONDS: float = 1.2

    # Jobs
    STOCK_PRICES_INTERVAL_UPDATES_SECONDS: int = 900
    SNAPSHOT_HOUR: int = 0
    CACHE_PURGE_HOUR: int = 1

    # Derived
    DATABASE_URL: str = ""
    MISFIRE_GRACE_TIME_SECONDS: int = 0

    # Helpful
    SQL_ECHO: bool = False
    LOG_FILE: str = "logs/marketfolio.log"
    TIMEZONE: str = "Europe/Warsaw"

    @model_validator(mode="after")
    def compute_derived_settings(self):
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}/{self.POSTGRES_DB}"
        self.MISFIRE_GRACE_TIME_SECONDS = self.STOCK_PRICES_INTERVAL_UPDATES_SECONDS // 2
        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
setup_logging(settings.LOG_FILE, settings.TIMEZONE)
logger = get_logger("global")
