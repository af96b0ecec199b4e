"""API configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://laundry:laundry@db:5432/laundry"
    DB_CREATE_ALL: bool = False
    LOG_LEVEL: str = "INFO"

    # Auto-scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_CRON: str = "0 * * * *"  # every hour, on the hour
    SCHEDULER_TIMEZONE: str = "UTC"
    SCHEDULER_STARTUP_DELAY_SEC: int = 5
    SCHEDULER_MAX_CONCURRENCY: int = 4

    # Order defaults
    DELIVERY_OFFSET_DAYS: int = 2
    TAX_RATE: float = 0.08

    # Real-time notifications (Centrifugo HTTP API)
    REALTIME_API_URL: str = ""
    REALTIME_API_KEY: str = ""
    NOTIFY_TIMEOUT_SECONDS: float = 3.0

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
