# orderflow/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from functools import lru_cache


class Settings(BaseSettings):
    ENV: str = "development"
    DATA_DIR: Path = Path("data")  # where the CSV tables live
    ORDERS_FILE: str = "orders.csv"
    OFFERS_FILE: str = "offers.csv"
    EXPIRATION_JOBS_FILE: str = "expiration_jobs.csv"

    # how long an order may sit in a timed state before it is expired
    PENDING_EXPIRATION_HOURS: float = 48
    SUBMITTED_EXPIRATION_HOURS: float = 48
    APPROVED_EXPIRATION_HOURS: float = 24 * 7

    # background expiration worker started from the app lifespan
    EXPIRATION_WORKER_ENABLED: bool = False
    EXPIRATION_POLL_SECONDS: float = 30
    # a job that keeps raising is parked as failed after this many attempts
    EXPIRATION_MAX_ATTEMPTS: int = 5

    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    # Example .env:
    # DATA_DIR=./data
    # EXPIRATION_WORKER_ENABLED=true

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()
