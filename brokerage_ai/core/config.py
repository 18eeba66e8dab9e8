"""
Runtime settings, read from the environment and an optional ``.env`` file.

Every field maps to an upper-case environment variable of the same name
(``FACT_STORE_BACKEND=memory``, ``EMD_WARN_WINDOW_DAYS=3``). Bounded values
are validated when the settings object is built, so a bad deployment
fails at import time instead of mid-rollup.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Settings for the API, the Celery workers and the CLI scripts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = "development"

    # -- PostgreSQL / fact store ----------------------------------------------
    # "memory" keeps every record in process (tests, local demos)
    fact_store_backend: Literal["postgres", "memory"] = "postgres"
    database_url: PostgresDsn | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "brokerage_ai"
    postgres_user: str = "brokerage"
    postgres_password: str = "brokerage_dev_password"

    # -- Compliance -----------------------------------------------------------
    default_rule_pack: str = "TN_RES_2025"
    emd_warn_window_days: int = Field(default=2, ge=0, le=30)
    max_concurrent_checks: int = Field(default=8, ge=1, le=64)
    rollup_max_attempts: int = Field(default=3, ge=1, le=10)

    # -- Retrieval ------------------------------------------------------------
    # Must match the model that produced the stored chunk vectors
    embedding_dimension: int = Field(default=1536, ge=1, le=16000)
    search_top_k: int = Field(default=20, ge=1, le=200)
    search_min_content_length: int = Field(default=20, ge=0)

    # -- Redis / Celery -------------------------------------------------------
    redis_url: RedisDsn | None = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    celery_task_always_eager: bool = False
    celery_result_expires: int = Field(default=86400, ge=60)
    # UTC hour of the beat-driven full refresh; unset disables the schedule
    nightly_refresh_hour: int | None = Field(default=2, ge=0, le=23)

    # -- HTTP API -------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        alias="cors_origins",
    )

    # -- Logging --------------------------------------------------------------
    log_level: LogLevel = "INFO"
    log_format: Literal["json", "console"] = "console"

    @property
    def db_url(self) -> str:
        """Async (asyncpg) URL: DATABASE_URL if set, else built from POSTGRES_*."""
        if self.database_url is not None:
            return str(self.database_url)
        credentials = f"{self.postgres_user}:{self.postgres_password}"
        location = f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        return f"postgresql+asyncpg://{credentials}@{location}"

    @property
    def db_url_sync(self) -> str:
        """Driver-less URL for Alembic's synchronous engine."""
        return self.db_url.replace("+asyncpg", "", 1)

    @property
    def redis_dsn(self) -> str:
        if self.redis_url is not None:
            return str(self.redis_url)
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_dsn

    @property
    def celery_backend(self) -> str:
        return self.celery_result_backend or self.redis_dsn

    @property
    def cors_origins(self) -> list[str]:
        """CORS_ORIGINS is a comma-separated list."""
        return [o.strip() for o in self.cors_origins_raw.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
