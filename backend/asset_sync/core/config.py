# Environment settings: pydantic-settings reads process env and .env

from typing import Optional
from pydantic import SecretStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from asset_sync.utils.serialization import split_csv


# When running uvicorn directly (outside docker) the .env next to backend/ is picked up.

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # ========= project config =========
    PROJECT_NAME: str = "DAM Asset Sync"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api/v1"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"


    # ========= Database =========
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://sync_user:sync_pass@db:5432/asset_sync",
        alias="DATABASE_URL",
    )


    # ========= celery config =========
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TIMEZONE: str = "UTC"
    SYNC_TASKS_INLINE: bool = Field(default=False, alias="SYNC_TASKS_INLINE")   # run job work in-process (local debugging)
    JOB_POLL_INTERVAL_SEC: int = Field(15, ge=1, alias="JOB_POLL_INTERVAL_SEC")


    # ========= DAM Base Config =========
    DAM_BASE_URL: Optional[str] = Field(None, alias="DAM_BASE_URL", description="Default DAM portal URL, per-shop value wins")
    DAM_PERMANENT_TOKEN: Optional[SecretStr] = Field(None, alias="DAM_PERMANENT_TOKEN")
    DAM_CONNECT_TIMEOUT: int = Field(10, ge=1, alias="DAM_CONNECT_TIMEOUT")
    DAM_READ_TIMEOUT: int = Field(30, ge=1, alias="DAM_READ_TIMEOUT")
    DAM_DOWNLOAD_TIMEOUT: int = Field(120, ge=1, alias="DAM_DOWNLOAD_TIMEOUT")
    DAM_HTTP_RETRIES: int = Field(3, ge=1, alias="DAM_HTTP_RETRIES")                     # attempts per call on 429
    DAM_RATE_LIMIT_PER_MIN: int = Field(240, ge=1, le=6000, alias="DAM_RATE_LIMIT_PER_MIN")

    # ========= DAM global rate limit (shared across workers) =========
    DAM_GLOBAL_RL_ENABLED: bool = False
    DAM_GLOBAL_RATE_LIMIT_REDIS_URL: str = "redis://redis:6379/0"
    DAM_GLOBAL_RL_MAX_RPM: int = 240
    DAM_GLOBAL_RL_BURST: int = 10
    DAM_GLOBAL_RL_MAX_WAIT_MS: int = 5000
    DAM_GLOBAL_RL_KEY_PREFIX: str = "dam:rl"
    DAM_ENV: str = "dev"

    # ========= DAM webhooks =========
    DAM_WEBHOOK_VERIFY_SIGNATURE: bool = Field(True, alias="DAM_WEBHOOK_VERIFY_SIGNATURE")
    DAM_WEBHOOK_SECRET: Optional[str] = Field(None, alias="DAM_WEBHOOK_SECRET")           # fallback when the shop has none
    PUBLIC_BASE_URL: Optional[str] = Field(None, alias="PUBLIC_BASE_URL")                 # used to build the DAM callback URL


    # ========= Shopify API Config =========
    SHOPIFY_SHOP: Optional[str] = Field(None, alias="SHOPIFY_SHOP")
    SHOPIFY_ADMIN_TOKEN: Optional[SecretStr] = Field(None, alias="SHOPIFY_ADMIN_TOKEN")
    SHOPIFY_API_VERSION: str = Field("2025-07", alias="SHOPIFY_API_VERSION")
    SHOPIFY_HTTP_TIMEOUT: int = Field(30, alias="SHOPIFY_HTTP_TIMEOUT")
    SHOPIFY_HTTP_RETRIES: int = Field(3, alias="SHOPIFY_HTTP_RETRIES")
    SHOPIFY_HTTP_BACKOFF_MS: int = Field(200, alias="SHOPIFY_HTTP_BACKOFF_MS")
    SHOPIFY_UPLOAD_TIMEOUT: int = Field(180, alias="SHOPIFY_UPLOAD_TIMEOUT")


    # ========= sync engine =========
    SYNC_DEFAULT_TAGS: str = Field("shopify-sync", alias="SYNC_DEFAULT_TAGS")
    SYNC_PAGE_SIZE: int = Field(50, ge=1, le=1000, alias="SYNC_PAGE_SIZE")
    SYNC_MAX_CONCURRENCY: int = Field(4, ge=1, le=32, alias="SYNC_MAX_CONCURRENCY")
    SYNC_PAGE_RATE_LIMIT_RETRIES: int = Field(5, ge=1, alias="SYNC_PAGE_RATE_LIMIT_RETRIES")
    SYNC_JOB_STALE_MINUTES: int = Field(120, ge=1, alias="SYNC_JOB_STALE_MINUTES")
    AUTO_SYNC_INTERVAL_MINUTES: int = Field(60, ge=5, alias="AUTO_SYNC_INTERVAL_MINUTES")
    RETRY_LOOKBACK_JOBS: int = Field(10, ge=1, alias="RETRY_LOOKBACK_JOBS")


    # ========= metrics / alerts =========
    METRICS_ENABLED: bool = Field(True, alias="METRICS_ENABLED")
    METRICS_RETENTION_DAYS: int = Field(30, ge=1, alias="METRICS_RETENTION_DAYS")
    ALERT_ERROR_RATE_PERCENT: float = Field(10.0, alias="ALERT_ERROR_RATE_PERCENT")
    ALERT_MIN_ASSETS_PER_SECOND: float = Field(1.0, alias="ALERT_MIN_ASSETS_PER_SECOND")
    ALERT_RATE_LIMIT_HITS: int = Field(5, alias="ALERT_RATE_LIMIT_HITS")


    @property
    def default_sync_tags(self) -> list[str]:
        return split_csv(self.SYNC_DEFAULT_TAGS)


settings = Settings()  # env only (including .env)
