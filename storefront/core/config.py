"""
Storefront — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "storefront"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # ── PostgreSQL ────────────────────────────────────────────
    POSTGRES_HOST: str = "storefront-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "storefront_db"
    POSTGRES_USER: str = "storefront_user"
    POSTGRES_PASSWORD: str = "storefront_pass"
    DATABASE_URL: str = ""  # overrides the Postgres DSN when set (tests, local sqlite)

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def sync_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL.replace("+asyncpg", "").replace("+aiosqlite", "")
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis ─────────────────────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def celery_broker_url(self) -> str:
        return self.redis_url

    @property
    def celery_result_backend(self) -> str:
        return self.redis_url

    # ── JWT / Session ─────────────────────────────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    SESSION_COOKIE_NAME: str = "sf_session"
    SESSION_COOKIE_SECURE: bool = False

    # ── OAuth provider ────────────────────────────────────────
    OAUTH_PROVIDER_NAME: str = "kakao"
    OAUTH_CLIENT_ID: str = ""
    OAUTH_CLIENT_SECRET: str = ""
    OAUTH_AUTHORIZE_URL: str = "https://kauth.kakao.com/oauth/authorize"
    OAUTH_TOKEN_URL: str = "https://kauth.kakao.com/oauth/token"
    OAUTH_USERINFO_URL: str = "https://kapi.kakao.com/v2/user/me"

    # ── Checkout ──────────────────────────────────────────────
    DRAFT_TTL_SECONDS: int = 1800
    DRAFT_COOKIE_NAME: str = "sf_checkout"
    IDEMPOTENCY_KEY_TTL_SECONDS: int = 86400
    ORDERS_PAGE_SIZE: int = 20
    STORE_TIMEZONE: str = "Asia/Seoul"  # "today" on the owner dashboard

    # ── Outbound webhooks ─────────────────────────────────────
    WEBHOOK_URL_ORDER_CREATED: str = ""
    WEBHOOK_SECRET_ORDER_CREATED: str = ""
    WEBHOOK_URL_ORDER_ACCEPTED: str = ""
    WEBHOOK_SECRET_ORDER_ACCEPTED: str = ""
    WEBHOOK_MAX_RETRIES: int = 5
    WEBHOOK_RETRY_DELAY_SECONDS: int = 10
    HTTP_TIMEOUT_SECONDS: float = 5.0

    # ── Realtime ──────────────────────────────────────────────
    SSE_KEEPALIVE_INTERVAL_SECONDS: int = 15
    SSE_RETRY_MILLISECONDS: int = 3000
    NOTIFICATION_TOAST_SECONDS: int = 10

    # ── Object storage ────────────────────────────────────────
    S3_ENDPOINT: str = "minio:9000"
    S3_ACCESS_KEY: str = "minioadmin"
    S3_SECRET_KEY: str = "minioadmin"
    S3_SECURE: bool = False
    MENU_IMAGE_BUCKET: str = "menu-images"
    STORE_IMAGE_BUCKET: str = "store-images"
    UPLOAD_MAX_BYTES: int = 5 * 1024 * 1024

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
