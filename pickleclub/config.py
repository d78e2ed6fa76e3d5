from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_DB_URL: str
    SUPABASE_JWKS_URL: str | None = None

    # Redis settings
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None
    PROFILE_CACHE_TTL_SECONDS: int = 300

    # Payments backend (fronts Stripe)
    PAYMENTS_API_URL: str = "https://www.thepickleco.mx"
    PAYMENTS_CURRENCY: str = "mxn"
    MERCHANT_DISPLAY_NAME: str = "The Pickle Co"
    DEFAULT_LOCATION_ID: int = 5  # Polanco
    APP_RETURN_URL: str = "picklemobile://payment-success"

    # Push delivery
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: str | None = None

    # Reminder job
    CLUB_TIMEZONE: str = "America/Mexico_City"
    REMINDER_JOB_INTERVAL_MINUTES: int = 60

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def jwks_url(self) -> str:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def auth_url(self) -> str:
        """GoTrue base URL, e.g. https://<ref>.supabase.co/auth/v1"""
        return f"{self.SUPABASE_URL.rstrip('/')}/auth/v1"

    def payment_return_url(self) -> str:
        """Fallback return URL sent with card-only intents."""
        return f"{self.PAYMENTS_API_URL.rstrip('/')}/payment-success"

    def redis_url(self) -> str | None:
        """
        Native Redis URL for Upstash, built from the REST URL + token.
        Returns None when Redis is not configured (profile cache disabled).
        """
        if not self.UPSTASH_REDIS_REST_URL or not self.UPSTASH_REDIS_REST_TOKEN:
            return None
        host = self.UPSTASH_REDIS_REST_URL.split("://", 1)[-1].strip("/")
        return f"rediss://default:{self.UPSTASH_REDIS_REST_TOKEN}@{host}:6379"

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        The reminder worker and the API share these values.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config


settings = Settings()
