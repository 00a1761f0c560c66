from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-only-secret-change-me-please-32b"
DEV_ENVIRONMENTS = ("dev", "test")


class Settings(BaseSettings):
    # App
    app_env: str = "dev"
    log_level: str = "INFO"

    # Postgres / Redis / SMS gateway
    database_url: str = "postgresql://app:app@db:5432/app"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    redis_url: str = "redis://redis:6379/0"
    sms_base_url: str = "http://sms-mock:8026"
    http_timeout_seconds: float = 10.0

    # Credentials and tokens
    bcrypt_rounds: int = 12
    jwt_secret_key: str = DEV_JWT_SECRET
    jwt_issuer: str = "authcore"
    jwt_audience: str = "authcore-clients"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_minutes: int = 1440
    otp_code_ttl_seconds: int = 300
    otp_max_misses: int = 5

    # Worker
    outbox_poll_interval_ms: int = 500
    token_purge_interval_seconds: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _real_secret_outside_dev(self) -> "Settings":
        if self.app_env not in DEV_ENVIRONMENTS and self.jwt_secret_key == DEV_JWT_SECRET:
            raise ValueError(f"JWT_SECRET_KEY must be set when APP_ENV={self.app_env}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
