from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_env: str = "dev"
    log_level: str = "INFO"

    # Infra
    database_url: str = "postgresql://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"
    sms_base_url: str = "http://sms-mock:8026"
    dependency_timeout_seconds: float = 2.0
    dependency_retry_attempts: int = 3
    dependency_retry_base_seconds: float = 0.05

    # Tokens
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "authcore"
    access_token_ttl_seconds: int = 15 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 3600
    remember_me_ttl_seconds: int = 30 * 24 * 3600

    # Security / policies
    bcrypt_rounds: int = 12
    login_max_failures: int = 5
    login_lockout_seconds: int = 15 * 60
    otp_max_failures: int = 3
    otp_lockout_seconds: int = 30 * 60
    otp_validity_seconds: int = 10 * 60
    totp_issuer: str = "Testimony"

    # Worker
    revocation_purge_interval_seconds: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def secure_cookies(self) -> bool:
        return self.app_env not in ("dev", "test")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
