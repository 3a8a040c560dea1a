from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.common.errors import ConfigurationError


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "test", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "tokens"

    # Public base URL used to build checkout redirect URLs (e.g. https://app.influencerhub.io)
    PUBLIC_BASE_URL: str

    # Database
    # DATABASE_URL is the service tier (elevated credential, used for every
    # mutation). DATABASE_READ_URL is the restricted tier used for
    # client-initiated reads; it falls back to DATABASE_URL when unset.
    DATABASE_URL: str
    DATABASE_READ_URL: Optional[str] = None
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Identity provider
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = None
    AUTH_JWT_ISSUER: Optional[str] = None

    # Stripe
    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str
    STRIPE_CURRENCY: str = "usd"

    # Rate limiting
    REDIS_URL: str = "memory://"
    RATE_LIMIT_ENABLED: bool = True
    CHECKOUT_RATE_LIMIT: str = "10/minute"

    # Campaigns
    CAMPAIGN_CREATION_COST: int = 0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL", "DATABASE_READ_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
            if v.startswith("postgres://"):
                return v.replace("postgres://", "postgresql+psycopg://", 1)
        return v

    @field_validator("PUBLIC_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("CAMPAIGN_CREATION_COST")
    @classmethod
    def non_negative_cost(cls, v: int) -> int:
        if v < 0:
            raise ValueError("CAMPAIGN_CREATION_COST must be >= 0")
        return v

    @property
    def read_database_url(self) -> str:
        return self.DATABASE_READ_URL or self.DATABASE_URL


def load_settings(**overrides: Any) -> Settings:
    """Build a fresh Settings instance, failing fast on missing configuration.

    Raises ConfigurationError listing every missing or invalid variable.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        missing = []
        invalid = []
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"]) or "<settings>"
            if error["type"] == "missing":
                missing.append(name)
            else:
                invalid.append(f"{name} ({error['msg']})")
        parts = []
        if missing:
            parts.append("missing required settings: " + ", ".join(missing))
        if invalid:
            parts.append("invalid settings: " + ", ".join(invalid))
        raise ConfigurationError("Configuration error: " + "; ".join(parts)) from exc


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return load_settings()
