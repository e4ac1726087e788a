# storefront/core/config.py
from decimal import Decimal
from functools import lru_cache

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required in production (.env):
      - DATABASE_URL (Postgres connection string)
      - JWT_SECRET / JWT_REFRESH_SECRET (token signing secrets)

    Everything else has a sensible default for local development.
    """

    PROJECT_NAME: str = "Storefront API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./storefront.db"
    DATABASE_ECHO: bool = False
    DATABASE_SSL_REQUIRE: bool = False

    # JWT signing / verification
    JWT_SECRET: str = "change-me"
    JWT_REFRESH_SECRET: str | None = None
    JWT_ALG: str = "HS256"
    JWT_ISSUER: str = "storefront-api"
    JWT_AUDIENCE: str = "storefront-client"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Credentials
    BCRYPT_ROUNDS: int = 12
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 120
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10
    # Email delivery is not wired up; expose the reset token in the
    # forgot-password response for local development only.
    EXPOSE_RESET_TOKEN: bool = False

    # Pricing policy
    TAX_RATE: Decimal = Decimal("0.10")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("100")
    SHIPPING_FLAT_RATE: Decimal = Decimal("10")
    CURRENCY: str = "USD"

    # Cart lifecycle
    GUEST_CART_TTL_DAYS: int = 7
    USER_CART_TTL_DAYS: int = 30
    CART_ABANDON_AFTER_HOURS: int = 24

    FRONTEND_URL: str = "http://localhost:4200"
    CORS_ORIGINS: list[str] = [
        "http://localhost:4200",
        "http://127.0.0.1:4200",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def refresh_secret(self) -> str:
        return self.JWT_REFRESH_SECRET or self.JWT_SECRET


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()


def get_app_settings(request: Request) -> Settings:
    """
    FastAPI dependency returning the Settings the running app was built with.

    The app factory stores them on ``app.state.settings``; tests build apps
    with their own Settings instead of the cached environment ones.
    """
    return request.app.state.settings
