"""Configuration settings for IFRS Explorer."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ifrs_explorer.db")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "5"))

    # JWT
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", "1440"))

    # Passwords
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    RESET_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60"))
    EXPOSE_RESET_TOKEN: bool = os.getenv("EXPOSE_RESET_TOKEN", "false").lower() == "true"

    # Database explorer
    EXPLORER_EXCLUDED_COLUMNS: list[str] = _csv(os.getenv("EXPLORER_EXCLUDED_COLUMNS", "account type,account typeDesc"))
    EXPLORER_EXCLUDED_SCHEMAS: list[str] = _csv(
        os.getenv("EXPLORER_EXCLUDED_SCHEMAS", "information_schema,sys,pg_catalog,pg_toast")
    )

    # Application
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")
    APP_ENV: str = os.getenv("APP_ENV", "production")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    def __init__(self) -> None:
        if not self.JWT_SECRET_KEY:
            self._generated_secret = True
            self.JWT_SECRET_KEY = secrets.token_urlsafe(32)
        else:
            self._generated_secret = False

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if self._generated_secret:
            errors.append("JWT_SECRET_KEY is not set - using auto-generated key (not persistent across restarts)")
        if self.EXPOSE_RESET_TOKEN and not self.is_development:
            errors.append("EXPOSE_RESET_TOKEN is enabled outside development - reset tokens are returned to clients")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
