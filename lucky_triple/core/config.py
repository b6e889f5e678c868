"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- DATABASE_URL
- JWT_SECRET
- PAYLOQA_API_KEY / PAYLOQA_PLATFORM_ID (SMS delivery is skipped without them)
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "dev-only-lucky-triple-secret"


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Lucky Triple API"
    APP_VERSION: str = "1.0.0"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    BACKEND_URL: str = "http://localhost:5000"

    # Database - SQLite file for local development, PostgreSQL in production
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./lucky_triple.db")

    # Session tokens
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_DAYS: int = 7

    # Accounts provisioned with the admin role at signup (comma-separated)
    ADMIN_EMAILS_STR: str = ""

    # Payloqa messaging provider
    PAYLOQA_API_KEY: str = ""
    PAYLOQA_PLATFORM_ID: str = ""
    PAYLOQA_SMS_BASE_URL: str = "https://sms.payloqa.com/api/v1"
    PAYLOQA_SENDER_ID: str = "LuckyTriple"
    SMS_TIMEOUT_SECONDS: float = 10.0
    SMS_BULK_DELAY_SECONDS: float = 0.1  # Delay between bulk sends to avoid provider rate limits

    # Notification outbox
    NOTIFICATION_DISPATCH_INTERVAL_SECONDS: int = 5
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_BATCH_SIZE: int = 50
    NOTIFICATION_CLAIM_SECONDS: int = 120  # A crashed dispatcher's claim expires after this

    # Inbound payment callbacks (signature check is skipped when empty)
    PAYMENT_WEBHOOK_SECRET: str = ""

    CURRENCY: str = "GHS"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE: str = "memory"  # "memory" or "redis"
    REDIS_URL: Optional[str] = None  # Required if using Redis storage

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins with environment-aware defaults."""
        if self.CORS_ORIGINS_STR:
            origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
            if origins:
                if self.is_production() and "*" in origins:
                    logger.warning(
                        "Wildcard CORS origins (*) are not allowed in production. "
                        "Please set explicit origins in CORS_ORIGINS_STR environment variable."
                    )
                    return []
                return origins

        if self.is_production():
            logger.warning(
                "CORS_ORIGINS_STR not set in production. "
                "Please set CORS_ORIGINS_STR environment variable with explicit origins."
            )
            return []

        return [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]

    @property
    def ADMIN_EMAILS(self) -> set[str]:
        """Lower-cased set of emails that receive the admin role at signup."""
        return {e.strip().lower() for e in self.ADMIN_EMAILS_STR.split(",") if e.strip()}

    @property
    def sms_enabled(self) -> bool:
        """SMS delivery needs both provider credentials."""
        return bool(self.PAYLOQA_API_KEY and self.PAYLOQA_PLATFORM_ID)

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if self.is_production():
            if not os.getenv("DATABASE_URL"):
                missing.append("DATABASE_URL")
            if not self.JWT_SECRET or self.JWT_SECRET == DEV_JWT_SECRET:
                missing.append("JWT_SECRET")

        # Redis URL is required if using Redis rate limiting
        if self.RATE_LIMIT_ENABLED and self.RATE_LIMIT_STORAGE == "redis" and not self.REDIS_URL:
            missing.append("REDIS_URL")

        return missing


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
    return default_env


_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = ConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()

# Validate secrets on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required secrets for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing secrets: {', '.join(missing_secrets)}. "
            f"Please set these environment variables in .env.production"
        )
