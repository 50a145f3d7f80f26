# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    # -------------------------------------------------------------------------
    # Auth0 Configuration
    # -------------------------------------------------------------------------

    AUTH0_DOMAIN: str = Field(
        ...,
        description="Auth0 tenant domain (e.g., tenant.us.auth0.com)"
    )

    AUTH0_AUDIENCE: str = Field(
        ...,
        description="Identifier of this API in Auth0"
    )

    AUTH0_ROLES_CLAIM: str = Field(
        default="https://marketplace/roles",
        description="Namespaced custom claim carrying the user's roles"
    )

    AUTH0_USER_ID_CLAIM: str = Field(
        default="https://marketplace/user_id",
        description="Custom claim with the marketplace id (consultant/store/customer row); falls back to sub"
    )

    # -------------------------------------------------------------------------
    # Stripe Configuration
    # -------------------------------------------------------------------------

    STRIPE_SECRET_KEY: str = Field(
        ...,
        description="Stripe secret API key"
    )

    STRIPE_WEBHOOK_SECRET: str = Field(
        ...,
        description="Signing secret for the Stripe webhook endpoint"
    )

    STRIPE_CURRENCY: str = Field(
        default="brl",
        min_length=3,
        max_length=3,
        description="Currency for payment intents and transfers"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (Celery broker + verification codes)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    # -------------------------------------------------------------------------
    # Score Engine
    # -------------------------------------------------------------------------

    SCORE_TTL_HOURS: int = Field(
        default=24,
        ge=1,
        description="A stored score older than this is recomputed on read"
    )

    SCORE_BATCH_SIZE: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Consultants recalculated per batch in the nightly job"
    )

    SCORE_BATCH_PAUSE_SECONDS: float = Field(
        default=0.1,
        ge=0.0,
        description="Pause between recalculation batches"
    )

    SCORE_RECALC_HOUR: int = Field(
        default=3,
        ge=0,
        le=23,
        description="Local hour for the nightly score recalculation"
    )

    SCORE_RECALC_TIMEZONE: str = Field(
        default="America/Sao_Paulo",
        description="Timezone of the nightly score recalculation"
    )

    # -------------------------------------------------------------------------
    # Commission / Settlement
    # -------------------------------------------------------------------------

    DEFAULT_COMMISSION_RATE: float = Field(
        default=10.0,
        ge=0.0,
        le=100.0,
        description="Commission percent used when neither product nor store sets one"
    )

    MIN_TRANSFER_AMOUNT: int = Field(
        default=50,
        ge=0,
        description="Transfers at or below this many minor units are retained"
    )

    # -------------------------------------------------------------------------
    # Verification Codes
    # -------------------------------------------------------------------------

    VERIFICATION_CODE_TTL_SECONDS: int = Field(
        default=15 * 60,
        ge=60,
        description="Lifetime of a pending email/phone verification code pair"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Network timeout for outbound calls (JWKS, Stripe)"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def auth0_issuer(self) -> str:
        """Issuer URL expected in Auth0 access tokens."""
        return f"https://{self.AUTH0_DOMAIN.rstrip('/')}/"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
