"""
Sync Runner Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from recruit_sync.services.sources import vincere_api_base

load_dotenv()

logger = logging.getLogger(__name__)


class RunnerSettings(BaseSettings):
    """
    Sync runner configuration with validation.

    All settings can be overridden via environment variables (upper-cased
    field names, e.g. VINCERE_TENANT_API_BASE).
    """

    # === Security ===
    runner_api_secret: Optional[str] = Field(
        default=None,
        min_length=16,
        description="API authentication secret (min 16 chars for security)"
    )
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins"
    )

    # === Logging ===
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="simple", description="simple or json")

    # === Vincere (record source) ===
    vincere_id_base: str = Field(default="", description="Vincere identity base URL (token endpoint)")
    vincere_tenant_api_base: str = Field(default="", description="Vincere tenant API base URL")
    vincere_client_id: str = Field(default="", description="Vincere OAuth client id")
    vincere_api_key: str = Field(default="", description="Vincere x-api-key")

    # === ActiveCampaign (destination) ===
    ac_base_url: str = Field(default="", description="ActiveCampaign account URL")
    ac_api_token: str = Field(default="", description="ActiveCampaign API token")
    ac_sender_url: str = Field(default="", description="Sender URL used when creating lists")
    ac_sender_reminder: str = Field(
        default="You are receiving this email because you opted in.",
        description="Sender reminder used when creating lists"
    )

    # === Redis (Optional) ===
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (optional; in-process stores when unset)"
    )
    refresh_token_ttl_days: int = Field(default=45, ge=1, le=365)

    # === Import limits ===
    max_concurrent_imports: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Maximum concurrently running import jobs (1-20)"
    )
    default_chunk_size: int = Field(default=250, ge=1, le=250)
    default_pause_ms: int = Field(default=250, ge=0, le=60000)
    default_max_records: int = Field(default=100_000, ge=1)
    max_slices: int = Field(
        default=400,
        ge=1,
        le=10000,
        description="Hard ceiling on pages fetched per job"
    )
    talent_pool_rows: int = Field(default=200, ge=1, le=500)
    payload_byte_limit: int = Field(default=350_000, ge=10_000)
    progress_interval_seconds: float = Field(default=1.0, gt=0, le=60)
    http_timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    job_retention_seconds: int = Field(
        default=3600,
        ge=60,
        description="Finished jobs older than this are purged from the in-process store"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("runner_api_secret")
    @classmethod
    def validate_secret_strength(cls, v: Optional[str]) -> Optional[str]:
        """Validate API secret has minimum entropy."""
        if v is None:
            return None
        weak_secrets = {"secret", "password", "12345678901234567", "changeme"}
        if v.lower() in weak_secrets or len(set(v)) < 4:
            raise ValueError("API secret is too weak - use a secure random string")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in {"simple", "json"}:
            raise ValueError("log_format must be 'simple' or 'json'")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def auth_required(self) -> bool:
        """Auth required in production OR if a secret is configured."""
        return self.is_production or self.runner_api_secret is not None

    @property
    def vincere_api_base(self) -> str:
        """Tenant base normalised to end in /api/vN."""
        return vincere_api_base(self.vincere_tenant_api_base)

    def missing_vincere_settings(self) -> List[str]:
        required = {
            "VINCERE_ID_BASE": self.vincere_id_base,
            "VINCERE_TENANT_API_BASE": self.vincere_tenant_api_base,
            "VINCERE_CLIENT_ID": self.vincere_client_id,
            "VINCERE_API_KEY": self.vincere_api_key,
        }
        return [name for name, value in required.items() if not value]

    def missing_activecampaign_settings(self) -> List[str]:
        required = {"AC_BASE_URL": self.ac_base_url, "AC_API_TOKEN": self.ac_api_token}
        return [name for name, value in required.items() if not value]

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning/error messages.
        """
        issues = []

        if self.is_production and not self.runner_api_secret:
            issues.append("CRITICAL: RUNNER_API_SECRET required in production")
        if self.is_production and not self.cors_origins:
            issues.append("WARNING: CORS_ORIGINS not configured")

        missing = self.missing_vincere_settings() + self.missing_activecampaign_settings()
        if missing:
            issues.append(f"WARNING: Missing env vars: {', '.join(missing)}")

        return issues

    class Config:
        env_prefix = ""  # No prefix, use exact env var names
        case_sensitive = False  # VINCERE_API_KEY = vincere_api_key


@lru_cache()
def get_settings() -> RunnerSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    """
    return RunnerSettings()


def validate_config_on_startup() -> None:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs warnings for non-critical issues.
    """
    try:
        settings = get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    for issue in settings.validate_production_config():
        if issue.startswith("CRITICAL"):
            raise ValueError(issue)
        logger.warning(issue)

    logger.info(f"Configuration loaded: environment={settings.environment}")
    logger.info(f"  max_concurrent_imports={settings.max_concurrent_imports}")
    logger.info(f"  max_slices={settings.max_slices}")
    logger.info(f"  redis={'configured' if settings.redis_url else 'disabled (in-process stores)'}")
    logger.info(f"  auth_required={settings.auth_required}")


# Convenience exports
settings = get_settings()
