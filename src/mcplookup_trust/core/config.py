# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Core configuration - centralized config for the trust engine.

All environment-based configuration flows through this module.

Usage:
    from mcplookup_trust.core.config import get_config
    config = get_config()

    resolvers = config.resolver_list
    log_level = config.log_level
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException

# Public resolvers queried for challenge consensus
DEFAULT_DNS_RESOLVERS = "1.1.1.1,8.8.8.8,9.9.9.9"

# A strict majority is meaningless below this many independent resolvers
MIN_DNS_RESOLVERS = 3


class TrustSettings(BaseSettings):
    """Configuration settings for the trust engine.

    Settings can be configured via MCPLOOKUP_ environment variables
    or a .env file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # DNS SETTINGS
    # ==========================================================================

    dns_resolvers: str = Field(
        default=DEFAULT_DNS_RESOLVERS,
        description="Comma-separated list of public resolver IPs used for consensus",
        validation_alias="MCPLOOKUP_DNS_RESOLVERS",
    )
    dns_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Per-resolver TXT query timeout",
        validation_alias="MCPLOOKUP_DNS_TIMEOUT",
    )

    # ==========================================================================
    # HTTP SETTINGS
    # ==========================================================================

    http_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for .well-known and endpoint probes",
        validation_alias="MCPLOOKUP_HTTP_TIMEOUT",
    )
    user_agent: str = Field(
        default="MCPLookup-TrustEngine/1.0",
        description="User-Agent header sent on outbound requests",
        validation_alias="MCPLOOKUP_USER_AGENT",
    )

    # ==========================================================================
    # CHALLENGE SETTINGS
    # ==========================================================================

    challenge_ttl_hours: int = Field(
        default=24,
        gt=0,
        description="Lifetime of an ownership challenge (no sliding extension)",
        validation_alias="MCPLOOKUP_CHALLENGE_TTL_HOURS",
    )

    # ==========================================================================
    # STORAGE SETTINGS
    # ==========================================================================

    storage_backend: str = Field(
        default="memory",
        description="Storage backend: 'memory' or 'redis'",
        validation_alias="MCPLOOKUP_STORAGE",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for the redis storage backend",
        validation_alias="MCPLOOKUP_REDIS_URL",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="MCPLOOKUP_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="MCPLOOKUP_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="MCPLOOKUP_LOG_FILE",
    )

    @field_validator("dns_resolvers")
    @classmethod
    def _check_resolver_count(cls, value: str) -> str:
        resolvers = [r.strip() for r in value.split(",") if r.strip()]
        if len(resolvers) < MIN_DNS_RESOLVERS:
            raise ValueError(f"At least {MIN_DNS_RESOLVERS} DNS resolvers are required, got {len(resolvers)}")
        return value

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def resolver_list(self) -> list[str]:
        """Configured resolver IPs, in order."""
        return [r.strip() for r in self.dns_resolvers.split(",") if r.strip()]


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: TrustSettings | None = None


def get_config() -> TrustSettings:
    """Get the global configuration instance.

    Raises:
        ConfigException: If an environment value fails validation.
    """
    global _config
    if _config is None:
        try:
            _config = TrustSettings()
        except ValidationError as e:
            errors = e.errors()
            bad_vars = [str(err["loc"][0]) for err in errors if err.get("loc")]
            problems = "; ".join(f"{'.'.join(map(str, err.get('loc', ())))}: {err['msg']}" for err in errors)
            raise ConfigException(f"Invalid configuration: {problems}", missing_vars=bad_vars) from e
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
