"""Core - configuration, logging, errors and outbound network safety."""

from .config import TrustSettings, clear_config_cache, get_config
from .exceptions import (
    ConfigException,
    NotFoundError,
    RegistryAnomalyError,
    StorageException,
    TrustEngineException,
    UnsafeTargetError,
    ValidationException,
)
from .logging import configure_logging, correlation_context, get_correlation_id
from .net_safety import ensure_public_host, is_private_ip, normalize_domain

__all__ = [
    # Config
    "TrustSettings",
    "get_config",
    "clear_config_cache",
    # Exceptions
    "TrustEngineException",
    "StorageException",
    "ValidationException",
    "UnsafeTargetError",
    "ConfigException",
    "NotFoundError",
    "RegistryAnomalyError",
    # Logging
    "configure_logging",
    "correlation_context",
    "get_correlation_id",
    # Network safety
    "ensure_public_host",
    "is_private_ip",
    "normalize_domain",
]
