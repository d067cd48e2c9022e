"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationValue, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryablePayloadError, RetryPolicy
from .logging import configure_logging
from .resolution import (
    OutboxConfig,
    PlatformKind,
    ResolutionConfig,
    get_outbox_config,
    get_platform_kind,
    get_resolution_config,
)
from .shopify import ShopifyConfig, get_shopify_config
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationValue",
    "MissingConfigurationError",
    "OutboxConfig",
    "PlatformKind",
    "RateLimit",
    "ResilienceConfig",
    "ResolutionConfig",
    "RetryablePayloadError",
    "RetryPolicy",
    "ShopifyConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_outbox_config",
    "get_platform_kind",
    "get_resolution_config",
    "get_shopify_config",
    "get_storage_config",
    "require_env_var",
    "require_env_vars",
]
