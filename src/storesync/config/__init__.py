"""Application configuration helpers."""

from __future__ import annotations

from storesync.common.logging import configure_logging

from .env import require_env_vars
from .errors import ConfigurationError, ConfigurationFileError, MissingConfigurationError
from .http_resilience import (
    AdaptiveDelayPolicy,
    ConcurrencyPolicy,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
)
from .platform import PlatformConfig, get_platform_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "AdaptiveDelayPolicy",
    "ConcurrencyPolicy",
    "ConfigurationError",
    "ConfigurationFileError",
    "MissingConfigurationError",
    "PlatformConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SyncConfig",
    "configure_logging",
    "get_platform_config",
    "get_sync_config",
    "require_env_vars",
]
