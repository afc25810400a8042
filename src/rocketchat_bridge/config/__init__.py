"""Configuration loading and validation."""

from .accounts import (
    CHANNEL_ID,
    DEFAULT_ACCOUNT_ID,
    is_configured,
    list_account_ids,
    resolve_account,
)
from .loader import ConfigError, load_config
from .schema import (
    AppConfig,
    FileLoggingConfig,
    LoggingConfig,
    RocketChatAccount,
)

__all__ = [
    # Loader
    "ConfigError",
    "load_config",
    # Root config
    "AppConfig",
    "FileLoggingConfig",
    "LoggingConfig",
    "RocketChatAccount",
    # Account lookup
    "CHANNEL_ID",
    "DEFAULT_ACCOUNT_ID",
    "is_configured",
    "list_account_ids",
    "resolve_account",
]
