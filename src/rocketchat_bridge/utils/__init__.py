"""Utility functions and helpers.

This module provides various utilities for the bridge:
- security: Secret redaction, filename sanitization
- async_helpers: Retry decorator, cancellation token
- logging: Structured logging with secret sanitization
- health: Health check utilities
"""

from rocketchat_bridge.utils.async_helpers import (
    BridgeError,
    CancellationToken,
    api_retry,
    create_retry,
    sleep_unless_cancelled,
)
from rocketchat_bridge.utils.health import (
    CheckResult,
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from rocketchat_bridge.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    register_secrets,
)
from rocketchat_bridge.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Async
    "BridgeError",
    "CancellationToken",
    # Health
    "CheckResult",
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "api_retry",
    "bind_context",
    "clear_context",
    "configure_logging",
    "create_retry",
    "get_logger",
    "register_secrets",
    "sleep_unless_cancelled",
]
