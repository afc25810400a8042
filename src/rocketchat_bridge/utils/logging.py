"""Structured logging configuration with secret sanitization.

This module configures structlog for the bridge:
- Configurable log levels and output formats (JSON/console)
- Automatic secret sanitization in log output
- Context injection (service name, version, bound account ids)
- Optional file output
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

import structlog
from structlog.typing import WrappedLogger

from rocketchat_bridge.utils.security import SecretRedactor


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_redactor: SecretRedactor | None = None


def _get_redactor() -> SecretRedactor:
    """Get or create the global secret redactor."""
    global _redactor
    if _redactor is None:
        _redactor = SecretRedactor(placeholder="[REDACTED]")
    return _redactor


def register_secrets(secrets: Sequence[str]) -> None:
    """Redact these exact values (e.g. configured auth tokens) from all logs."""
    global _redactor
    _redactor = SecretRedactor(placeholder="[REDACTED]", literals=[s for s in secrets if s])


def sanitize_log_value(value: Any) -> Any:
    """Recursively sanitize secrets from log values.

    Args:
        value: Value to sanitize (can be nested dict/list/str)

    Returns:
        Sanitized value with secrets redacted
    """
    redactor = _get_redactor()

    if isinstance(value, str):
        return redactor.redact(value)
    elif isinstance(value, dict):
        return {k: sanitize_log_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v) for v in value)
    else:
        return value


def secret_sanitizer(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor to sanitize secrets from log entries."""
    result = sanitize_log_value(event_dict)
    return cast(MutableMapping[str, Any], result)


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add the service name and version to all log entries."""
    event_dict["service"] = "rocketchat-bridge"

    try:
        from rocketchat_bridge._version import __version__

        event_dict["version"] = __version__
    except (ImportError, RuntimeError):
        pass

    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        configure_logging(level="DEBUG", log_format="console")
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    numeric_level = getattr(logging, level.value)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.plain_traceback
            )
        )

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    if file_enabled and file_path:
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(file_path)
            file_handler.setLevel(numeric_level)
            handlers.append(file_handler)
        except OSError as e:
            # Continue with console only
            console_logger = logging.getLogger("rocketchat_bridge.logging")
            console_logger.warning(f"Could not create log file {file_path}: {e}")

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str | None = None, **initial_values: Any) -> WrappedLogger:
    """Get a structured logger instance, optionally with bound values.

    Args:
        name: Logger name
        **initial_values: Key-value pairs bound to every entry

    Returns:
        Configured structlog logger
    """
    return cast(WrappedLogger, structlog.get_logger(name, **initial_values))


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables for all subsequent log calls."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class LogEventNames:
    """Standard log event names.

    Alerting and tests match on these, keep them stable.
    """

    # Monitor lifecycle
    MONITOR_STARTED = "monitor_started"
    MONITOR_STOPPED = "monitor_stopped"
    CHANNEL_RESOLUTION_FAILED = "channel_resolution_failed"
    ACCOUNT_NOT_FOUND = "account_not_found"

    # Polling
    POLL_FAILED = "poll_failed"
    THREAD_POLL_FAILED = "thread_poll_failed"
    THREAD_TRACKED = "thread_tracked"
    THREADS_PRUNED = "threads_pruned"
    MESSAGE_SKIPPED = "message_skipped"

    # Dispatch
    MESSAGE_DISPATCHING = "message_dispatching"
    MESSAGE_COMPLETED = "message_completed"
    NO_REPLY_DELIVERED = "no_reply_delivered"
    REPLY_DELIVERY_FAILED = "reply_delivery_failed"
    DISPATCH_FAILED = "dispatch_failed"
    THREAD_CONTEXT_FAILED = "thread_context_failed"
    THREAD_STARTER_FAILED = "thread_starter_failed"
    ATTACHMENT_DOWNLOAD_FAILED = "attachment_download_failed"

    # Reactions
    REACTION_FAILED = "reaction_failed"
