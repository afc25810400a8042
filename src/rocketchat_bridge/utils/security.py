"""Secret redaction and input sanitization.

Rocket.Chat credentials (auth tokens, user ids in headers) and anything
token-shaped must never reach log output. Redaction fails closed: if a
pattern cannot be applied, an error is raised instead of returning the
unredacted text.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


# Characters never allowed in a filename written under the attachment dir
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\- ]")

MAX_FILENAME_LENGTH = 128


class SecretRedactor:
    """Detects and redacts secrets from text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        # Header and key/value forms carrying Rocket.Chat credentials
        (r"(?i)x-auth-token[\"']?\s*[=:]\s*[\"']?[\w\-.~+/=]{8,}", "Rocket.Chat auth header"),
        (r"(?i)(auth[_-]?token|authToken)[\"']?\s*[=:]\s*[\"']?[\w\-.~+/=]{8,}", "Auth token"),
        # Generic patterns
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        (r"(?i)bearer\s+[\w\-.~+/]{16,}=*", "Bearer token"),
        # Credentials embedded in URLs
        (r"(?i)(https?)://[^:/\s]+:[^@/\s]+@[^\s]+", "URL with credentials"),
        # JWT tokens
        (r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*", "JWT token"),
        # Private keys
        (r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----", "Private key header"),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
        literals: Sequence[str] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.
            literals: Exact secret values to redact (e.g. configured tokens).

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)
        for literal in literals or ():
            if literal:
                all_patterns.append((re.escape(literal), "Configured secret"))

        try:
            for pattern_str, name in all_patterns:
                self._pattern_names[re.compile(pattern_str)] = name
        except re.error as e:
            log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
            raise RedactionError(f"Failed to compile secret pattern '{pattern_str}': {e}") from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names.keys())

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            raise RedactionError(f"Redaction failed: {e}") from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False
        return any(pattern.search(text) for pattern in self._pattern_names)


def sanitize_filename(name: str, fallback: str = "attachment") -> str:
    """Reduce an uploaded file's name to a safe single path component.

    Directory parts are dropped, unsafe characters replaced with ``_`` and
    the result is capped in length while keeping the extension.
    """
    base = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    base = _UNSAFE_FILENAME_CHARS.sub("_", base).lstrip(".")
    if not base:
        return fallback

    if len(base) > MAX_FILENAME_LENGTH:
        stem, dot, ext = base.rpartition(".")
        if dot and len(ext) < 16:
            base = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            base = base[:MAX_FILENAME_LENGTH]
    return base


def sanitize_for_logging(text: str, max_length: int = 200) -> str:
    """Strip ANSI escapes and control characters and cap the length.

    Used for message previews so chat content cannot forge log lines.
    """
    if not text:
        return text

    text = re.sub(r"\x1b\[[0-9;]*m", "", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    text = text.replace("\n", " ").replace("\r", " ")

    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def mask_config_value(key: str, value: str) -> str:
    """Mask sensitive config values for logging."""
    sensitive_keys = {"token", "key", "secret", "password", "credential"}

    key_lower = key.lower()
    if any(s in key_lower for s in sensitive_keys):
        if len(value) > 8:
            return f"{value[:4]}...{value[-4:]}"
        return "***"

    return value
