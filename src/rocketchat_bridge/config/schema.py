"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_THREAD_TTL_HOURS = 24.0
DEFAULT_THREAD_CONTEXT_CHARS = 16000


class RocketChatAccount(BaseModel):
    """One monitored Rocket.Chat account.

    Host configuration uses camelCase keys (``authToken``, ``pollInterval``);
    both spellings are accepted.
    """

    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        extra="ignore",
    )

    account_id: str = "default"
    url: str = ""
    auth_token: str = ""
    user_id: str = ""
    channel: str = ""
    username: str | None = None
    enabled: bool = True
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0, description="Seconds between polls")
    thread_ttl_hours: float = Field(DEFAULT_THREAD_TTL_HOURS, gt=0)
    thread_context_chars: int = Field(DEFAULT_THREAD_CONTEXT_CHARS, ge=0)
    request_timeout: float = Field(30.0, gt=0, description="HTTP timeout in seconds")

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the server URL so paths can be appended."""
        return v.rstrip("/")

    @field_validator("channel")
    @classmethod
    def strip_channel_prefix(cls, v: str) -> str:
        """Accept ``#general`` as well as ``general``."""
        return v.lstrip("#")

    @property
    def is_configured(self) -> bool:
        """True when the fields needed to talk to the server are present."""
        return bool(self.url and self.auth_token and self.user_id)

    @property
    def thread_ttl_seconds(self) -> float:
        return self.thread_ttl_hours * 3600


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/rocketchat-bridge/bridge.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class AppConfig(BaseSettings):
    """Root configuration for a standalone bridge process.

    ``channels`` keeps the host layout (``channels.rocketchat``) so the same
    mapping can be handed to the plugin's config accessors.
    """

    channels: dict[str, Any] = {}
    logging: LoggingConfig = LoggingConfig()
    runtime: str | None = Field(
        None, description="Agent runtime factory as 'module:attribute'"
    )

    model_config = SettingsConfigDict(
        env_prefix="ROCKETCHAT_BRIDGE_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def host_config(self) -> dict[str, Any]:
        """Return the mapping passed to plugin config accessors."""
        return {"channels": self.channels}
