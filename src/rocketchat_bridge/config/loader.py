"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .accounts import list_account_ids, resolve_account
from .schema import AppConfig


class ConfigError(ValueError):
    """Raised when the configuration is structurally valid but unusable."""


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path) -> AppConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)
    config_dict = yaml.safe_load(yaml_with_env) or {}

    config = AppConfig.model_validate(config_dict)
    validate_config(config)

    return config


def validate_config(config: AppConfig) -> None:
    """
    Check every configured Rocket.Chat account.

    Each account must validate against the account schema and carry the
    server URL, auth token, bot user id and channel name.

    Args:
        config: Configuration to validate

    Raises:
        ConfigError: If no account is configured or one is incomplete
        ValidationError: If an account has malformed settings
    """
    cfg = config.host_config()
    account_ids = list_account_ids(cfg)
    if not account_ids:
        raise ConfigError("No Rocket.Chat accounts configured under channels.rocketchat")

    for account_id in account_ids:
        account = resolve_account(cfg, account_id)
        if account is None or not account.is_configured:
            raise ConfigError(
                f"Rocket.Chat account {account_id!r} requires url, authToken and userId"
            )
        if not account.channel:
            raise ConfigError(f"Rocket.Chat account {account_id!r} requires a channel")
