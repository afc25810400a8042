"""Tests for configuration loading and account lookup."""

from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from rocketchat_bridge.config.accounts import (
    DEFAULT_ACCOUNT_ID,
    is_configured,
    list_account_ids,
    resolve_account,
)
from rocketchat_bridge.config.loader import (
    ConfigError,
    load_config,
    substitute_env_vars,
    validate_config,
)
from rocketchat_bridge.config.schema import AppConfig, RocketChatAccount

MULTI_ACCOUNT_CFG: dict[str, Any] = {
    "channels": {
        "rocketchat": {
            "accounts": {
                "support": {
                    "url": "https://support.example.com/",
                    "authToken": "tok-support",
                    "userId": "bot-support",
                    "channel": "#help",
                    "pollInterval": 5,
                },
                "ops": {
                    "url": "https://ops.example.com",
                    "authToken": "tok-ops",
                    "userId": "bot-ops",
                    "channel": "alerts",
                    "enabled": False,
                },
            }
        }
    }
}


class TestSubstituteEnvVars:
    """Test environment variable substitution."""

    def test_substitute_single_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RC_TOKEN", "secret-value")
        assert substitute_env_vars("authToken: ${RC_TOKEN}") == "authToken: secret-value"

    def test_missing_env_var_raises(self) -> None:
        with pytest.raises(ValueError, match="Environment variable RC_MISSING_VAR not found"):
            substitute_env_vars("${RC_MISSING_VAR}")

    def test_no_substitution_needed(self) -> None:
        assert substitute_env_vars("plain text") == "plain text"


class TestRocketChatAccount:
    """Test RocketChatAccount validation."""

    def test_defaults(self) -> None:
        account = RocketChatAccount()
        assert account.account_id == "default"
        assert account.enabled is True
        assert account.poll_interval == 2.0
        assert account.thread_ttl_hours == 24
        assert account.thread_context_chars == 16000
        assert account.request_timeout == 30
        assert account.is_configured is False

    def test_accepts_camel_case_keys(self) -> None:
        account = RocketChatAccount.model_validate(
            {
                "url": "https://chat.example.com",
                "authToken": "tok",
                "userId": "bot",
                "channel": "general",
                "threadTtlHours": 2,
                "threadContextChars": 500,
            }
        )
        assert account.auth_token == "tok"
        assert account.user_id == "bot"
        assert account.thread_ttl_seconds == 7200
        assert account.thread_context_chars == 500

    def test_accepts_snake_case_keys(self) -> None:
        account = RocketChatAccount(auth_token="tok", user_id="bot", url="https://x.example")
        assert account.is_configured is True

    def test_normalizes_url_and_channel(self) -> None:
        account = RocketChatAccount(url="https://chat.example.com///", channel="#general")
        assert account.url == "https://chat.example.com"
        assert account.channel == "general"

    def test_rejects_non_positive_poll_interval(self) -> None:
        with pytest.raises(ValidationError):
            RocketChatAccount(poll_interval=0)

    def test_ignores_unknown_keys(self) -> None:
        account = RocketChatAccount.model_validate({"somethingElse": 1})
        assert not hasattr(account, "somethingElse")


class TestAccountLookup:
    """Test account listing and resolution over the host config."""

    def test_single_account_shorthand(self, host_cfg: dict[str, Any]) -> None:
        assert list_account_ids(host_cfg) == [DEFAULT_ACCOUNT_ID]

        account = resolve_account(host_cfg, DEFAULT_ACCOUNT_ID)
        assert account is not None
        assert account.account_id == DEFAULT_ACCOUNT_ID
        assert account.channel == "general"

    def test_shorthand_unknown_id(self, host_cfg: dict[str, Any]) -> None:
        assert resolve_account(host_cfg, "other") is None

    def test_multi_account(self) -> None:
        assert list_account_ids(MULTI_ACCOUNT_CFG) == ["support", "ops"]

        support = resolve_account(MULTI_ACCOUNT_CFG, "support")
        assert support is not None
        assert support.account_id == "support"
        assert support.url == "https://support.example.com"
        assert support.channel == "help"
        assert support.poll_interval == 5

        ops = resolve_account(MULTI_ACCOUNT_CFG, "ops")
        assert ops is not None
        assert ops.enabled is False

    def test_missing_section(self) -> None:
        assert list_account_ids({}) == []
        assert list_account_ids({"channels": {}}) == []
        assert resolve_account({"channels": {}}, "default") is None

    def test_unknown_account(self) -> None:
        assert resolve_account(MULTI_ACCOUNT_CFG, "nope") is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, False),
            ({"url": "u", "authToken": "t", "userId": "i"}, True),
            ({"url": "u", "authToken": "t"}, False),
            (RocketChatAccount(url="u", auth_token="t", user_id="i"), True),
            (RocketChatAccount(url="u"), False),
        ],
    )
    def test_is_configured(self, value: Any, expected: bool) -> None:
        assert is_configured(value) is expected


class TestLoadConfig:
    """Test YAML loading and validation."""

    def test_load_valid_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RC_AUTH_TOKEN", "tok-from-env")
        path = tmp_path / "config.yaml"
        path.write_text(
            "channels:\n"
            "  rocketchat:\n"
            "    url: https://chat.example.com\n"
            "    authToken: ${RC_AUTH_TOKEN}\n"
            "    userId: bot-user\n"
            "    channel: general\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  format: console\n"
            "runtime: my_agents:build_runtime\n"
        )

        config = load_config(path)

        assert config.logging.level == "DEBUG"
        assert config.runtime == "my_agents:build_runtime"
        account = resolve_account(config.host_config(), "default")
        assert account is not None
        assert account.auth_token == "tok-from-env"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_no_accounts(self) -> None:
        with pytest.raises(ConfigError, match="No Rocket.Chat accounts"):
            validate_config(AppConfig(channels={}))

    def test_incomplete_account(self) -> None:
        config = AppConfig(
            channels={"rocketchat": {"url": "https://chat.example.com", "channel": "general"}}
        )
        with pytest.raises(ConfigError, match="requires url, authToken and userId"):
            validate_config(config)

    def test_account_without_channel(self) -> None:
        config = AppConfig(
            channels={
                "rocketchat": {
                    "url": "https://chat.example.com",
                    "authToken": "t",
                    "userId": "u",
                }
            }
        )
        with pytest.raises(ConfigError, match="requires a channel"):
            validate_config(config)

    def test_multi_account_validates(self) -> None:
        validate_config(AppConfig(channels=MULTI_ACCOUNT_CFG["channels"]))
