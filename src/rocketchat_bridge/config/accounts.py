"""Account lookup over the host configuration mapping.

The host stores Rocket.Chat settings under ``channels.rocketchat`` in one of
two shapes:

- single-account shorthand, with ``url`` directly on the section; the
  account id is ``"default"``
- multi-account, with an ``accounts`` mapping of account id to settings
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .schema import RocketChatAccount

CHANNEL_ID = "rocketchat"
DEFAULT_ACCOUNT_ID = "default"


def _section(cfg: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if not cfg:
        return None
    channels = cfg.get("channels") or {}
    section = channels.get(CHANNEL_ID)
    return section if isinstance(section, Mapping) else None


def list_account_ids(cfg: Mapping[str, Any] | None) -> list[str]:
    """List configured account ids, in configuration order."""
    section = _section(cfg)
    if not section:
        return []
    if section.get("url"):
        return [DEFAULT_ACCOUNT_ID]
    accounts = section.get("accounts")
    if isinstance(accounts, Mapping):
        return list(accounts.keys())
    return []


def resolve_account(cfg: Mapping[str, Any] | None, account_id: str) -> RocketChatAccount | None:
    """Resolve one account by id, or None if it is not configured.

    Raises:
        pydantic.ValidationError: If the account settings are malformed
    """
    section = _section(cfg)
    if not section:
        return None

    if section.get("url"):
        if account_id != DEFAULT_ACCOUNT_ID:
            return None
        raw: Mapping[str, Any] = section
    else:
        accounts = section.get("accounts") or {}
        found = accounts.get(account_id)
        if not isinstance(found, Mapping):
            return None
        raw = found

    data = {k: v for k, v in raw.items() if k != "accounts"}
    data["accountId"] = account_id
    return RocketChatAccount.model_validate(data)


def is_configured(account: RocketChatAccount | Mapping[str, Any] | None) -> bool:
    """Check for the minimum fields: server URL, auth token and user id."""
    if account is None:
        return False
    if isinstance(account, RocketChatAccount):
        return account.is_configured
    return bool(account.get("url") and account.get("authToken") and account.get("userId"))
