"""Channel plugin exposed to the host runtime.

The host discovers the channel through ``register(host)``, which hands it
``rocketchat_plugin``. The plugin answers configuration questions over the
host's ``channels.rocketchat`` section, starts one monitor per account, and
sends outbound text on the host's behalf.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from rocketchat_bridge.adapters.chat.rocketchat import RocketChatClient
from rocketchat_bridge.config import accounts
from rocketchat_bridge.config.schema import RocketChatAccount
from rocketchat_bridge.core.monitor import RocketChatMonitor
from rocketchat_bridge.utils.health import HealthChecker
from rocketchat_bridge.utils.logging import LogEventNames

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from rocketchat_bridge.interfaces.agent import AgentRuntime
    from rocketchat_bridge.interfaces.chat import ChatClient
    from rocketchat_bridge.utils.async_helpers import CancellationToken

TEXT_CHUNK_LIMIT = 4000


@dataclass(frozen=True)
class ChannelMeta:
    label: str
    blurb: str
    docs_path: str


@dataclass(frozen=True)
class ChannelCapabilities:
    chat_types: tuple[str, ...] = ("group", "channel")
    reactions: bool = True
    threads: bool = True


@dataclass(frozen=True)
class AccountDescription:
    """Human-readable account summary for host status views."""

    account_id: str
    name: str
    enabled: bool
    configured: bool


@dataclass(frozen=True)
class ProbeResult:
    ok: bool
    detail: str


class ChannelHost(Protocol):
    """The parts of the host runtime the plugin registers with."""

    runtime: AgentRuntime

    def register_channel(self, *, plugin: RocketChatPlugin) -> None: ...


@dataclass
class RocketChatPlugin:
    """Rocket.Chat channel for the host runtime.

    ``runtime`` is bound by ``register``; ``start_account`` may also be
    given one explicitly.
    """

    id: str = accounts.CHANNEL_ID
    meta: ChannelMeta = field(
        default_factory=lambda: ChannelMeta(
            label="Rocket.Chat",
            blurb="Rocket.Chat channels via REST polling",
            docs_path="/channels/rocketchat",
        )
    )
    capabilities: ChannelCapabilities = field(default_factory=ChannelCapabilities)
    delivery_mode: str = "direct"
    text_chunk_limit: int = TEXT_CHUNK_LIMIT
    runtime: AgentRuntime | None = None

    # Config accessors

    def list_account_ids(self, cfg: Mapping[str, Any]) -> list[str]:
        return accounts.list_account_ids(cfg)

    def resolve_account(self, cfg: Mapping[str, Any], account_id: str) -> RocketChatAccount | None:
        return accounts.resolve_account(cfg, account_id)

    def is_configured(self, account: RocketChatAccount | Mapping[str, Any] | None) -> bool:
        return accounts.is_configured(account)

    def describe_account(self, account: RocketChatAccount) -> AccountDescription:
        return AccountDescription(
            account_id=account.account_id,
            name=account.channel or "Rocket.Chat",
            enabled=account.enabled,
            configured=account.is_configured,
        )

    # Lifecycle

    def start_account(
        self,
        cfg: Mapping[str, Any],
        account_id: str,
        abort_signal: CancellationToken,
        runtime: AgentRuntime | None = None,
        log: FilteringBoundLogger | None = None,
        client: ChatClient | None = None,
    ) -> asyncio.Task[None] | None:
        """Start polling one account in a background task.

        Returns:
            The monitor task, or None if the account is unknown.

        Raises:
            RuntimeError: If no agent runtime is available
        """
        log = log or structlog.get_logger()
        account = self.resolve_account(cfg, account_id)
        if account is None:
            log.error(LogEventNames.ACCOUNT_NOT_FOUND, account_id=account_id)
            return None

        runtime = runtime or self.runtime
        if runtime is None:
            raise RuntimeError("Rocket.Chat plugin has no agent runtime; call register() first")

        monitor = RocketChatMonitor(
            account,
            cfg,
            runtime,
            client=client,
            abort_signal=abort_signal,
            log=log,
        )
        return asyncio.create_task(monitor.run(), name=f"rocketchat-monitor:{account_id}")

    # Outbound

    async def send_text(
        self,
        account: RocketChatAccount,
        text: str,
        *,
        to: str | None = None,
        room_id: str | None = None,
        thread_id: str | None = None,
        client: ChatClient | None = None,
    ) -> str:
        """Post ``text`` to a room, or to a channel resolved by name.

        Returns:
            The posted message's id.
        """
        owned = client is None
        chat: ChatClient = client or RocketChatClient.from_account(account)
        try:
            if room_id is None:
                info = await chat.resolve_channel(to or account.channel)
                room_id = info.room_id
            return await chat.post_message(room_id, text, thread_id=thread_id)
        finally:
            if owned:
                await chat.aclose()

    # Health

    async def probe(
        self,
        account: RocketChatAccount,
        client: ChatClient | None = None,
    ) -> ProbeResult:
        """Check that the account can authenticate against the server."""
        checker = HealthChecker(
            {},
            client_factory=(lambda _account: client) if client is not None else None,
        )
        result = await checker.check_account(account)
        return ProbeResult(ok=result.ok, detail=result.message)


rocketchat_plugin = RocketChatPlugin()


def register(host: ChannelHost) -> RocketChatPlugin:
    """Register the Rocket.Chat channel with ``host`` and bind its runtime."""
    rocketchat_plugin.runtime = host.runtime
    host.register_channel(plugin=rocketchat_plugin)
    return rocketchat_plugin
