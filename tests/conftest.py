"""Shared test fixtures for the Rocket.Chat bridge."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

from rocketchat_bridge.config.schema import RocketChatAccount
from rocketchat_bridge.models.dispatch import (
    AgentRoute,
    DispatcherOptions,
    InboundContext,
    Peer,
    ReplyPayload,
)
from rocketchat_bridge.models.message import (
    ChannelInfo,
    IdentityProbe,
    RocketChatMessage,
    ThreadPage,
)

BOT_USER_ID = "bot-user"
BASE_TS_MS = 1_700_000_000_000


def api_message(
    message_id: str,
    text: str = "hello",
    *,
    user_id: str = "u-alice",
    username: str = "alice",
    ts_ms: int | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Build a message payload shaped like the REST API returns it."""
    ts = datetime.fromtimestamp((ts_ms or BASE_TS_MS) / 1000, tz=UTC)
    data: dict[str, Any] = {
        "_id": message_id,
        "rid": "room-1",
        "msg": text,
        "ts": ts.isoformat().replace("+00:00", "Z"),
        "u": {"_id": user_id, "username": username},
    }
    data.update(fields)
    return data


class FakeChatClient:
    """In-memory stand-in for RocketChatClient.

    ``channel_messages`` and ``threads`` hold server state in chronological
    order; fetches slice them the way the REST API does. Like the server,
    thread pages hold replies only; roots outside the channel window go in
    ``messages``.
    """

    def __init__(self) -> None:
        self.channel = ChannelInfo(room_id="room-1", name="general")
        self.resolve_error: Exception | None = None
        self.resolve_calls: list[str] = []

        self.channel_messages: list[RocketChatMessage] = []
        self.history_errors: list[Exception] = []
        self.history_calls = 0
        self.on_history: Callable[[], None] | None = None

        self.threads: dict[str, list[RocketChatMessage]] = {}
        self.thread_errors: dict[str, Exception] = {}
        self.thread_calls: list[tuple[str, int, int]] = []

        self.messages: dict[str, RocketChatMessage] = {}
        self.message_fetches: list[str] = []

        self.posts: list[tuple[str, str, str | None]] = []
        self.post_error: Exception | None = None
        self.reactions: list[str] = []
        self.reaction_errors: set[str] = set()

        self.downloads: list[tuple[str, Path]] = []
        self.download_error: BaseException | None = None

        self.identity = IdentityProbe(ok=True, username="bridge-bot", user_id=BOT_USER_ID)
        self.closed = False

    async def resolve_channel(self, name: str) -> ChannelInfo:
        self.resolve_calls.append(name)
        if self.resolve_error is not None:
            raise self.resolve_error
        return self.channel

    async def fetch_channel_history(self, room_id: str, count: int = 20) -> list[RocketChatMessage]:
        self.history_calls += 1
        if self.on_history is not None:
            self.on_history()
        if self.history_errors:
            raise self.history_errors.pop(0)
        return list(reversed(self.channel_messages[-count:]))

    async def fetch_thread_replies(
        self,
        thread_id: str,
        count: int = 50,
        offset: int = 0,
    ) -> ThreadPage:
        self.thread_calls.append((thread_id, count, offset))
        if thread_id in self.thread_errors:
            raise self.thread_errors[thread_id]
        replies = self.threads.get(thread_id, [])
        return ThreadPage(messages=tuple(replies[offset : offset + count]), total=len(replies))

    async def fetch_message(self, message_id: str) -> RocketChatMessage:
        self.message_fetches.append(message_id)
        if message_id in self.messages:
            return self.messages[message_id]
        for message in self.channel_messages:
            if message.message_id == message_id:
                return message
        raise RuntimeError(f"message not found: {message_id}")

    async def post_message(self, room_id: str, text: str, thread_id: str | None = None) -> str:
        if self.post_error is not None:
            raise self.post_error
        self.posts.append((room_id, text, thread_id))
        return f"posted-{len(self.posts)}"

    async def set_reaction(self, message_id: str, emoji: str, should_react: bool) -> None:
        key = f"{emoji}:{'add' if should_react else 'remove'}"
        self.reactions.append(key)
        if key in self.reaction_errors:
            raise RuntimeError(f"react failed: {key}")

    async def download_attachment(self, remote_url: str, destination: Path) -> None:
        self.downloads.append((remote_url, destination))
        if self.download_error is not None:
            raise self.download_error
        destination.write_bytes(b"file-content")

    async def probe_identity(self) -> IdentityProbe:
        return self.identity

    async def aclose(self) -> None:
        self.closed = True


DispatchHook = Callable[[InboundContext, DispatcherOptions], Awaitable[None]]


class FakeRuntime:
    """Agent runtime that replies with fixed text unless told otherwise."""

    def __init__(self) -> None:
        self.routes: list[dict[str, Any]] = []
        self.contexts: list[InboundContext] = []
        self.reply: str | None = "Agent reply"
        self.route_error: Exception | None = None
        self.dispatch_error: Exception | None = None
        self.report_error: Exception | None = None
        self.hook: DispatchHook | None = None

    def resolve_agent_route(
        self,
        *,
        cfg: Any,
        channel: str,
        account_id: str,
        peer: Peer,
    ) -> AgentRoute:
        if self.route_error is not None:
            raise self.route_error
        self.routes.append({"channel": channel, "account_id": account_id, "peer": peer})
        return AgentRoute(session_key=f"agent:main:{channel}:{peer.kind}:{peer.id}")

    async def dispatch_reply_with_buffered_block_dispatcher(
        self,
        *,
        ctx: InboundContext,
        cfg: Any,
        reply_options: Any,
        dispatcher_options: DispatcherOptions,
    ) -> None:
        self.contexts.append(ctx)
        if self.hook is not None:
            await self.hook(ctx, dispatcher_options)
        if self.dispatch_error is not None:
            raise self.dispatch_error
        if self.reply is not None:
            await dispatcher_options.deliver(ReplyPayload(text=self.reply))
        if self.report_error is not None:
            dispatcher_options.on_error(self.report_error)

    @property
    def dispatch_count(self) -> int:
        return len(self.contexts)


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo any logging configuration a test applied."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    """Factory for raw REST message payloads."""
    return api_message


@pytest.fixture
def make_message() -> Callable[..., RocketChatMessage]:
    """Factory for message snapshots, same arguments as ``api_message``."""

    def factory(message_id: str, text: str = "hello", **kwargs: Any) -> RocketChatMessage:
        return RocketChatMessage.from_api(api_message(message_id, text, **kwargs))

    return factory


@pytest.fixture
def account() -> RocketChatAccount:
    """A fully configured account with a fast poll interval."""
    return RocketChatAccount(
        url="https://chat.example.com",
        auth_token="tok-secret-123",
        user_id=BOT_USER_ID,
        channel="general",
        username="bridge-bot",
        poll_interval=0.01,
    )


@pytest.fixture
def host_cfg() -> dict[str, Any]:
    """Host configuration using the single-account shorthand."""
    return {
        "channels": {
            "rocketchat": {
                "url": "https://chat.example.com",
                "authToken": "tok-secret-123",
                "userId": BOT_USER_ID,
                "channel": "general",
            }
        }
    }


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()
