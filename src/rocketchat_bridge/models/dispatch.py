"""Data models exchanged with the agent runtime."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from .message import InboundHistoryEntry


@dataclass(frozen=True)
class Peer:
    """The conversation partner used for route resolution."""

    kind: Literal["group", "direct"]
    id: str


@dataclass(frozen=True)
class AgentRoute:
    """Routing decision returned by the agent runtime."""

    session_key: str
    agent_id: str | None = None


@dataclass(frozen=True)
class ReplyPayload:
    """A block of agent output to deliver to the chat."""

    text: str | None = None
    media_url: str | None = None


@dataclass(frozen=True)
class DispatcherOptions:
    """Callbacks the agent runtime uses to hand back output."""

    deliver: Callable[[ReplyPayload], Awaitable[None]]
    on_error: Callable[[BaseException], None]


@dataclass
class InboundContext:
    """Everything the agent runtime needs to handle one inbound message."""

    body: str
    from_addr: str
    to_addr: str
    session_key: str
    account_id: str
    sender_id: str
    sender_username: str
    message_sid: str
    timestamp_ms: int
    chat_type: str = "group"
    provider: str = "rocketchat"
    was_mentioned: bool = True
    command_authorized: bool = True
    command_source: str = "text"

    # Thread context
    inbound_history: list[InboundHistoryEntry] | None = None
    thread_starter_body: str | None = None
    message_thread_id: str | None = None

    # Attachments
    media_path: str | None = None
    media_type: str | None = None
    media_paths: list[str] | None = None
    media_types: list[str] | None = None

    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Render the context in the runtime's inbound-context key format.

        Optional keys are omitted when unset.
        """
        ctx: dict[str, Any] = {
            "Body": self.body,
            "BodyForAgent": self.body,
            "RawBody": self.body,
            "CommandBody": self.body,
            "From": self.from_addr,
            "To": self.to_addr,
            "SessionKey": self.session_key,
            "AccountId": self.account_id,
            "ChatType": self.chat_type,
            "SenderName": self.sender_username,
            "SenderId": self.sender_id,
            "SenderUsername": self.sender_username,
            "Provider": self.provider,
            "Surface": self.provider,
            "WasMentioned": self.was_mentioned,
            "CommandAuthorized": self.command_authorized,
            "CommandSource": self.command_source,
            "MessageSid": self.message_sid,
            "Timestamp": self.timestamp_ms,
            "OriginatingChannel": self.provider,
            "OriginatingTo": self.to_addr,
        }

        if self.inbound_history is not None:
            ctx["InboundHistory"] = [
                {"sender": e.sender, "body": e.body, "timestamp": e.timestamp_ms}
                for e in self.inbound_history
            ]
        optional = {
            "ThreadStarterBody": self.thread_starter_body,
            "MessageThreadId": self.message_thread_id,
            "MediaPath": self.media_path,
            "MediaType": self.media_type,
            "MediaPaths": self.media_paths,
            "MediaTypes": self.media_types,
        }
        ctx.update({k: v for k, v in optional.items() if v is not None})
        ctx.update(self.extra)
        return ctx


class DispatchOutcome(Enum):
    """Outcome of handing a message to the agent runtime."""

    COMPLETED = "completed"
    NO_REPLY = "no_reply"
    DELIVERY_ERROR = "delivery_error"
    DISPATCH_ERROR = "dispatch_error"

    @property
    def succeeded(self) -> bool:
        return self is DispatchOutcome.COMPLETED
