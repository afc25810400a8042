"""Data models and transfer objects."""

from .dispatch import (
    AgentRoute,
    DispatcherOptions,
    DispatchOutcome,
    InboundContext,
    Peer,
    ReplyPayload,
)
from .message import (
    ChannelInfo,
    FileRef,
    IdentityProbe,
    InboundHistoryEntry,
    RocketChatMessage,
    ThreadPage,
)

__all__ = [
    # Message models
    "ChannelInfo",
    "FileRef",
    "IdentityProbe",
    "InboundHistoryEntry",
    "RocketChatMessage",
    "ThreadPage",
    # Dispatch models
    "AgentRoute",
    "DispatchOutcome",
    "DispatcherOptions",
    "InboundContext",
    "Peer",
    "ReplyPayload",
]
