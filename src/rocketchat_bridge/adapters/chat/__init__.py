"""Chat platform adapters."""

from .rocketchat import RemoteApiError, RocketChatClient, RocketChatError

__all__ = ["RemoteApiError", "RocketChatClient", "RocketChatError"]
