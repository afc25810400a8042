"""Concrete implementations of provider interfaces."""

from .chat.rocketchat import RemoteApiError, RocketChatClient, RocketChatError

__all__ = [
    "RemoteApiError",
    "RocketChatClient",
    "RocketChatError",
]
