"""Abstract interface for the chat service calls the monitor depends on."""

from pathlib import Path
from typing import Protocol

from ..models.message import ChannelInfo, IdentityProbe, RocketChatMessage, ThreadPage


class ChatClient(Protocol):
    """Request layer for the chat service.

    RocketChatClient is the production implementation; tests substitute
    mocks. Every method except probe_identity raises on a failed request.
    """

    async def resolve_channel(self, name: str) -> ChannelInfo:
        """Resolve a channel name to its room id."""
        ...

    async def fetch_channel_history(self, room_id: str, count: int = 20) -> list[RocketChatMessage]:
        """
        Fetch the most recent channel messages.

        Returns:
            Messages newest first; callers reverse for chronological order.
        """
        ...

    async def fetch_thread_replies(
        self,
        thread_id: str,
        count: int = 50,
        offset: int = 0,
    ) -> ThreadPage:
        """
        Fetch one page of replies in a thread.

        Args:
            thread_id: Id of the thread's root message
            count: Page size
            offset: Number of replies to skip
        """
        ...

    async def fetch_message(self, message_id: str) -> RocketChatMessage:
        """Fetch a single message by id."""
        ...

    async def post_message(self, room_id: str, text: str, thread_id: str | None = None) -> str:
        """
        Post a message, optionally into a thread.

        Returns:
            Id of the posted message
        """
        ...

    async def set_reaction(self, message_id: str, emoji: str, should_react: bool) -> None:
        """
        Toggle a reaction on a message.

        Removing an emoji that is not present adds it instead; callers
        track the known state before removing.
        """
        ...

    async def download_attachment(self, remote_url: str, destination: Path) -> None:
        """Download a file upload to a local path."""
        ...

    async def probe_identity(self) -> IdentityProbe:
        """Resolve the authenticated identity. Never raises."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
