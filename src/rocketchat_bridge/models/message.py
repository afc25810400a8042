"""Data models for Rocket.Chat messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class FileRef:
    """A file uploaded with a message."""

    file_id: str
    name: str
    content_type: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> FileRef:
        return cls(
            file_id=str(data.get("_id", "")),
            name=str(data.get("name") or data.get("_id") or "attachment"),
            content_type=data.get("type"),
        )


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse the ``ts`` field.

    The REST API returns ISO-8601 strings; the realtime/EJSON form is
    ``{"$date": <epoch millis>}``.
    """
    if value is None:
        return None
    if isinstance(value, dict) and "$date" in value:
        value = value["$date"]
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class RocketChatMessage:
    """A read-only snapshot of a Rocket.Chat message."""

    message_id: str
    text: str
    sender_id: str
    sender_username: str
    timestamp: datetime | None = None
    thread_parent: str | None = None  # tmid, set on thread replies
    reply_count: int = 0  # tcount, set on thread roots
    reactions: dict[str, tuple[str, ...]] = field(default_factory=dict)
    is_system: bool = False
    is_bot: bool = False
    files: tuple[FileRef, ...] = ()
    attachments: tuple[dict[str, Any], ...] = ()

    # Original API payload
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RocketChatMessage:
        """Build a message from a REST API payload."""
        user = data.get("u") or {}

        reactions: dict[str, tuple[str, ...]] = {}
        for emoji, reactors in (data.get("reactions") or {}).items():
            reactions[emoji] = tuple((reactors or {}).get("usernames", ()))

        files: list[FileRef] = []
        if data.get("files"):
            files = [FileRef.from_api(f) for f in data["files"]]
        elif data.get("file"):
            files = [FileRef.from_api(data["file"])]

        return cls(
            message_id=str(data.get("_id", "")),
            text=data.get("msg") or "",
            sender_id=user.get("_id") or "unknown",
            sender_username=user.get("username") or "unknown",
            timestamp=_parse_timestamp(data.get("ts")),
            thread_parent=data.get("tmid") or None,
            reply_count=int(data.get("tcount") or 0),
            reactions=reactions,
            is_system=bool(data.get("t")),
            is_bot=bool(data.get("bot")),
            files=tuple(files),
            attachments=tuple(data.get("attachments") or ()),
            raw=data,
        )

    @property
    def is_thread_root(self) -> bool:
        """True for a top-level message that has replies."""
        return self.thread_parent is None and self.reply_count > 0

    @property
    def timestamp_ms(self) -> int:
        """Creation time in epoch milliseconds (0 when unknown)."""
        if self.timestamp is None:
            return 0
        return int(self.timestamp.timestamp() * 1000)

    def has_reaction(self, emoji: str) -> bool:
        """Check for a reaction by name, e.g. ``has_reaction("x")``."""
        return f":{emoji.strip(':')}:" in self.reactions

    def attachment_url(self, file: FileRef, index: int = 0) -> str | None:
        """Find the download link for an uploaded file.

        Prefers the attachment whose link references the file id and falls
        back to the attachment at the same position.
        """
        links = [a.get("title_link") for a in self.attachments if a.get("title_link")]
        for link in links:
            if file.file_id and file.file_id in link:
                return str(link)
        if index < len(links):
            return str(links[index])
        return None


@dataclass(frozen=True)
class ChannelInfo:
    """A resolved channel."""

    room_id: str
    name: str


@dataclass(frozen=True)
class ThreadPage:
    """One page of thread replies."""

    messages: tuple[RocketChatMessage, ...]
    total: int | None = None


@dataclass(frozen=True)
class IdentityProbe:
    """Result of resolving the bot's own identity."""

    ok: bool
    username: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class InboundHistoryEntry:
    """A prior thread message handed to the agent as context."""

    sender: str
    body: str
    timestamp_ms: int
