"""Eligibility filtering and at-least-once deduplication.

The channel history window is re-read on every poll, so the same message
is seen many times. A message is handed to the agent only when it passes
every exclusion rule below, in order:

1. authored by the bot account itself
2. a system event (join, leave, topic change, ...)
3. authored by another bot
4. already carries the completion checkmark (survives restarts, since the
   reaction lives on the server)
5. already dispatched during this process lifetime
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cachetools import FIFOCache

from rocketchat_bridge.core.reactions import COMPLETE_EMOJI
from rocketchat_bridge.models.message import RocketChatMessage

MAX_PROCESSED_IDS = 500


class SkipReason(Enum):
    """Why a message was not dispatched."""

    SELF_AUTHORED = "self_authored"
    SYSTEM_EVENT = "system_event"
    BOT_AUTHORED = "bot_authored"
    ALREADY_COMPLETED = "already_completed"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class FilterDecision:
    """Result of evaluating one message."""

    eligible: bool
    reason: SkipReason | None = None


class ProcessedSet:
    """Bounded set of dispatched message ids.

    Oldest-inserted ids are evicted first once the cap is reached. Lookups
    do not refresh an entry, so this approximates recency rather than
    implementing LRU.
    """

    def __init__(self, maxsize: int = MAX_PROCESSED_IDS) -> None:
        self._ids: FIFOCache[str, None] = FIFOCache(maxsize=maxsize)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def maxsize(self) -> int:
        return int(self._ids.maxsize)

    def add(self, message_id: str) -> None:
        if message_id not in self._ids:
            self._ids[message_id] = None


class MessageFilter:
    """Decides which messages to dispatch and records the ones that are.

    Example:
        message_filter = MessageFilter(bot_user_id="bot-user")
        if message_filter.admit(message):
            await bridge.handle(message, ...)
    """

    def __init__(self, bot_user_id: str, processed: ProcessedSet | None = None) -> None:
        self._bot_user_id = bot_user_id
        self.processed = processed if processed is not None else ProcessedSet()

    def evaluate(self, message: RocketChatMessage) -> FilterDecision:
        """Check the exclusion rules without recording anything."""
        if message.sender_id == self._bot_user_id:
            return FilterDecision(False, SkipReason.SELF_AUTHORED)
        if message.is_system:
            return FilterDecision(False, SkipReason.SYSTEM_EVENT)
        if message.is_bot:
            return FilterDecision(False, SkipReason.BOT_AUTHORED)
        if message.has_reaction(COMPLETE_EMOJI):
            return FilterDecision(False, SkipReason.ALREADY_COMPLETED)
        if message.message_id in self.processed:
            return FilterDecision(False, SkipReason.ALREADY_PROCESSED)
        return FilterDecision(True)

    def admit(self, message: RocketChatMessage) -> FilterDecision:
        """Evaluate a message and, if eligible, mark it as processed."""
        decision = self.evaluate(message)
        if decision.eligible:
            self.processed.add(message.message_id)
        return decision
