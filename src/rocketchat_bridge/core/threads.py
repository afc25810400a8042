"""Discovery, polling offsets and expiry of active threads."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from rocketchat_bridge.models.message import RocketChatMessage

DEFAULT_THREAD_PAGE_SIZE = 50


@dataclass
class ThreadState:
    """Polling state of one tracked thread."""

    thread_id: str
    last_seen_at: float
    offset: int = 0  # replies already fetched and handled
    starter_body: str | None = None


class ThreadTracker:
    """Tracks threads discovered in the channel history window.

    Only root messages seen in channel history register a thread. Replies
    that show up in channel history carry their parent id but do not
    register it, so such threads are not re-polled.

    Example:
        tracker = ThreadTracker(ttl_seconds=24 * 3600)
        tracker.observe(message)
        tracker.prune()
        for state in tracker.active():
            ...
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._threads: dict[str, ThreadState] = {}

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self._threads

    def __len__(self) -> int:
        return len(self._threads)

    def get(self, thread_id: str) -> ThreadState | None:
        return self._threads.get(thread_id)

    def observe(self, message: RocketChatMessage) -> bool:
        """Track or refresh a thread root.

        Returns:
            True if the message started tracking a new thread.
        """
        if not message.is_thread_root:
            return False

        now = self._clock()
        state = self._threads.get(message.message_id)
        if state is None:
            self._threads[message.message_id] = ThreadState(
                thread_id=message.message_id,
                last_seen_at=now,
                starter_body=message.text,
            )
            return True

        state.last_seen_at = now
        return False

    def prune(self) -> list[str]:
        """Drop threads idle for longer than the TTL.

        Returns:
            Ids of the threads that were dropped.
        """
        now = self._clock()
        expired = [
            thread_id
            for thread_id, state in self._threads.items()
            if now - state.last_seen_at > self._ttl
        ]
        for thread_id in expired:
            del self._threads[thread_id]
        return expired

    def active(self) -> list[ThreadState]:
        """Snapshot of tracked threads in discovery order."""
        return list(self._threads.values())

    def advance(self, thread_id: str, count: int) -> None:
        """Record ``count`` newly consumed replies."""
        state = self._threads.get(thread_id)
        if state is None or count <= 0:
            return
        state.offset += count
        state.last_seen_at = self._clock()
