"""Reaction lifecycle for processed messages.

A message moves through three visible states, each shown by one emoji:
processing (hourglass), completed (white_check_mark) and failed (x).
Reactions are feedback only. Every call is best-effort: failures are logged
and never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rocketchat_bridge.utils.logging import LogEventNames

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from rocketchat_bridge.interfaces.chat import ChatClient

PROCESSING_EMOJI = "hourglass"
COMPLETE_EMOJI = "white_check_mark"
FAILED_EMOJI = "x"


class ReactionMarker:
    """Applies the processing/complete/failed emoji to messages.

    ``set_reaction`` is a toggle on the server side, so removals are only
    issued for emoji known to be present: the hourglass once
    mark_processing has succeeded, or an ``x`` seen on the message snapshot.
    """

    def __init__(self, client: ChatClient, log: FilteringBoundLogger | None = None) -> None:
        self._client = client
        self._log = log or structlog.get_logger()
        # Messages whose hourglass was added and not yet removed
        self._processing: set[str] = set()

    async def _react(self, message_id: str, emoji: str, should_react: bool) -> bool:
        try:
            await self._client.set_reaction(message_id, emoji, should_react)
        except Exception as e:
            self._log.warning(
                LogEventNames.REACTION_FAILED,
                message_id=message_id,
                emoji=emoji,
                action="add" if should_react else "remove",
                error=str(e),
            )
            return False
        return True

    async def mark_processing(self, message_id: str) -> bool:
        """Add the hourglass.

        Returns:
            True if the hourglass is now on the message.
        """
        added = await self._react(message_id, PROCESSING_EMOJI, True)
        if added:
            self._processing.add(message_id)
        return added

    async def _clear_processing(self, message_id: str) -> None:
        if message_id in self._processing:
            self._processing.discard(message_id)
            await self._react(message_id, PROCESSING_EMOJI, False)

    async def mark_complete(self, message_id: str) -> None:
        """Swap the hourglass for a checkmark.

        The two calls are independent; a failed removal does not stop the
        checkmark.
        """
        await self._clear_processing(message_id)
        await self._react(message_id, COMPLETE_EMOJI, True)

    async def mark_failed(self, message_id: str) -> None:
        """Swap the hourglass for an x."""
        await self._clear_processing(message_id)
        await self._react(message_id, FAILED_EMOJI, True)

    async def clear_failed(self, message_id: str) -> None:
        """Remove an x left by an earlier attempt.

        Only call this for messages whose snapshot shows the x.
        """
        await self._react(message_id, FAILED_EMOJI, False)
