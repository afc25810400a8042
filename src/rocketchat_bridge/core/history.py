"""Bounded thread transcript for agent context."""

from __future__ import annotations

from collections.abc import Iterable

from rocketchat_bridge.models.message import InboundHistoryEntry, RocketChatMessage

ELLIPSIS = "…"


def build_inbound_history(
    messages: Iterable[RocketChatMessage],
    current_id: str,
    char_budget: int,
) -> list[InboundHistoryEntry]:
    """Assemble prior thread messages under a character budget.

    Newest messages are kept whole; the message that exhausts the budget is
    cut to what remains plus a single ellipsis, and nothing older is
    included. The result is in chronological order.

    Args:
        messages: Thread messages in chronological order
        current_id: Id of the message being handled (excluded)
        char_budget: Maximum number of body characters, ellipsis excluded

    Returns:
        History entries, oldest first
    """
    prior = [m for m in messages if m.message_id != current_id]
    # Stable sort keeps input order for equal timestamps
    chronological = sorted(prior, key=lambda m: m.timestamp_ms)

    remaining = char_budget
    entries: list[InboundHistoryEntry] = []
    for message in reversed(chronological):
        if remaining <= 0:
            break

        body = message.text
        if len(body) <= remaining:
            remaining -= len(body)
        else:
            body = body[:remaining] + ELLIPSIS
            remaining = 0

        entries.append(
            InboundHistoryEntry(
                sender=message.sender_username,
                body=body,
                timestamp_ms=message.timestamp_ms,
            )
        )

    entries.reverse()
    return entries
