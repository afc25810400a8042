"""Core polling and dispatch components.

This module exports the main building blocks:
- RocketChatMonitor: Polling engine for one account
- DispatchBridge: Hands eligible messages to the agent runtime
- MessageFilter: Eligibility rules and deduplication
- ThreadTracker: Active thread discovery and offsets
- ReactionMarker: Processing/complete/failed reactions
- build_inbound_history: Budgeted thread transcript
"""

from rocketchat_bridge.core.dispatch import DispatchBridge
from rocketchat_bridge.core.filters import FilterDecision, MessageFilter, ProcessedSet, SkipReason
from rocketchat_bridge.core.history import build_inbound_history
from rocketchat_bridge.core.monitor import (
    MonitorError,
    MonitorState,
    RocketChatMonitor,
    StartupError,
    monitor_rocketchat,
)
from rocketchat_bridge.core.reactions import ReactionMarker
from rocketchat_bridge.core.threads import ThreadState, ThreadTracker

__all__ = [
    "DispatchBridge",
    "FilterDecision",
    "MessageFilter",
    "MonitorError",
    "MonitorState",
    "ProcessedSet",
    "ReactionMarker",
    "RocketChatMonitor",
    "SkipReason",
    "StartupError",
    "ThreadState",
    "ThreadTracker",
    "build_inbound_history",
    "monitor_rocketchat",
]
