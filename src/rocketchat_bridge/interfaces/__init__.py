"""Protocol definitions for the chat service and the agent runtime."""

from .agent import AgentRuntime
from .chat import ChatClient

__all__ = ["AgentRuntime", "ChatClient"]
