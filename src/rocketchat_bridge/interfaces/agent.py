"""Abstract interface for the agent runtime that handles inbound messages."""

from collections.abc import Mapping
from typing import Any, Protocol

from ..models.dispatch import AgentRoute, DispatcherOptions, InboundContext, Peer


class AgentRuntime(Protocol):
    """The host's agent-dispatch runtime.

    The runtime is passed explicitly to the monitor and the plugin; there is
    no process-wide registry to populate first.
    """

    def resolve_agent_route(
        self,
        *,
        cfg: Mapping[str, Any],
        channel: str,
        account_id: str,
        peer: Peer,
    ) -> AgentRoute:
        """
        Pick the agent session for a message.

        Must be synchronous and deterministic for the same inputs.
        """
        ...

    async def dispatch_reply_with_buffered_block_dispatcher(
        self,
        *,
        ctx: InboundContext,
        cfg: Mapping[str, Any],
        reply_options: Mapping[str, Any],
        dispatcher_options: DispatcherOptions,
    ) -> None:
        """
        Run the agent on ``ctx`` and stream its output back.

        ``dispatcher_options.deliver`` may be awaited zero or more times;
        ``dispatcher_options.on_error`` is called when delivery fails.
        Exceptions raised here mark the message failed.
        """
        ...
