"""Polling engine that reconciles one Rocket.Chat channel with the agent.

Rocket.Chat is polled over REST rather than streamed. Each cycle re-reads a
fixed window of recent channel messages, then polls every tracked thread for
replies past its offset. Reactions on the server and the in-memory processed
set together make the re-reads idempotent.

One monitor runs per account. Messages are handled strictly one at a time,
so the processed set and thread offsets never see concurrent updates.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from rocketchat_bridge.adapters.chat.rocketchat import RocketChatClient
from rocketchat_bridge.core.dispatch import DispatchBridge
from rocketchat_bridge.core.filters import MessageFilter
from rocketchat_bridge.core.reactions import ReactionMarker
from rocketchat_bridge.core.threads import DEFAULT_THREAD_PAGE_SIZE, ThreadTracker
from rocketchat_bridge.models.dispatch import DispatchOutcome
from rocketchat_bridge.utils.async_helpers import (
    BridgeError,
    CancellationToken,
    sleep_unless_cancelled,
)
from rocketchat_bridge.utils.logging import LogEventNames

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from rocketchat_bridge.config.schema import RocketChatAccount
    from rocketchat_bridge.interfaces.agent import AgentRuntime
    from rocketchat_bridge.interfaces.chat import ChatClient
    from rocketchat_bridge.models.message import RocketChatMessage

CHANNEL_HISTORY_COUNT = 20


class MonitorError(BridgeError):
    """Base exception for polling engine errors."""


class StartupError(MonitorError):
    """The monitor could not start (channel resolution failed)."""


class MonitorState(Enum):
    """Lifecycle of a monitor."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


class RocketChatMonitor:
    """Polls one account's channel and its active threads until cancelled.

    The monitor creates its own client from the account unless one is
    passed in, and only closes clients it created.

    Example:
        token = CancellationToken()
        monitor = RocketChatMonitor(account, cfg, runtime, abort_signal=token)
        task = asyncio.create_task(monitor.run())
        ...
        token.cancel()
        await task
    """

    def __init__(
        self,
        account: RocketChatAccount,
        cfg: Mapping[str, Any],
        runtime: AgentRuntime,
        *,
        client: ChatClient | None = None,
        abort_signal: CancellationToken | None = None,
        log: FilteringBoundLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._account = account
        self._cfg = cfg
        self._runtime = runtime
        self._owns_client = client is None
        self._client: ChatClient = client or RocketChatClient.from_account(account)
        self._abort = abort_signal or CancellationToken()
        self._log = (log or structlog.get_logger()).bind(
            account_id=account.account_id,
            channel=account.channel,
        )

        self._filter = MessageFilter(bot_user_id=account.user_id)
        self._threads = ThreadTracker(ttl_seconds=account.thread_ttl_seconds, clock=clock)
        self._reactions = ReactionMarker(self._client, self._log)
        self._bridge: DispatchBridge | None = None
        self._room_id: str | None = None

        self._state = MonitorState.STARTING
        self._messages_dispatched = 0
        self._messages_completed = 0
        self._messages_failed = 0
        self._poll_errors = 0

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def room_id(self) -> str | None:
        return self._room_id

    @property
    def threads(self) -> ThreadTracker:
        return self._threads

    @property
    def stats(self) -> dict[str, int]:
        """Return processing statistics."""
        return {
            "messages_dispatched": self._messages_dispatched,
            "messages_completed": self._messages_completed,
            "messages_failed": self._messages_failed,
            "poll_errors": self._poll_errors,
            "active_threads": len(self._threads),
        }

    async def run(self) -> None:
        """Resolve the channel, then poll until the abort signal fires.

        Raises:
            StartupError: If the channel cannot be resolved
        """
        try:
            await self.start()
            self._state = MonitorState.RUNNING
            while not self._abort.is_cancelled:
                await self.poll_once()
                if await sleep_unless_cancelled(self._account.poll_interval, self._abort):
                    break
        finally:
            self._state = MonitorState.STOPPED
            if self._owns_client:
                await self._client.aclose()

        self._log.info(
            LogEventNames.MONITOR_STOPPED,
            message="Rocket.Chat monitor stopped",
            **self.stats,
        )

    async def start(self) -> None:
        """Resolve the channel and prepare the dispatch bridge.

        Raises:
            StartupError: If the channel cannot be resolved
        """
        try:
            info = await self._client.resolve_channel(self._account.channel)
        except Exception as e:
            self._log.error(LogEventNames.CHANNEL_RESOLUTION_FAILED, error=str(e))
            raise StartupError(
                f"Failed to resolve channel #{self._account.channel}: {e}"
            ) from e

        self._room_id = info.room_id
        self._bridge = DispatchBridge(
            client=self._client,
            runtime=self._runtime,
            account=self._account,
            cfg=self._cfg,
            room_id=info.room_id,
            reactions=self._reactions,
            log=self._log,
        )
        self._log.info(
            LogEventNames.MONITOR_STARTED,
            room_id=info.room_id,
            poll_interval=self._account.poll_interval,
        )

    async def poll_once(self) -> None:
        """Run one reconciliation cycle: channel window, then threads."""
        if self._room_id is None:
            raise MonitorError("Monitor has not resolved its channel")
        if self._abort.is_cancelled:
            return

        try:
            newest_first = await self._client.fetch_channel_history(
                self._room_id, count=CHANNEL_HISTORY_COUNT
            )
        except Exception as e:
            self._poll_errors += 1
            self._log.warning(LogEventNames.POLL_FAILED, error=str(e))
            return

        batch = list(reversed(newest_first))

        for message in batch:
            if self._threads.observe(message):
                self._log.debug(LogEventNames.THREAD_TRACKED, thread_id=message.message_id)

        for message in batch:
            if self._abort.is_cancelled:
                return
            await self._process(message, message.thread_parent or message.message_id)

        pruned = self._threads.prune()
        if pruned:
            self._log.debug(LogEventNames.THREADS_PRUNED, thread_ids=pruned)

        await self._poll_threads()

    async def _poll_threads(self) -> None:
        for state in self._threads.active():
            if self._abort.is_cancelled:
                return

            try:
                page = await self._client.fetch_thread_replies(
                    state.thread_id,
                    count=DEFAULT_THREAD_PAGE_SIZE,
                    offset=state.offset,
                )
            except Exception as e:
                self._poll_errors += 1
                self._log.warning(
                    LogEventNames.THREAD_POLL_FAILED,
                    thread_id=state.thread_id,
                    error=str(e),
                )
                continue

            try:
                for reply in page.messages:
                    if self._abort.is_cancelled:
                        break
                    await self._process(reply, state.thread_id)
            finally:
                # The whole page counts as consumed, even if cut short
                self._threads.advance(state.thread_id, len(page.messages))

    async def _process(self, message: RocketChatMessage, reply_thread_id: str) -> None:
        decision = self._filter.admit(message)
        if not decision.eligible:
            self._log.debug(
                LogEventNames.MESSAGE_SKIPPED,
                message_id=message.message_id,
                reason=decision.reason.value if decision.reason else None,
            )
            return

        if self._bridge is None:
            raise MonitorError("Monitor has not resolved its channel")
        starter = None
        tracked = self._threads.get(reply_thread_id)
        if tracked is not None and reply_thread_id != message.message_id:
            starter = tracked.starter_body

        self._messages_dispatched += 1
        outcome = await self._bridge.handle(message, reply_thread_id, thread_starter=starter)
        if outcome is DispatchOutcome.COMPLETED:
            self._messages_completed += 1
        else:
            self._messages_failed += 1


async def monitor_rocketchat(
    account: RocketChatAccount,
    cfg: Mapping[str, Any],
    runtime: AgentRuntime,
    *,
    abort_signal: CancellationToken | None = None,
    client: ChatClient | None = None,
    log: FilteringBoundLogger | None = None,
) -> None:
    """Run a monitor for ``account`` until ``abort_signal`` is cancelled."""
    monitor = RocketChatMonitor(
        account,
        cfg,
        runtime,
        client=client,
        abort_signal=abort_signal,
        log=log,
    )
    await monitor.run()
