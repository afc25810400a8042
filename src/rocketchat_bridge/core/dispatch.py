"""Hands eligible messages to the agent runtime and interprets the outcome.

For each message the bridge:
1. Clears a stale x from an earlier failed attempt
2. Marks the message as processing (hourglass)
3. Resolves the agent route and builds the inbound context, including
   thread history and downloaded attachments
4. Dispatches to the runtime with deliver/on_error callbacks
5. Marks the message complete or failed based on what the callbacks saw

Only cancellation propagates: every other failure ends as an x on the
message plus a log entry, so one bad message never stops the poll cycle.
"""

from __future__ import annotations

import mimetypes
import shutil
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from rocketchat_bridge.config.accounts import CHANNEL_ID
from rocketchat_bridge.core.history import build_inbound_history
from rocketchat_bridge.core.reactions import FAILED_EMOJI, ReactionMarker
from rocketchat_bridge.models.dispatch import (
    DispatcherOptions,
    DispatchOutcome,
    InboundContext,
    Peer,
    ReplyPayload,
)
from rocketchat_bridge.utils.logging import LogEventNames
from rocketchat_bridge.utils.security import sanitize_filename, sanitize_for_logging

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from rocketchat_bridge.config.schema import RocketChatAccount
    from rocketchat_bridge.interfaces.agent import AgentRuntime
    from rocketchat_bridge.interfaces.chat import ChatClient
    from rocketchat_bridge.models.message import RocketChatMessage

THREAD_CONTEXT_COUNT = 100
DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass
class _DeliveryState:
    delivered: bool = False
    error: BaseException | None = None

    @property
    def outcome(self) -> DispatchOutcome:
        # An error overrides any earlier delivery
        if self.error is not None:
            return DispatchOutcome.DELIVERY_ERROR
        if self.delivered:
            return DispatchOutcome.COMPLETED
        return DispatchOutcome.NO_REPLY


class DispatchBridge:
    """Translates Rocket.Chat messages into agent runtime dispatches.

    Example:
        bridge = DispatchBridge(
            client=client,
            runtime=runtime,
            account=account,
            cfg=cfg,
            room_id="room-1",
        )
        outcome = await bridge.handle(message, reply_thread_id=message.message_id)
    """

    def __init__(
        self,
        *,
        client: ChatClient,
        runtime: AgentRuntime,
        account: RocketChatAccount,
        cfg: Mapping[str, Any],
        room_id: str,
        reactions: ReactionMarker | None = None,
        log: FilteringBoundLogger | None = None,
    ) -> None:
        self._client = client
        self._runtime = runtime
        self._account = account
        self._cfg = cfg
        self._room_id = room_id
        self._log = log or structlog.get_logger()
        self._reactions = reactions or ReactionMarker(client, self._log)

    async def handle(
        self,
        message: RocketChatMessage,
        reply_thread_id: str,
        thread_starter: str | None = None,
    ) -> DispatchOutcome:
        """Process one eligible message end to end.

        Args:
            message: The message to hand to the agent
            reply_thread_id: Thread the reply is posted into
            thread_starter: Root message body, when already known

        Returns:
            How the dispatch ended
        """
        message_id = message.message_id

        if message.has_reaction(FAILED_EMOJI):
            await self._reactions.clear_failed(message_id)
        await self._reactions.mark_processing(message_id)

        self._log.info(
            LogEventNames.MESSAGE_DISPATCHING,
            message_id=message_id,
            sender=message.sender_username,
            thread_id=reply_thread_id,
            preview=sanitize_for_logging(message.text, max_length=80),
        )

        media_dir: Path | None = None
        try:
            route = self._runtime.resolve_agent_route(
                cfg=self._cfg,
                channel=CHANNEL_ID,
                account_id=self._account.account_id,
                peer=Peer(kind="group", id=message.sender_id),
            )
            ctx = self._build_context(message, route.session_key)
            await self._attach_thread_context(ctx, message, reply_thread_id, thread_starter)
            if message.files:
                media_dir = Path(tempfile.mkdtemp(prefix="rocketchat-"))
                await self._attach_media(ctx, message, media_dir)

            state = _DeliveryState()
            await self._runtime.dispatch_reply_with_buffered_block_dispatcher(
                ctx=ctx,
                cfg=self._cfg,
                reply_options={},
                dispatcher_options=self._dispatcher_options(message_id, reply_thread_id, state),
            )
            outcome = state.outcome
        except Exception as e:
            self._log.error(LogEventNames.DISPATCH_FAILED, message_id=message_id, error=str(e))
            outcome = DispatchOutcome.DISPATCH_ERROR
        finally:
            if media_dir is not None:
                shutil.rmtree(media_dir, ignore_errors=True)

        if outcome.succeeded:
            await self._reactions.mark_complete(message_id)
            self._log.info(LogEventNames.MESSAGE_COMPLETED, message_id=message_id)
        else:
            await self._reactions.mark_failed(message_id)
            if outcome is DispatchOutcome.NO_REPLY:
                self._log.warning(LogEventNames.NO_REPLY_DELIVERED, message_id=message_id)

        return outcome

    def _dispatcher_options(
        self,
        message_id: str,
        reply_thread_id: str,
        state: _DeliveryState,
    ) -> DispatcherOptions:
        async def deliver(payload: ReplyPayload) -> None:
            if not payload.text:
                self._log.debug("empty_reply_skipped", message_id=message_id)
                return
            await self._client.post_message(self._room_id, payload.text, thread_id=reply_thread_id)
            state.delivered = True

        def on_error(err: BaseException) -> None:
            state.error = err
            self._log.error(
                LogEventNames.REPLY_DELIVERY_FAILED,
                message_id=message_id,
                error=str(err),
            )

        return DispatcherOptions(deliver=deliver, on_error=on_error)

    def _build_context(self, message: RocketChatMessage, session_key: str) -> InboundContext:
        to_addr = f"channel:{self._account.channel}"
        return InboundContext(
            body=message.text,
            from_addr=f"{CHANNEL_ID}:{message.sender_id}",
            to_addr=to_addr,
            session_key=session_key,
            account_id=self._account.account_id,
            sender_id=message.sender_id,
            sender_username=message.sender_username,
            message_sid=message.message_id,
            timestamp_ms=message.timestamp_ms,
        )

    async def _attach_thread_context(
        self,
        ctx: InboundContext,
        message: RocketChatMessage,
        reply_thread_id: str,
        thread_starter: str | None,
    ) -> None:
        """Add prior thread messages and the starter body to ``ctx``.

        A message is in a thread when it names a parent, or when it arrived
        through a thread poll. Failures leave the context without history.
        """
        thread_id = message.thread_parent
        if thread_id is None and reply_thread_id != message.message_id:
            thread_id = reply_thread_id
        if thread_id is None:
            return

        ctx.message_thread_id = thread_id
        ctx.thread_starter_body = thread_starter

        try:
            replies = await self._fetch_recent_replies(thread_id)
        except Exception as e:
            self._log.warning(
                LogEventNames.THREAD_CONTEXT_FAILED,
                message_id=message.message_id,
                thread_id=thread_id,
                error=str(e),
            )
        else:
            ctx.inbound_history = build_inbound_history(
                replies,
                message.message_id,
                self._account.thread_context_chars,
            )

        if ctx.thread_starter_body is None:
            ctx.thread_starter_body = await self._fetch_thread_starter(message, thread_id)

    async def _fetch_recent_replies(self, thread_id: str) -> tuple[RocketChatMessage, ...]:
        """Fetch the newest ``THREAD_CONTEXT_COUNT`` replies of a thread.

        Replies come back oldest first, so a longer thread takes a second
        request for its tail.
        """
        page = await self._client.fetch_thread_replies(
            thread_id, count=THREAD_CONTEXT_COUNT, offset=0
        )
        if page.total is None or page.total <= THREAD_CONTEXT_COUNT:
            return page.messages

        page = await self._client.fetch_thread_replies(
            thread_id,
            count=THREAD_CONTEXT_COUNT,
            offset=page.total - THREAD_CONTEXT_COUNT,
        )
        return page.messages

    async def _fetch_thread_starter(
        self,
        message: RocketChatMessage,
        thread_id: str,
    ) -> str | None:
        # Thread pages never include the root itself
        try:
            root = await self._client.fetch_message(thread_id)
        except Exception as e:
            self._log.warning(
                LogEventNames.THREAD_STARTER_FAILED,
                message_id=message.message_id,
                thread_id=thread_id,
                error=str(e),
            )
            return None
        return root.text

    async def _attach_media(
        self,
        ctx: InboundContext,
        message: RocketChatMessage,
        media_dir: Path,
    ) -> None:
        """Download uploaded files into ``media_dir``, which the caller removes.

        Link previews (attachments without an uploaded file) are ignored.
        Download failures are logged and the message continues without the
        file.
        """
        paths: list[str] = []
        types: list[str] = []

        for index, file in enumerate(message.files):
            url = message.attachment_url(file, index)
            if url is None:
                self._log.warning(
                    LogEventNames.ATTACHMENT_DOWNLOAD_FAILED,
                    message_id=message.message_id,
                    file=file.name,
                    error="no download link",
                )
                continue

            name = sanitize_filename(file.name)
            destination = media_dir / name
            if destination.exists():
                destination = media_dir / f"{index}-{name}"

            try:
                await self._client.download_attachment(url, destination)
            except Exception as e:
                self._log.warning(
                    LogEventNames.ATTACHMENT_DOWNLOAD_FAILED,
                    message_id=message.message_id,
                    file=file.name,
                    error=str(e),
                )
                continue

            paths.append(str(destination))
            types.append(
                file.content_type or mimetypes.guess_type(name)[0] or DEFAULT_MEDIA_TYPE
            )

        if paths:
            ctx.media_path = paths[0]
            ctx.media_type = types[0]
        if len(paths) > 1:
            ctx.media_paths = paths
            ctx.media_types = types
