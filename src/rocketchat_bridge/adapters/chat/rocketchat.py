"""Rocket.Chat REST adapter using httpx.

This module implements the ChatClient protocol against the Rocket.Chat
REST API (``/api/v1``). The client is stateless apart from its connection
pool: every call carries the account's ``X-Auth-Token`` / ``X-User-Id``
headers, and any non-2xx response raises RemoteApiError.

Idempotent reads are retried on transient transport failures. Writes are
not: ``chat.react`` toggles, so a retried call can undo the first one.
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Any

import httpx
import structlog

from ...models.message import ChannelInfo, IdentityProbe, RocketChatMessage, ThreadPage
from ...utils.async_helpers import BridgeError, api_retry

log = structlog.get_logger()

API_PREFIX = "/api/v1"


class RocketChatError(BridgeError):
    """Base exception for Rocket.Chat adapter errors."""


class RemoteApiError(RocketChatError):
    """Raised when the Rocket.Chat API answers with a non-success status."""

    def __init__(self, method: str, path: str, status_code: int, body: str) -> None:
        super().__init__(f"Rocket.Chat API {method} {path} failed ({status_code}): {body}")
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body


class RocketChatClient:
    """Async client for the Rocket.Chat calls the bridge needs.

    Example:
        async with RocketChatClient(url, auth_token, user_id) as client:
            info = await client.resolve_channel("general")
            history = await client.fetch_channel_history(info.room_id)
    """

    def __init__(
        self,
        url: str,
        auth_token: str,
        user_id: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: Server base URL, e.g. ``https://chat.example.com``.
            auth_token: Personal access or login token.
            user_id: Id of the user the token belongs to.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._url = url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._url,
            headers={
                "X-Auth-Token": auth_token,
                "X-User-Id": user_id,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_account(
        cls,
        account: Any,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RocketChatClient:
        """Build a client from a RocketChatAccount."""
        return cls(
            account.url,
            account.auth_token,
            account.user_id,
            timeout=account.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> RocketChatClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._http.request(method, f"{API_PREFIX}{path}", params=params, json=json)
        if not response.is_success:
            body = response.text or response.reason_phrase
            log.debug(
                "rocketchat_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise RemoteApiError(method, path, response.status_code, body)

        data: dict[str, Any] = response.json()
        return data

    @api_retry
    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, json=body)

    async def get_me(self) -> dict[str, Any]:
        """Return the authenticated user's profile."""
        return await self._get("/me")

    async def resolve_channel(self, name: str) -> ChannelInfo:
        """Resolve a channel name to its room id.

        Raises:
            RemoteApiError: If the channel does not exist or is not visible.
        """
        data = await self._get("/channels.info", {"roomName": name.lstrip("#")})
        channel = data.get("channel") or {}
        return ChannelInfo(room_id=channel["_id"], name=channel.get("name", name))

    async def fetch_channel_history(self, room_id: str, count: int = 20) -> list[RocketChatMessage]:
        """Fetch the most recent messages of a channel, newest first."""
        data = await self._get("/channels.history", {"roomId": room_id, "count": count})
        return [RocketChatMessage.from_api(m) for m in data.get("messages") or []]

    async def fetch_thread_replies(
        self,
        thread_id: str,
        count: int = 50,
        offset: int = 0,
    ) -> ThreadPage:
        """Fetch one page of replies in a thread."""
        data = await self._get(
            "/chat.getThreadMessages",
            {"tmid": thread_id, "count": count, "offset": offset},
        )
        messages = tuple(RocketChatMessage.from_api(m) for m in data.get("messages") or [])
        total = data.get("total")
        return ThreadPage(messages=messages, total=int(total) if total is not None else None)

    async def fetch_message(self, message_id: str) -> RocketChatMessage:
        """Fetch a single message by id, e.g. a thread's root.

        Raises:
            RemoteApiError: If the message does not exist or is not visible.
        """
        data = await self._get("/chat.getMessage", {"msgId": message_id})
        return RocketChatMessage.from_api(data.get("message") or {})

    async def post_message(self, room_id: str, text: str, thread_id: str | None = None) -> str:
        """Post a message, optionally as a thread reply.

        Returns:
            The new message's id.
        """
        body: dict[str, Any] = {"roomId": room_id, "text": text}
        if thread_id:
            body["tmid"] = thread_id

        data = await self._post("/chat.postMessage", body)
        message_id = str((data.get("message") or {}).get("_id", ""))
        log.debug("message_posted", room_id=room_id, message_id=message_id, thread_id=thread_id)
        return message_id

    async def set_reaction(self, message_id: str, emoji: str, should_react: bool) -> None:
        """Apply or remove a reaction.

        The server treats this as a toggle: ``should_react=False`` for an emoji
        that is not present adds it. Callers must only remove reactions they
        know to be present.
        """
        await self._post(
            "/chat.react",
            {"messageId": message_id, "emoji": emoji, "shouldReact": should_react},
        )

    async def download_attachment(self, remote_url: str, destination: Path) -> None:
        """Stream a file upload to ``destination``.

        ``remote_url`` is usually a server-relative ``/file-upload/...`` link.
        Absolute links to another host are refused so the auth headers never
        leave the server.

        Raises:
            RocketChatError: If the link points at a foreign host.
            RemoteApiError: If the server answers with a non-success status.
        """
        target = httpx.URL(remote_url)
        if target.is_absolute_url and target.host != httpx.URL(self._url).host:
            raise RocketChatError(f"Refusing to download from foreign host {target.host}")

        async with self._http.stream("GET", remote_url) as response:
            if not response.is_success:
                body = (await response.aread()).decode(errors="replace") or response.reason_phrase
                raise RemoteApiError("GET", remote_url, response.status_code, body)

            with destination.open("wb") as fh:
                async for chunk in response.aiter_bytes():
                    fh.write(chunk)

    async def probe_identity(self) -> IdentityProbe:
        """Resolve the bot's identity. Never raises."""
        try:
            data = await self.get_me()
        except Exception as e:
            log.debug("identity_probe_failed", error=str(e))
            return IdentityProbe(ok=False)
        return IdentityProbe(ok=True, username=data.get("username"), user_id=data.get("_id"))
