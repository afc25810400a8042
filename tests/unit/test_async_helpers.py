"""Tests for retry and cancellation helpers."""

import asyncio

import httpx
import pytest

from rocketchat_bridge.adapters.chat.rocketchat import RemoteApiError, RocketChatError
from rocketchat_bridge.utils.async_helpers import (
    BridgeError,
    CancellationToken,
    create_retry,
    sleep_unless_cancelled,
)

fast_retry = create_retry(max_attempts=3, min_wait=0, max_wait=0)


class TestExceptions:
    """Test the exception hierarchy."""

    def test_adapter_errors_share_base(self) -> None:
        assert issubclass(RocketChatError, BridgeError)
        assert issubclass(RemoteApiError, RocketChatError)

    def test_remote_api_error_fields(self) -> None:
        error = RemoteApiError("GET", "/channels.info", 404, "not found")
        assert error.status_code == 404
        assert error.path == "/channels.info"
        assert "404" in str(error)
        assert "not found" in str(error)


class TestRetryDecorator:
    """Test retry decorator functionality."""

    async def test_succeeds_first_try(self) -> None:
        """Successful calls don't trigger retry."""
        call_count = 0

        @fast_retry
        async def successful_call() -> str:
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_call() == "success"
        assert call_count == 1

    async def test_retries_on_timeout(self) -> None:
        call_count = 0

        @fast_retry
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise httpx.TimeoutException("timeout")
            return "success"

        assert await flaky_call() == "success"
        assert call_count == 3

    async def test_gives_up_after_max_attempts(self) -> None:
        call_count = 0

        @fast_retry
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await always_fails()
        assert call_count == 3

    async def test_does_not_retry_api_errors(self) -> None:
        """A non-2xx answer is final, only transport failures are retried."""
        call_count = 0

        @fast_retry
        async def rejected() -> str:
            nonlocal call_count
            call_count += 1
            raise RemoteApiError("GET", "/me", 401, "unauthorized")

        with pytest.raises(RemoteApiError):
            await rejected()
        assert call_count == 1


class TestCancellationToken:
    """Test cooperative cancellation."""

    def test_initial_state(self) -> None:
        token = CancellationToken()
        assert token.is_cancelled is False

    def test_cancel(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled is True

    async def test_wait_completes_on_cancel(self) -> None:
        token = CancellationToken()

        async def cancel_soon() -> None:
            await asyncio.sleep(0.01)
            token.cancel()

        asyncio.create_task(cancel_soon())
        await asyncio.wait_for(token.wait(), timeout=1.0)
        assert token.is_cancelled


class TestSleepUnlessCancelled:
    """Test the interruptible poll sleep."""

    async def test_full_sleep_without_cancel(self) -> None:
        token = CancellationToken()
        assert await sleep_unless_cancelled(0.01, token) is False

    async def test_returns_immediately_when_already_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel()

        loop = asyncio.get_running_loop()
        start = loop.time()
        assert await sleep_unless_cancelled(10, token) is True
        assert loop.time() - start < 1

    async def test_wakes_early_on_cancel(self) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        result = await asyncio.wait_for(sleep_unless_cancelled(10, token), timeout=2.0)
        assert result is True

    async def test_without_token(self) -> None:
        assert await sleep_unless_cancelled(0, None) is False
