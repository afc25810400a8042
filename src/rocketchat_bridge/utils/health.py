"""Health check utilities for monitoring service health.

This module provides health check capabilities for the bridge:
- Validate the Rocket.Chat account configuration
- Check each account's connectivity by resolving the bot identity
- Generate health status reports
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from rocketchat_bridge.config.accounts import is_configured, list_account_ids, resolve_account

if TYPE_CHECKING:
    from rocketchat_bridge.config.schema import RocketChatAccount
    from rocketchat_bridge.interfaces.chat import ChatClient

log = structlog.get_logger()

ClientFactory = Callable[["RocketChatAccount"], "ChatClient"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == HealthStatus.HEALTHY


@dataclass
class HealthReport:
    """Overall health report."""

    healthy: bool
    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
            "details": self.details,
        }


class HealthChecker:
    """Checks configuration and Rocket.Chat connectivity for every account.

    Example:
        checker = HealthChecker(config.host_config())
        report = await checker.run_all_checks()
        if not report.healthy:
            print(report.to_dict())
    """

    def __init__(
        self,
        cfg: Mapping[str, Any],
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the health checker.

        Args:
            cfg: Host configuration mapping (``channels.rocketchat``)
            client_factory: Builds a client for an account; defaults to the
                HTTP client
        """
        self._cfg = cfg
        if client_factory is None:
            from rocketchat_bridge.adapters.chat.rocketchat import RocketChatClient

            client_factory = RocketChatClient.from_account
        self._client_factory = client_factory

    async def run_all_checks(self) -> HealthReport:
        """Run the config check plus one connectivity check per account."""
        log.info("health_check_start")
        start_time = datetime.now(UTC)

        checks = [self._check_config()]

        accounts = []
        for account_id in list_account_ids(self._cfg):
            try:
                account = resolve_account(self._cfg, account_id)
            except ValueError:
                # Reported by the config check
                continue
            if account is not None and account.enabled and account.is_configured:
                accounts.append(account)

        results = await asyncio.gather(
            *(self.check_account(account) for account in accounts),
            return_exceptions=True,
        )
        for account, result in zip(accounts, results, strict=True):
            if isinstance(result, BaseException):
                checks.append(
                    CheckResult(
                        name=f"rocketchat:{account.account_id}",
                        status=HealthStatus.UNHEALTHY,
                        message=f"Check failed with exception: {result}",
                    )
                )
            else:
                checks.append(result)

        if all(c.status == HealthStatus.HEALTHY for c in checks):
            overall_status = HealthStatus.HEALTHY
            healthy = True
        elif any(c.status == HealthStatus.UNHEALTHY for c in checks):
            overall_status = HealthStatus.UNHEALTHY
            healthy = False
        else:
            overall_status = HealthStatus.DEGRADED
            healthy = True

        report = HealthReport(
            healthy=healthy,
            status=overall_status,
            timestamp=start_time,
            checks=checks,
            details={
                "total_checks": len(checks),
                "healthy_checks": sum(1 for c in checks if c.status == HealthStatus.HEALTHY),
                "unhealthy_checks": sum(1 for c in checks if c.status == HealthStatus.UNHEALTHY),
            },
        )

        log.info(
            "health_check_complete",
            healthy=healthy,
            status=overall_status.value,
            checks_run=len(checks),
        )
        return report

    def _check_config(self) -> CheckResult:
        account_ids = list_account_ids(self._cfg)
        if not account_ids:
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message="No Rocket.Chat accounts configured",
            )

        incomplete: list[str] = []
        for account_id in account_ids:
            try:
                account = resolve_account(self._cfg, account_id)
            except ValueError:
                incomplete.append(account_id)
                continue
            if account is None or not is_configured(account) or not account.channel:
                incomplete.append(account_id)

        if incomplete:
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message=f"Incomplete accounts: {', '.join(incomplete)}",
                details={"accounts": account_ids},
            )

        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details={"accounts": account_ids},
        )

    async def check_account(self, account: RocketChatAccount) -> CheckResult:
        """Resolve the bot identity for one account and time the round trip."""
        name = f"rocketchat:{account.account_id}"
        client = self._client_factory(account)
        start = time.monotonic()
        try:
            probe = await client.probe_identity()
        finally:
            await client.aclose()
        latency = (time.monotonic() - start) * 1000

        if not probe.ok:
            return CheckResult(
                name=name,
                status=HealthStatus.UNHEALTHY,
                message="Failed to connect to Rocket.Chat",
                latency_ms=latency,
            )

        return CheckResult(
            name=name,
            status=HealthStatus.HEALTHY,
            message=f"Connected as {probe.username or account.username or probe.user_id}",
            latency_ms=latency,
            details={"user_id": probe.user_id, "url": account.url},
        )


def write_health_file(report: HealthReport, path: Path) -> None:
    """Write health report to a file for external monitoring.

    Args:
        report: Health report to write
        path: File path to write to
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_dict(), indent=2))
        log.debug("health_file_written", path=str(path))
    except OSError as e:
        log.error("health_file_write_error", path=str(path), error=str(e))
