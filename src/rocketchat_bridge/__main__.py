"""Entry point for running the Rocket.Chat bridge standalone.

This module provides the main entry point for the bridge.
It handles:
- Configuration loading
- Logging setup with secret sanitization
- Agent runtime loading
- Monitor lifecycle for every enabled account
- Signal handling for graceful shutdown
"""

import argparse
import asyncio
import importlib
import json
import signal
import sys
from pathlib import Path
from typing import Any

import structlog

from rocketchat_bridge._version import __version__

log = structlog.get_logger()


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from rocketchat_bridge.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="rocketchat-bridge",
        description="Rocket.Chat bridge - poll channels and hand messages to an agent runtime",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without starting any monitor",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Probe every configured account and exit",
    )

    parser.add_argument(
        "--health-file",
        type=Path,
        default=None,
        help="Also write the health report as JSON to this path",
    )

    parser.add_argument(
        "--runtime",
        default=None,
        metavar="MODULE:ATTR",
        help="Agent runtime, or a zero-argument factory returning one",
    )

    return parser.parse_args(argv)


def load_runtime(ref: str) -> Any:
    """Import an agent runtime from a ``module:attribute`` reference.

    A callable attribute without the runtime methods is treated as a factory
    and called with no arguments.

    Raises:
        ValueError: If the reference is malformed or cannot be imported
    """
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Runtime must be given as 'module:attribute', got {ref!r}")

    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Cannot load agent runtime {ref!r}: {e}") from e

    if not hasattr(target, "dispatch_reply_with_buffered_block_dispatcher") and callable(target):
        target = target()
    return target


async def run_monitors(cfg: dict[str, Any], runtime: Any) -> int:
    """Run one monitor per enabled account until SIGINT/SIGTERM.

    Returns:
        Exit code (0 unless every monitor failed to start)
    """
    from rocketchat_bridge.plugin import rocketchat_plugin
    from rocketchat_bridge.utils.async_helpers import CancellationToken

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, token.cancel)
        log.debug("signal_handler_registered", signal=sig.name)

    tasks: dict[str, asyncio.Task[None]] = {}
    for account_id in rocketchat_plugin.list_account_ids(cfg):
        account = rocketchat_plugin.resolve_account(cfg, account_id)
        if account is None or not account.enabled:
            log.info("account_disabled", account_id=account_id)
            continue
        task = rocketchat_plugin.start_account(cfg, account_id, token, runtime=runtime)
        if task is not None:
            tasks[account_id] = task

    if not tasks:
        log.error("no_accounts_started")
        return 1

    results = await asyncio.gather(*tasks.values(), return_exceptions=True)
    failures = 0
    for account_id, result in zip(tasks, results, strict=True):
        if isinstance(result, BaseException):
            failures += 1
            log.error("monitor_failed", account_id=account_id, error=str(result))

    return 1 if failures == len(tasks) else 0


async def run_bridge(
    config_path: Path,
    dry_run: bool = False,
    health_check: bool = False,
    health_file: Path | None = None,
    runtime_ref: str | None = None,
) -> int:
    """Run the bridge.

    Args:
        config_path: Path to configuration file
        dry_run: If True, only validate config without starting
        health_check: If True, run health check and exit
        health_file: Where to write the health report, if anywhere
        runtime_ref: ``module:attribute`` of the agent runtime

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log.info(
        "starting_rocketchat_bridge",
        version=__version__,
        config_path=str(config_path),
    )

    try:
        from rocketchat_bridge.config.loader import load_config

        log.info("loading_configuration", path=str(config_path))
        config = load_config(config_path)
        log.info("configuration_loaded")

        from rocketchat_bridge.config.accounts import list_account_ids, resolve_account
        from rocketchat_bridge.utils.logging import configure_logging, register_secrets

        cfg = config.host_config()
        secrets = []
        for account_id in list_account_ids(cfg):
            account = resolve_account(cfg, account_id)
            if account is not None:
                secrets.append(account.auth_token)
        register_secrets(secrets)

        # Reconfigure logging from config file settings
        configure_logging(
            level=config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

        if dry_run:
            from rocketchat_bridge.utils.security import mask_config_value

            for account_id in list_account_ids(cfg):
                account = resolve_account(cfg, account_id)
                if account is None:
                    continue
                log.info(
                    "dry_run_account",
                    account_id=account_id,
                    url=account.url,
                    channel=account.channel,
                    enabled=account.enabled,
                    auth_token=mask_config_value("authToken", account.auth_token),
                )
            log.info("dry_run_mode_config_valid", accounts=list_account_ids(cfg))
            return 0

        if health_check:
            from rocketchat_bridge.utils.health import HealthChecker, write_health_file

            checker = HealthChecker(cfg)
            report = await checker.run_all_checks()
            if health_file is not None:
                write_health_file(report, health_file)
            else:
                print(json.dumps(report.to_dict(), indent=2))

            if report.healthy:
                log.info("health_check_passed", details=report.details)
                return 0
            log.error("health_check_failed", details=report.details)
            return 1

        ref = runtime_ref or config.runtime
        if not ref:
            log.error("agent_runtime_not_configured")
            return 1
        runtime = load_runtime(ref)
        log.info("agent_runtime_loaded", runtime=ref)

        return await run_monitors(cfg, runtime)

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(
        debug=args.debug,
        log_format=args.format,
    )

    try:
        return asyncio.run(
            run_bridge(
                args.config,
                dry_run=args.dry_run,
                health_check=args.health_check,
                health_file=args.health_file,
                runtime_ref=args.runtime,
            )
        )
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
