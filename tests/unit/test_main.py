"""Tests for the standalone entry point."""

from collections import OrderedDict
from pathlib import Path

import pytest

from rocketchat_bridge.__main__ import load_runtime, parse_args, run_bridge
from rocketchat_bridge.plugin import rocketchat_plugin

CONFIG = """
channels:
  rocketchat:
    url: https://chat.example.com
    authToken: ${BRIDGE_TEST_TOKEN}
    userId: bot-user
    channel: general
logging:
  level: DEBUG
  format: console
"""


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("BRIDGE_TEST_TOKEN", "tok-secret-123")
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    return path


class TestParseArgs:
    """Test command line parsing."""

    def test_defaults(self) -> None:
        args = parse_args([])

        assert args.config == Path("config/config.yaml")
        assert args.debug is False
        assert args.dry_run is False
        assert args.format == "console"
        assert args.runtime is None
        assert args.health_file is None

    def test_all_options(self) -> None:
        args = parse_args(
            [
                "-c",
                "bridge.yaml",
                "-d",
                "--dry-run",
                "--format",
                "json",
                "--health-check",
                "--health-file",
                "/tmp/health.json",
                "--runtime",
                "myagent:build",
            ]
        )

        assert args.config == Path("bridge.yaml")
        assert args.debug is True
        assert args.dry_run is True
        assert args.format == "json"
        assert args.health_check is True
        assert args.health_file == Path("/tmp/health.json")
        assert args.runtime == "myagent:build"


class TestLoadRuntime:
    """Test agent runtime references."""

    def test_object_is_returned_as_is(self) -> None:
        assert load_runtime("rocketchat_bridge.plugin:rocketchat_plugin") is rocketchat_plugin

    def test_factory_is_called(self) -> None:
        assert load_runtime("collections:OrderedDict") == OrderedDict()

    @pytest.mark.parametrize("ref", ["no-colon", ":attr", "module:"])
    def test_malformed_reference(self, ref: str) -> None:
        with pytest.raises(ValueError, match="module:attribute"):
            load_runtime(ref)

    def test_missing_module(self) -> None:
        with pytest.raises(ValueError, match="Cannot load agent runtime"):
            load_runtime("rocketchat_bridge.nope:runtime")


class TestRunBridge:
    """Test startup modes that exit without polling."""

    async def test_dry_run(self, config_file: Path) -> None:
        assert await run_bridge(config_file, dry_run=True) == 0

    async def test_missing_config(self, tmp_path: Path) -> None:
        assert await run_bridge(tmp_path / "missing.yaml", dry_run=True) == 1

    async def test_incomplete_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("channels:\n  rocketchat:\n    url: https://chat.example.com\n")

        assert await run_bridge(path, dry_run=True) == 1

    async def test_requires_runtime(self, config_file: Path) -> None:
        assert await run_bridge(config_file) == 1
