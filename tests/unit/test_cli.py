#
# tests/unit/test_cli.py
#
"""
Tests for the resultbridge command line.
"""

import logging
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from resultbridge.cli.main import __version__, cli

ENV_VARS = (
    "RESULTBRIDGE_CONF",
    "RESULTBRIDGE_LOG_LEVEL",
    "RESULTBRIDGE_LOG_FILE",
    "RESULTBRIDGE_JSON_LOGS",
    "FORCE_COLOR",
)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch):
    """Keeps a stray resultbridge.toml out of the way and drops CLI log handlers."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    original = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in original:
            root.removeHandler(handler)


@pytest.fixture
def output_file(tmp_path: Path):
    def _write(text: str) -> Path:
        path = tmp_path / "captured.log"
        path.write_bytes(text.encode())
        return path

    return _write


class TestMainCLI:
    def test_cli_help(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "resultbridge" in result.output.lower()
        assert "run" in result.output
        assert "replay" in result.output
        assert "config" in result.output

    def test_cli_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_log_level(self) -> None:
        result = CliRunner().invoke(cli, ["--log-level", "LOUD", "config", "show"])
        assert result.exit_code == 2


class TestReplayCommand:
    def test_replay_reports_fallback_failure(self, output_file, tests_file: Path) -> None:
        captured = output_file("✓ auth - login works 12ms\n")

        result = CliRunner().invoke(
            cli, ["replay", str(captured), "-t", str(tests_file), "-s", "auth", "--exit-code", "1"]
        )

        assert result.exit_code == 1
        assert "1 passed, 1 failed, 0 skipped, 0 unresolved" in result.output
        assert "annotated-text, exit code 1" in result.output

    def test_replay_structured_success(self, output_file, tests_file: Path) -> None:
        captured = output_file(
            '{"test": "auth > login works", "verdict": "pass"}\n'
            '{"test": "auth > logout works", "verdict": "pass"}\n'
            '{"test": "refunds", "verdict": "skip"}\n'
        )

        result = CliRunner().invoke(cli, ["replay", str(captured), "-t", str(tests_file), "--chunk-size", "3"])

        assert result.exit_code == 0
        assert "2 passed, 0 failed, 1 skipped" in result.output
        assert "structured" in result.output

    def test_replay_nothing_selected(self, output_file, tests_file: Path) -> None:
        result = CliRunner().invoke(cli, ["replay", str(output_file("")), "-t", str(tests_file), "-s", "payments"])

        assert result.exit_code == 2
        assert "No tests selected" in result.output

    def test_replay_requires_tests_file(self, output_file, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["replay", str(output_file("")), "-t", str(tmp_path / "missing.txt")])
        assert result.exit_code == 2

    def test_replay_with_bad_config(self, output_file, tests_file: Path, tmp_path: Path) -> None:
        config_path = tmp_path / "bad.toml"
        config_path.write_text("[pipeline]\ndetection_window = -1\n", encoding="utf-8")

        result = CliRunner().invoke(
            cli, ["replay", str(output_file("")), "-t", str(tests_file), "-c", str(config_path)]
        )

        assert result.exit_code == 1
        assert "Configuration problem" in result.output


class TestConfigCommand:
    def test_show_defaults(self) -> None:
        result = CliRunner().invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "BridgeConfig" in result.output

    def test_show_file(self, tmp_path: Path) -> None:
        config_path = tmp_path / "custom.toml"
        config_path.write_text('[runner]\ncommand = ["npm", "test"]\n', encoding="utf-8")

        result = CliRunner().invoke(cli, ["config", "show", "-c", str(config_path)])

        assert result.exit_code == 0
        assert "'npm'" in result.output

    def test_show_missing_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "show", "-c", str(tmp_path / "nope.toml")])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestRunCommand:
    def test_run_without_command(self, tests_file: Path) -> None:
        result = CliRunner().invoke(cli, ["run", "-t", str(tests_file)])

        assert result.exit_code == 2
        assert "No test command" in result.output

    @pytest.mark.slow
    def test_run_python_command(self, tests_file: Path) -> None:
        script = "print('ok 1 - auth > login works'); print('ok 2 - auth > logout works 4ms')"

        result = CliRunner().invoke(
            cli, ["run", "-t", str(tests_file), "-s", "auth", "--", sys.executable, "-c", script]
        )

        assert result.exit_code == 0, result.output
        assert "2 passed, 0 failed, 0 skipped" in result.output
