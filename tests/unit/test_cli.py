"""Tests for CLI in redeploy/pipeline/cli.py.

Tests cover:
- usage errors (missing, unknown and invalid options) exit 1 with usage
- rejected input has no side effects (no commands, no log file)
- successful redeploy prints nine status lines and exits 0
- fatal step failures exit 1
- tolerated stop failure still exits 0
- dry run
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import typer
from typer.testing import CliRunner

from redeploy.core.exceptions import UsageError
from redeploy.pipeline.cli import ClickUsageError, app, build_request
from tests.conftest import FakeCommandRunner, assert_in_order, expected_status_lines

runner = CliRunner()


def invoke(args: list[str], commands: FakeCommandRunner | None = None):
    """Invoke the CLI with external commands replaced by a fake."""
    commands = commands or FakeCommandRunner()
    with patch("redeploy.pipeline.runner.CommandRunner", return_value=commands):
        return runner.invoke(app, args), commands


def deploy_args(app_dir: Path, app_name: str = "svc", port: str = "8080") -> list[str]:
    return ["--app-name", app_name, "--port", port, "--app-dir", str(app_dir)]


class TestUsageErrors:
    """Bad command lines print usage and exit 1 without side effects."""

    def test_no_arguments(self) -> None:
        """No arguments at all is a usage error."""
        result, commands = invoke([])

        assert result.exit_code == 1
        assert "usage" in result.output.lower()
        assert commands.calls == []

    @pytest.mark.parametrize("missing", ["--app-name", "--port", "--app-dir"])
    def test_missing_required_option(self, app_dir: Path, missing: str) -> None:
        """Each of the three options is required."""
        args = deploy_args(app_dir)
        idx = args.index(missing)
        del args[idx : idx + 2]

        result, commands = invoke(args)

        assert result.exit_code == 1
        assert "usage" in result.output.lower()
        assert commands.calls == []

    def test_unknown_option(self, app_dir: Path) -> None:
        """Unrecognized flags are rejected."""
        result, commands = invoke([*deploy_args(app_dir), "--force"])

        assert result.exit_code == 1
        assert "usage" in result.output.lower()
        assert commands.calls == []

    @pytest.mark.parametrize("port", ["abc", "0", "70000"])
    def test_invalid_port(self, app_dir: Path, port: str) -> None:
        """Port must be an integer in the TCP range."""
        result, commands = invoke(deploy_args(app_dir, port=port))

        assert result.exit_code == 1
        assert commands.calls == []

    def test_blank_app_name(self, app_dir: Path) -> None:
        """A blank app name is invalid."""
        result, commands = invoke(deploy_args(app_dir, app_name="   "))

        assert result.exit_code == 1
        assert "Invalid arguments" in result.output
        assert "Usage" in result.output
        assert commands.calls == []

    @pytest.mark.parametrize("app_dir_value", ["", "   "])
    def test_blank_app_dir(self, app_dir_value: str, tmp_path: Path, monkeypatch) -> None:
        """A blank app directory is rejected instead of meaning the current one."""
        monkeypatch.chdir(tmp_path)

        result, commands = invoke(
            ["--app-name", "svc", "--port", "8080", "--app-dir", app_dir_value]
        )

        assert result.exit_code == 1
        assert "Invalid arguments" in result.output
        assert "app_dir" in result.output
        assert commands.calls == []

    def test_rejected_input_creates_no_log_file(self, app_dir: Path, tmp_path: Path) -> None:
        """Invalid values are reported before any log file is opened."""
        log_file = tmp_path / "newdir" / "redeploy.log"

        result, _ = invoke(
            [*deploy_args(app_dir, app_name="   "), "--log-file", str(log_file)]
        )

        assert result.exit_code == 1
        assert not log_file.parent.exists()

    def test_parse_error_carries_exit_code_one(self) -> None:
        """Parse errors raised by the command itself carry status 1."""
        command = typer.main.get_command(app)

        with pytest.raises(ClickUsageError) as exc_info:
            command.main(args=["--port", "8080"], standalone_mode=False)

        assert exc_info.value.exit_code == 1


class TestBuildRequest:
    """Test build_request helper."""

    def test_valid(self, tmp_path: Path) -> None:
        """Valid values produce a request."""
        request = build_request("svc", 8080, str(tmp_path))
        assert request.app_name == "svc"
        assert request.port == 8080
        assert request.app_dir == str(tmp_path)

    def test_invalid_raises_usage_error(self, tmp_path: Path) -> None:
        """Invalid values raise UsageError naming the field."""
        with pytest.raises(UsageError, match="app_name"):
            build_request("", 8080, str(tmp_path))


class TestRedeploy:
    """Full CLI runs against a fake command runner."""

    def test_success(self, app_dir: Path) -> None:
        """All steps succeed: nine status lines in order, exit 0."""
        result, commands = invoke(deploy_args(app_dir))

        assert result.exit_code == 0, result.output
        assert_in_order(result.output, expected_status_lines("svc"))
        assert len(commands.calls) == 7
        assert "Deployment Complete" in result.output

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Missing directory exits 1 after the first step."""
        result, commands = invoke(deploy_args(tmp_path / "missing"))

        assert result.exit_code == 1
        assert "Failed to navigate" in result.output
        assert "Resetting local changes" not in result.output
        assert commands.calls == []

    def test_build_failure(self, app_dir: Path) -> None:
        """Build failure exits 1 and never touches the supervisor."""
        result, commands = invoke(
            deploy_args(app_dir), FakeCommandRunner({"cargo build": 101})
        )

        assert result.exit_code == 1
        assert "Failed to build svc" in result.output
        assert "aborted at step build" in result.output
        assert not any(c.startswith("pm2") for c in commands.commands)
        assert "Stopping existing PM2 process" not in result.output

    def test_stop_failure_still_succeeds(self, app_dir: Path) -> None:
        """A missing previous process does not change the exit code."""
        result, commands = invoke(
            deploy_args(app_dir), FakeCommandRunner({"pm2 stop": 1})
        )

        assert result.exit_code == 0, result.output
        assert "No existing process found for svc" in result.output
        assert commands.commands[-2:] == [
            "pm2 start ./athena_rs --name svc -- --port 8080",
            "pm2 save",
        ]

    def test_save_failure(self, app_dir: Path) -> None:
        """Save failure is fatal."""
        result, _ = invoke(deploy_args(app_dir), FakeCommandRunner({"pm2 save": 1}))

        assert result.exit_code == 1
        assert "aborted at step save" in result.output

    def test_dry_run(self, tmp_path: Path) -> None:
        """Dry run shows the plan and runs nothing."""
        result, commands = invoke([*deploy_args(tmp_path / "missing"), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Deployment Plan" in result.output
        assert commands.calls == []

    def test_log_file(self, app_dir: Path, tmp_path: Path) -> None:
        """--log-file writes JSON logs for the run."""
        log_file = tmp_path / "logs" / "redeploy.log"

        result, _ = invoke([*deploy_args(app_dir), "--verbose", "--log-file", str(log_file)])

        assert result.exit_code == 0, result.output
        content = log_file.read_text()
        assert '"step": "build"' in content
        assert '"correlation_id"' in content

    def test_failure_logs_error_details(self, app_dir: Path, tmp_path: Path) -> None:
        """A fatal step writes its error code and exit status to the JSON log."""
        log_file = tmp_path / "logs" / "redeploy.log"

        result, _ = invoke(
            [*deploy_args(app_dir), "--log-file", str(log_file)],
            FakeCommandRunner({"cargo build": 101}),
        )

        assert result.exit_code == 1
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        errors = [entry["error"] for entry in entries if "error" in entry]
        assert errors[-1]["error"] == "BUILD_ERROR"
        assert errors[-1]["step"] == "build"
        assert errors[-1]["returncode"] == 101
