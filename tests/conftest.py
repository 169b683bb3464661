"""Shared pytest fixtures for the test suite.

Provides a recording fake for external commands and a scratch working copy
with a built artifact, so the pipeline can run without git, cargo or pm2.
"""

import io
import logging

# Add project root to path
import sys
from collections.abc import Generator
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from rich.console import Console

sys.path.insert(0, str(Path(__file__).parent.parent))

from redeploy.config import RedeploySettings  # noqa: E402
from redeploy.pipeline.commands import CommandResult, CommandRunner  # noqa: E402
from redeploy.pipeline.models import DeploymentRequest  # noqa: E402

ARTIFACT_BYTES = b"\x7fELF fresh build"


class FakeCommandRunner(CommandRunner):
    """Records commands instead of running them.

    Args:
        failures: Exit status to return, keyed by the first two words of
            the command (e.g. ``"cargo build"`` or ``"pm2 stop"``).
    """

    def __init__(self, failures: Optional[Dict[str, int]] = None):
        self.failures = failures or {}
        self.calls: List[Tuple[List[str], Path]] = []

    def run(self, argv: Sequence[str], cwd: Path) -> CommandResult:
        argv = [str(a) for a in argv]
        self.calls.append((argv, cwd))
        returncode = self.failures.get(" ".join(argv[:2]), 0)
        return CommandResult(argv=argv, returncode=returncode)

    @property
    def commands(self) -> List[str]:
        """Commands run so far, as single strings."""
        return [" ".join(argv) for argv, _ in self.calls]


def expected_status_lines(app: str = "svc") -> List[str]:
    """Status lines of a full run, in order."""
    return [
        f"Redeploying {app}",
        f"Resetting local changes for {app} ...",
        f"Pulling latest changes for {app} ...",
        f"Building {app} ...",
        f"Generating docs for {app} ...",
        f"Stopping existing PM2 process for {app} ...",
        f"Installing athena_rs for {app} ...",
        f"Starting {app} with PM2...",
        f"Saving PM2 process list for {app} ...",
    ]


def assert_in_order(output: str, lines: List[str]) -> None:
    """Assert each line appears in output after the previous one."""
    position = 0
    for line in lines:
        found = output.find(line, position)
        assert found != -1, f"{line!r} missing or out of order"
        position = found + len(line)


@pytest.fixture
def fake_commands() -> FakeCommandRunner:
    """Fake command runner where every command succeeds."""
    return FakeCommandRunner()


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """Working copy containing a freshly built release artifact."""
    directory = tmp_path / "svc"
    release = directory / "target" / "release"
    release.mkdir(parents=True)
    (release / "athena_rs").write_bytes(ARTIFACT_BYTES)
    return directory


@pytest.fixture
def test_settings() -> RedeploySettings:
    """Default settings, isolated from any local .env file."""
    return RedeploySettings(_env_file=None)


@pytest.fixture
def request_for(app_dir: Path):
    """Factory for deployment requests against the scratch working copy."""

    def _make(app_name: str = "svc", port: int = 8080, directory: Optional[Path] = None):
        return DeploymentRequest(
            app_name=app_name, port=port, app_dir=str(directory or app_dir)
        )

    return _make


@pytest.fixture
def console_buffer() -> Tuple[Console, io.StringIO]:
    """Console writing plain text into a buffer."""
    buffer = io.StringIO()
    return Console(file=buffer, width=200, color_system=None), buffer


@pytest.fixture(autouse=True)
def reset_root_logger() -> Generator[None, None, None]:
    """Restore root logger handlers replaced by setup_logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level

    yield

    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
