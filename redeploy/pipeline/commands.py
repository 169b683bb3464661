"""Command runner - invoke external tools via subprocess."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
NOT_FOUND_RETURNCODE = 127


@dataclass(frozen=True)
class CommandResult:
    """Exit status of one external command."""

    argv: List[str]
    returncode: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Run external commands to completion.

    Output is not captured, so git, cargo and pm2 write straight to the
    operator's terminal. No timeout is applied.
    """

    def run(self, argv: Sequence[str], cwd: Path) -> CommandResult:
        """Run a command and wait for it to exit.

        Args:
            argv: Command and arguments.
            cwd: Working directory for the command.

        Returns:
            CommandResult with the exit status. A command that cannot be
            spawned reports returncode 127 and the OS error.
        """
        argv = [str(a) for a in argv]
        logger.debug("Running: %s (cwd=%s)", " ".join(argv), cwd)

        try:
            completed = subprocess.run(argv, cwd=cwd, check=False)
        except OSError as e:
            logger.debug("Failed to spawn %s: %s", argv[0], e)
            return CommandResult(argv=argv, returncode=NOT_FOUND_RETURNCODE, error=str(e))

        logger.debug("Exited %d: %s", completed.returncode, argv[0])
        return CommandResult(argv=argv, returncode=completed.returncode)
