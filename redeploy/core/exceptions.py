"""Exception hierarchy for redeploy.

Every error carries a machine-readable code so the CLI and JSON logs can
report failures consistently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..pipeline.models import DeploymentReport


class RedeployError(Exception):
    """Base exception for redeploy errors.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code.
        recoverable: Whether re-running the deployment may succeed.
    """

    def __init__(
        self,
        message: str,
        code: str,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, str | bool | int | None]:
        """Convert exception to dictionary for JSON serialization.

        Returns:
            Dictionary with error details.
        """
        return {
            "error": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
        }


class UsageError(RedeployError):
    """Invalid or missing command-line input."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "USAGE", recoverable=False)


class StepError(RedeployError):
    """A fatal pipeline step failed.

    Attributes:
        step: Name of the step that failed.
        returncode: Exit status of the external command, if one ran.
        report: Report of the run up to and including the failed step.
            Attached by the runner before the error propagates.
    """

    default_code = "STEP_ERROR"

    def __init__(
        self,
        step: str,
        message: str,
        returncode: int | None = None,
        detail: str | None = None,
        recoverable: bool = True,
    ) -> None:
        full_message = message
        if detail:
            full_message += f": {detail}"
        super().__init__(full_message, self.default_code, recoverable=recoverable)
        self.step = step
        self.returncode = returncode
        self.detail = detail
        self.report: DeploymentReport | None = None

    def to_dict(self) -> dict[str, str | bool | int | None]:
        data = super().to_dict()
        data["step"] = self.step
        data["returncode"] = self.returncode
        return data


class DirectoryNotFound(StepError):
    """Application directory is missing, not a directory, or inaccessible."""

    default_code = "DIR_NOT_FOUND"

    def __init__(self, path: str, detail: str | None = None) -> None:
        super().__init__(
            "change_directory",
            f"Failed to navigate to {path} directory",
            detail=detail,
            recoverable=False,
        )
        self.path = path


class VcsError(StepError):
    """Resetting or pulling the working copy failed."""

    default_code = "VCS_ERROR"


class BuildError(StepError):
    """Compiling or generating documentation failed."""

    default_code = "BUILD_ERROR"


class DeployError(StepError):
    """Installing, starting, or persisting the new process failed."""

    default_code = "DEPLOY_ERROR"
