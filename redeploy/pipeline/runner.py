"""Deployment runner - execute the redeployment pipeline.

Steps run strictly in order and the first fatal failure ends the run:

1. Resolve the app directory
2. Discard local changes (git reset --hard)
3. Pull the tracked branch
4. Build in release mode
5. Generate docs
6. Stop the running instance (failure tolerated)
7. Install the fresh binary
8. Start it under the supervisor
9. Save the supervisor process list

Nothing is retried and nothing is rolled back.
"""

import logging
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Type

from rich.console import Console
from rich.markup import escape

from ..config import RedeploySettings
from ..config import settings as default_settings
from ..core.exceptions import (
    BuildError,
    DeployError,
    DirectoryNotFound,
    StepError,
    VcsError,
)
from ..observability.logging import RunLogger
from ..observability.telemetry import record_step_status, traced_step
from .commands import CommandRunner
from .models import DeploymentReport, DeploymentRequest, Step, StepOutcome

logger = logging.getLogger(__name__)

# Fatal steps: error type and failure message template
_FAILURES: Dict[Step, Tuple[Type[StepError], str]] = {
    Step.RESET: (VcsError, "Failed to reset local changes for {app}"),
    Step.PULL: (VcsError, "Failed to pull latest changes for {app}"),
    Step.BUILD: (BuildError, "Failed to build {app}"),
    Step.DOCS: (BuildError, "Failed to generate docs for {app}"),
    Step.INSTALL: (DeployError, "Failed to install {binary} for {app}"),
    Step.START: (DeployError, "Failed to start {app}"),
    Step.SAVE: (DeployError, "Failed to save {supervisor} process list for {app}"),
}

_STATUS_LINES: Dict[Step, str] = {
    Step.CHANGE_DIRECTORY: "Redeploying {app}",
    Step.RESET: "Resetting local changes for {app} ...",
    Step.PULL: "Pulling latest changes for {app} ...",
    Step.BUILD: "Building {app} ...",
    Step.DOCS: "Generating docs for {app} ...",
    Step.STOP: "Stopping existing {supervisor} process for {app} ...",
    Step.INSTALL: "Installing {binary} for {app} ...",
    Step.START: "Starting {app} with {supervisor}...",
    Step.SAVE: "Saving {supervisor} process list for {app} ...",
}


class DeploymentRunner:
    """Run the redeployment pipeline for one request.

    Args:
        request: What to redeploy.
        settings: Tool and path configuration (defaults to the global settings).
        commands: Command runner used for every external tool.
        console: Console that receives the operator status lines.
        run_id: Correlation ID for logs and the report.
    """

    def __init__(
        self,
        request: DeploymentRequest,
        settings: Optional[RedeploySettings] = None,
        commands: Optional[CommandRunner] = None,
        console: Optional[Console] = None,
        run_id: Optional[str] = None,
    ):
        self.request = request
        self.settings = settings or default_settings
        self.commands = commands or CommandRunner()
        self.console = console or Console()
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.log = RunLogger(logger, self.run_id, request.app_name)
        self._workdir: Optional[Path] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> DeploymentReport:
        """Execute all steps.

        Returns:
            Report of the successful run.

        Raises:
            StepError: The first fatal step that failed. Its ``report``
                attribute holds the outcomes recorded so far.
        """
        report = self._new_report()
        actions: List[Tuple[Step, Callable[[], StepOutcome]]] = [
            (Step.CHANGE_DIRECTORY, self._change_directory),
            (Step.RESET, lambda: self._command(Step.RESET)),
            (Step.PULL, lambda: self._command(Step.PULL)),
            (Step.BUILD, lambda: self._command(Step.BUILD)),
            (Step.DOCS, lambda: self._command(Step.DOCS)),
            (Step.STOP, self._stop),
            (Step.INSTALL, self._install),
            (Step.START, lambda: self._command(Step.START)),
            (Step.SAVE, lambda: self._command(Step.SAVE)),
        ]

        self.log.info(
            f"Redeploying {self.request.app_name} on port {self.request.port} "
            f"from {self.request.app_dir}"
        )

        try:
            for step, action in actions:
                self._execute(report, step, action)
        except StepError as e:
            report.status = "failed"
            report.failed_step = Step(e.step)
            report.error = e.message
            e.report = report
            raise

        report.status = "succeeded"
        self.log.info(f"Redeployed {self.request.app_name}")
        return report

    def plan(self) -> DeploymentReport:
        """Describe the steps without running anything.

        Returns:
            Report whose outcomes are all ``planned``.
        """
        report = self._new_report()
        report.status = "planned"
        for step in Step:
            report.outcomes.append(
                StepOutcome(step=step, status="planned", command=self.command_for(step))
            )
        return report

    def command_for(self, step: Step) -> List[str]:
        """Build the command line for a step.

        The change_directory and install steps are carried out in-process;
        their entries are the equivalent shell commands, for display.
        """
        s = self.settings
        app = self.request.app_name
        sup = s.supervisor_executable

        if step is Step.CHANGE_DIRECTORY:
            return ["cd", str(self._workdir or self.request.app_dir)]
        if step is Step.RESET:
            return [s.git_executable, "reset", "--hard"]
        if step is Step.PULL:
            return [s.git_executable, "pull", s.git_remote, s.git_branch]
        if step is Step.BUILD:
            return s.get_build_argv()
        if step is Step.DOCS:
            return s.get_docs_argv()
        if step is Step.STOP:
            return [sup, "stop", app]
        if step is Step.INSTALL:
            return ["cp", f"./{s.artifact_path}", f"./{s.binary_name}"]
        if step is Step.START:
            return [
                sup,
                "start",
                f"./{s.binary_name}",
                "--name",
                app,
                "--",
                "--port",
                str(self.request.port),
            ]
        if step is Step.SAVE:
            return [sup, "save"]
        raise ValueError(f"Unknown step: {step}")

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    def _execute(
        self,
        report: DeploymentReport,
        step: Step,
        action: Callable[[], StepOutcome],
    ) -> None:
        status_line = self._format(_STATUS_LINES[step])
        self.console.print(f"[bold]{escape(status_line)}[/bold]")
        self.log.info(status_line, extra={"step": step.value})

        started = time.monotonic()
        with traced_step(step.value, app=self.request.app_name, run_id=self.run_id):
            outcome = action()
            outcome.duration_seconds = time.monotonic() - started
            report.outcomes.append(outcome)
            record_step_status(outcome.status)

            if outcome.status == "tolerated":
                self.console.print(f"[yellow]{escape(outcome.message or '')}[/yellow]")
                self.log.warning(
                    f"{step.value} failed (exit status {outcome.returncode}), continuing",
                    extra={"step": step.value},
                )
            elif outcome.status == "failed":
                error = self._step_error(step, outcome)
                self.console.print(
                    f"[red]✗ {escape(error.message)}[/red]", soft_wrap=True
                )
                self.log.error(str(error), extra={"step": step.value})
                raise error

    def _change_directory(self) -> StepOutcome:
        path = Path(self.request.app_dir).expanduser()
        command = ["cd", str(path)]

        if not path.exists():
            reason = "no such directory"
        elif not path.is_dir():
            reason = "not a directory"
        elif not os.access(path, os.R_OK | os.X_OK):
            reason = "permission denied"
        else:
            self._workdir = path.resolve()
            return StepOutcome(
                step=Step.CHANGE_DIRECTORY,
                status="succeeded",
                command=["cd", str(self._workdir)],
            )

        return StepOutcome(
            step=Step.CHANGE_DIRECTORY, status="failed", command=command, message=reason
        )

    def _command(self, step: Step) -> StepOutcome:
        result = self.commands.run(self.command_for(step), cwd=self._require_workdir())
        return StepOutcome(
            step=step,
            status="succeeded" if result.ok else "failed",
            command=result.argv,
            returncode=result.returncode,
            message=result.error,
        )

    def _stop(self) -> StepOutcome:
        outcome = self._command(Step.STOP)
        if outcome.status == "failed":
            # No prior instance is the expected case on a first deploy
            outcome.status = "tolerated"
            outcome.message = (
                f"No existing process found for {self.request.app_name}. Proceeding..."
            )
        return outcome

    def _install(self) -> StepOutcome:
        workdir = self._require_workdir()
        source = workdir / self.settings.artifact_path
        target = workdir / self.settings.binary_name
        command = self.command_for(Step.INSTALL)

        self.log.debug(f"Copying {source} to {target}")
        try:
            shutil.copy2(source, target)
        except OSError as e:
            return StepOutcome(
                step=Step.INSTALL, status="failed", command=command, message=str(e)
            )

        return StepOutcome(step=Step.INSTALL, status="succeeded", command=command)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _step_error(self, step: Step, outcome: StepOutcome) -> StepError:
        if step is Step.CHANGE_DIRECTORY:
            return DirectoryNotFound(self.request.app_dir, detail=outcome.message)

        error_cls, template = _FAILURES[step]
        detail = outcome.message
        if detail is None and outcome.returncode is not None:
            detail = f"exit status {outcome.returncode}"
        return error_cls(
            step.value,
            self._format(template),
            returncode=outcome.returncode,
            detail=detail,
        )

    def _format(self, template: str) -> str:
        return template.format(
            app=self.request.app_name,
            binary=self.settings.binary_name,
            supervisor=Path(self.settings.supervisor_executable).name.upper(),
        )

    def _require_workdir(self) -> Path:
        if self._workdir is None:
            raise RuntimeError("change_directory must run before other steps")
        return self._workdir

    def _new_report(self) -> DeploymentReport:
        return DeploymentReport(
            run_id=self.run_id,
            app_name=self.request.app_name,
            port=self.request.port,
            app_dir=self.request.app_dir,
        )
