"""CLI for redeploying a compiled service."""

from pathlib import Path
from typing import List, Optional

import pydantic
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typer.core import TyperCommand

from ..config import settings
from ..core.exceptions import RedeployError, StepError, UsageError
from ..observability import (
    get_logger,
    setup_logging,
    setup_telemetry,
    shutdown_telemetry,
)
from .models import DeploymentReport, DeploymentRequest
from .runner import DeploymentRunner

# Usage errors exit with this status instead of click's default of 2
USAGE_EXIT_CODE = 1

# Newer typer releases bundle their own click, so take the usage error class
# from the hierarchy typer actually raises
ClickUsageError = typer.BadParameter.__mro__[1]


class RedeployCommand(TyperCommand):
    """Command that reports every usage error with exit status 1."""

    def parse_args(self, ctx: typer.Context, args: List[str]) -> List[str]:
        try:
            return super().parse_args(ctx, args)
        except ClickUsageError as e:
            e.exit_code = USAGE_EXIT_CODE
            raise


app = typer.Typer(
    name="redeploy",
    help="Redeploy a compiled service: reset, pull, build, docs, restart under PM2.",
    add_completion=False,
)
console = Console()
logger = get_logger(__name__)


def build_request(app_name: str, port: int, app_dir: str) -> DeploymentRequest:
    """Validate command-line values into a deployment request.

    Raises:
        UsageError: A value is invalid.
    """
    try:
        return DeploymentRequest(app_name=app_name, port=port, app_dir=app_dir)
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise UsageError(problems) from e


def render_report(report: DeploymentReport) -> Table:
    """Render a run report as a table."""
    styles = {
        "succeeded": "green",
        "tolerated": "yellow",
        "failed": "red",
        "planned": "dim",
    }
    title = "Deployment Plan" if report.status == "planned" else "Deployment Steps"
    table = Table(title=title)
    table.add_column("#", style="cyan")
    table.add_column("Step", style="cyan")
    table.add_column("Command", style="magenta")
    table.add_column("Status")
    if report.status != "planned":
        table.add_column("Time", style="yellow", justify="right")

    for idx, outcome in enumerate(report.outcomes):
        style = styles.get(outcome.status, "white")
        row = [
            str(idx + 1),
            outcome.step.value,
            escape(" ".join(outcome.command)),
            f"[{style}]{outcome.status}[/{style}]",
        ]
        if report.status != "planned":
            row.append(f"{outcome.duration_seconds:.1f}s")
        table.add_row(*row)

    return table


# ============================================================================
# Redeploy Command
# ============================================================================


@app.command(cls=RedeployCommand)
def redeploy(
    app_name: str = typer.Option(..., "--app-name", help="Process name under PM2"),
    port: int = typer.Option(
        ..., "--port", min=1, max=65535, help="Port passed to the service"
    ),
    app_dir: str = typer.Option(..., "--app-dir", help="Working copy to redeploy"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the steps without running them"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    log_json: bool = typer.Option(
        settings.log_json, "--log-json", help="JSON log lines on stderr"
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Append JSON logs to this file"
    ),
):
    """Reset, pull, build, document and restart one service."""
    # Rejected input must not create or open the log file
    try:
        request = build_request(app_name, port, app_dir)
    except UsageError as e:
        console.print(f"[red]✗ Invalid arguments:[/red] {escape(e.message)}")
        console.print("Usage: redeploy --app-name <APP_NAME> --port <PORT> --app-dir <APP_DIR>")
        raise typer.Exit(code=USAGE_EXIT_CODE)

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=log_json,
        log_file=log_file or (Path(settings.log_file) if settings.log_file else None),
    )
    setup_telemetry(settings)

    runner = DeploymentRunner(request, settings=settings, console=console)

    try:
        if dry_run:
            console.print(render_report(runner.plan()))
            return

        report = runner.run()
        console.print(render_report(report))
        console.print(
            Panel(
                f"[green]✓ {escape(request.app_name)} redeployed[/green]\n\n"
                f"Port: {request.port}\n"
                f"Run ID: {report.run_id}",
                title="Deployment Complete",
            )
        )

    except StepError as e:
        logger.error(
            f"Redeploy of {request.app_name} aborted at step {e.step}",
            extra={"step": e.step, "error": e.to_dict()},
        )
        if e.report is not None:
            console.print(render_report(e.report))
        console.print(
            f"[red]✗ Deployment aborted at step {e.step}[/red] [dim]({e.code})[/dim]"
        )
        raise typer.Exit(code=1)
    except RedeployError as e:
        logger.error(f"Redeploy failed: {e}", extra={"error": e.to_dict()})
        console.print(f"[red]✗ Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.warning(f"Redeploy of {request.app_name} interrupted by operator")
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(code=130)
    finally:
        shutdown_telemetry()


# ============================================================================
# Main
# ============================================================================


def main():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
