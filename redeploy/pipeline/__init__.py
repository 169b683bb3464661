"""Redeployment pipeline: request model, command runner, step runner, CLI."""

from .commands import CommandResult, CommandRunner
from .models import DeploymentReport, DeploymentRequest, Step, StepOutcome
from .runner import DeploymentRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "DeploymentReport",
    "DeploymentRequest",
    "DeploymentRunner",
    "Step",
    "StepOutcome",
]
