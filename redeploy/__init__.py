"""redeploy - reset, rebuild and restart a compiled service under PM2."""

from .config import RedeploySettings, settings
from .core import (
    BuildError,
    DeployError,
    DirectoryNotFound,
    RedeployError,
    StepError,
    UsageError,
    VcsError,
)
from .pipeline import DeploymentReport, DeploymentRequest, DeploymentRunner, Step

__all__ = [
    # Pipeline
    "DeploymentReport",
    "DeploymentRequest",
    "DeploymentRunner",
    "Step",
    # Configuration
    "RedeploySettings",
    "settings",
    # Exceptions
    "BuildError",
    "DeployError",
    "DirectoryNotFound",
    "RedeployError",
    "StepError",
    "UsageError",
    "VcsError",
]
