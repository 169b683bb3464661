"""Core exceptions."""

from .exceptions import (
    BuildError,
    DeployError,
    DirectoryNotFound,
    RedeployError,
    StepError,
    UsageError,
    VcsError,
)

__all__ = [
    "BuildError",
    "DeployError",
    "DirectoryNotFound",
    "RedeployError",
    "StepError",
    "UsageError",
    "VcsError",
]
