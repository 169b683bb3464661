"""Pydantic models for redeployment runs."""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Request
# ============================================================================


class DeploymentRequest(BaseModel):
    """One redeployment, as requested on the command line.

    Built once per invocation and never mutated. Whether ``app_dir`` exists
    is checked by the change_directory step, not here.
    """

    model_config = ConfigDict(frozen=True)

    app_name: str = Field(..., description="Process name under the supervisor")
    port: int = Field(..., ge=1, le=65535, description="Port passed to the service")
    app_dir: str = Field(..., description="Working copy to redeploy")

    @field_validator("app_name")
    @classmethod
    def validate_app_name(cls, v: str) -> str:
        """Ensure the app name is not blank."""
        v = v.strip()
        if not v:
            raise ValueError("app name must not be empty")
        return v

    @field_validator("app_dir")
    @classmethod
    def validate_app_dir(cls, v: str) -> str:
        """Ensure the app directory is not blank."""
        if not v.strip():
            raise ValueError("app directory must not be empty")
        return v


# ============================================================================
# Steps
# ============================================================================


class Step(str, Enum):
    """Pipeline steps, in execution order."""

    CHANGE_DIRECTORY = "change_directory"
    RESET = "reset"
    PULL = "pull"
    BUILD = "build"
    DOCS = "docs"
    STOP = "stop"
    INSTALL = "install"
    START = "start"
    SAVE = "save"


StepStatus = Literal["succeeded", "tolerated", "failed", "planned"]


class StepOutcome(BaseModel):
    """Result of running (or planning) one step."""

    step: Step = Field(..., description="Step identifier")
    status: StepStatus = Field(..., description="What happened")
    command: List[str] = Field(
        default_factory=list, description="Command line, or a description of the action"
    )
    returncode: Optional[int] = Field(None, description="Exit status of the command")
    duration_seconds: float = Field(0.0, description="Wall-clock time spent")
    message: Optional[str] = Field(None, description="Failure or tolerance message")


# ============================================================================
# Report
# ============================================================================


class DeploymentReport(BaseModel):
    """Record of one redeployment run."""

    run_id: str = Field(..., description="Correlation ID of the run")
    app_name: str
    port: int
    app_dir: str
    outcomes: List[StepOutcome] = Field(default_factory=list)
    status: Literal["running", "succeeded", "failed", "planned"] = "running"
    failed_step: Optional[Step] = None
    error: Optional[str] = None

    @property
    def steps_run(self) -> List[Step]:
        """Steps that were attempted, in order."""
        return [o.step for o in self.outcomes if o.status != "planned"]
