"""Centralized configuration for redeploy.

Uses pydantic-settings for environment variable loading and validation.
Every setting can be overridden with a REDEPLOY_-prefixed environment
variable or a .env file in the current directory.
"""

import shlex
from pathlib import PurePosixPath

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedeploySettings(BaseSettings):
    """Settings for the redeployment pipeline.

    Environment variables:
        REDEPLOY_GIT_EXECUTABLE: Version-control client binary
        REDEPLOY_GIT_REMOTE: Remote to pull from
        REDEPLOY_GIT_BRANCH: Tracked branch to pull
        REDEPLOY_BUILD_COMMAND: Release build command line
        REDEPLOY_DOCS_COMMAND: Documentation command line
        REDEPLOY_ARTIFACT_PATH: Build artifact, relative to the app directory
        REDEPLOY_BINARY_NAME: Deployed binary name inside the app directory
        REDEPLOY_SUPERVISOR_EXECUTABLE: Process supervisor binary
        REDEPLOY_LOG_LEVEL: Logging level
        REDEPLOY_LOG_JSON: Enable JSON log format
        REDEPLOY_LOG_FILE: Optional JSON log file
        REDEPLOY_OTEL_ENABLED: Enable OpenTelemetry
        REDEPLOY_OTEL_ENDPOINT: OTLP collector endpoint
        REDEPLOY_OTEL_PROTOCOL: OTLP protocol (grpc/http)
        REDEPLOY_OTEL_SERVICE_NAME: Service name for traces
    """

    model_config = SettingsConfigDict(
        env_prefix="REDEPLOY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Version control
    git_executable: str = Field(
        default="git",
        description="Version-control client binary",
    )
    git_remote: str = Field(
        default="origin",
        description="Remote to pull from",
    )
    git_branch: str = Field(
        default="main",
        description="Tracked branch to pull",
    )

    # Build
    build_command: str = Field(
        default="cargo build --release",
        description="Command line that compiles the project in release mode",
    )
    docs_command: str = Field(
        default="cargo d",
        description="Command line that generates documentation",
    )
    artifact_path: str = Field(
        default="target/release/athena_rs",
        description="Freshly built binary, relative to the app directory",
    )
    binary_name: str = Field(
        default="athena_rs",
        description="Deployed binary name inside the app directory",
    )

    # Process supervisor
    supervisor_executable: str = Field(
        default="pm2",
        description="Process supervisor binary",
    )

    # Observability settings
    log_level: str = Field(
        default="WARNING",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Enable JSON log format",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path of a JSON log file",
    )
    otel_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    otel_endpoint: str | None = Field(
        default=None,
        description="OTLP collector endpoint (console exporter when unset)",
    )
    otel_protocol: str = Field(
        default="grpc",
        description="OTLP protocol (grpc/http)",
    )
    otel_service_name: str = Field(
        default="redeploy",
        description="Service name for traces",
    )

    @field_validator("build_command", "docs_command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        """Ensure command lines parse to at least one word."""
        if not shlex.split(v):
            raise ValueError("command must not be empty")
        return v

    @field_validator("binary_name")
    @classmethod
    def validate_binary_name(cls, v: str) -> str:
        """Deployed binary must be a plain file name."""
        if not v or "/" in v or v in (".", ".."):
            raise ValueError("binary_name must be a plain file name")
        return v

    @field_validator("artifact_path")
    @classmethod
    def validate_artifact_path(cls, v: str) -> str:
        """Artifact must live inside the app directory."""
        if not v or PurePosixPath(v).is_absolute():
            raise ValueError("artifact_path must be relative to the app directory")
        return v

    def get_build_argv(self) -> list[str]:
        """Get the build command as an argument vector.

        Returns:
            List of command words.
        """
        return shlex.split(self.build_command)

    def get_docs_argv(self) -> list[str]:
        """Get the documentation command as an argument vector.

        Returns:
            List of command words.
        """
        return shlex.split(self.docs_command)


# Global settings instance - import this directly
settings = RedeploySettings()
