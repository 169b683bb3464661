"""Observability: logging and telemetry."""

from .logging import RunLogger, get_logger, setup_logging
from .telemetry import (
    record_step_status,
    setup_telemetry,
    shutdown_telemetry,
    traced_step,
)

__all__ = [
    # Logging
    "RunLogger",
    "get_logger",
    "setup_logging",
    # Telemetry
    "record_step_status",
    "setup_telemetry",
    "shutdown_telemetry",
    "traced_step",
]
