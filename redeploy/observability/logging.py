"""Logging configuration for redeploy.

Operator-facing status lines are printed by the CLI through rich; this
module configures the diagnostic log stream on stderr, either as text or as
newline-delimited JSON. Records logged during a run carry the run id, the
app name and, inside a step, the step name.
"""

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Record attributes copied into JSON output when present
RUN_FIELDS = ("correlation_id", "app", "step", "error")

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        for field in RUN_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Text formatter that prefixes the pipeline step.

    The level name is colored when stderr is a terminal. Formatting works
    on a copy, so other handlers still see the original record.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        shown = logging.makeLogRecord(record.__dict__)

        step = getattr(record, "step", None)
        if step:
            shown.msg = f"[{step}] {record.getMessage()}"
            shown.args = None

        if sys.stderr.isatty():
            color = self.LEVEL_COLORS.get(record.levelname, "")
            shown.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(shown)


def setup_logging(
    level: str = "WARNING",
    json_format: bool = False,
    log_file: Path | None = None,
) -> None:
    """Route all logging to stderr, and optionally to a JSON file.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output. Unknown level names fall back to WARNING.

    Args:
        level: Level name for both stderr and the file.
        json_format: Write JSON to stderr instead of text.
        log_file: File to append JSON records to. Parent directories are
            created.
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        JSONFormatter()
        if json_format
        else ConsoleFormatter(fmt=CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT)
    )
    root.addHandler(stderr_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    logging.getLogger("redeploy").debug(
        "Logging at %s (json=%s, file=%s)",
        logging.getLevelName(log_level),
        json_format,
        log_file,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class RunLogger(logging.LoggerAdapter):
    """Stamp every record of one deployment run with its id and app name.

    The run id is written as ``correlation_id`` so one run can be picked out
    of aggregated logs. Per-call ``extra`` values (such as ``step``) are kept.
    """

    def __init__(self, logger: logging.Logger, run_id: str, app_name: str):
        super().__init__(logger, {"correlation_id": run_id, "app": app_name})

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs
