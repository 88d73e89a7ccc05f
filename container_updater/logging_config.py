"""
Logging configuration for container-updater.

Console logging always; rotating file logs with a separate replacement
lifecycle stream when a log directory is configured.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

REPLACEMENTS_LOGGER = "container_updater.replacements"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    EXTRA_FIELDS = ("container", "image", "outcome", "container_id", "recovery_performed")

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_obj[field] = getattr(record, field)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter for console and file logs."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False):
        self.use_colors = use_colors
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors and record.levelname in self.COLORS:
            # Copy so file handlers sharing the record don't get escape codes
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    console_level: str = "INFO",
    log_dir: Optional[str] = None,
    file_level: str = "DEBUG",
    use_json: bool = False,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Configure logging for container-updater.

    Args:
        console_level: Console logging level
        log_dir: Directory for log files; file logging is off when None
        file_level: File logging level
        use_json: Use JSON formatting for files
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, console_level.upper()))
    console_handler.setFormatter(HumanReadableFormatter(use_colors=sys.stdout.isatty()))
    root_logger.addHandler(console_handler)

    replacements_logger = logging.getLogger(REPLACEMENTS_LOGGER)
    replacements_logger.handlers.clear()
    replacements_logger.setLevel(logging.INFO)
    replacements_logger.propagate = False

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_formatter = StructuredFormatter() if use_json else HumanReadableFormatter()

        main_handler = logging.handlers.RotatingFileHandler(
            log_path / "updater.log", maxBytes=max_bytes, backupCount=backup_count
        )
        main_handler.setLevel(getattr(logging, file_level.upper()))
        main_handler.setFormatter(file_formatter)
        root_logger.addHandler(main_handler)

        # Error-only log for monitoring
        error_handler = logging.handlers.RotatingFileHandler(
            log_path / "error.log", maxBytes=max_bytes, backupCount=backup_count
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

        # One line per replacement attempt
        replacements_handler = logging.handlers.RotatingFileHandler(
            log_path / "replacements.log", maxBytes=max_bytes, backupCount=backup_count
        )
        replacements_handler.setFormatter(file_formatter)
        replacements_logger.addHandler(replacements_handler)
    else:
        replacements_logger.addHandler(logging.NullHandler())

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("docker").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized - Console: {console_level}, Directory: {log_dir}, JSON: {use_json}"
    )


def log_replacement_operation(
    container: str,
    image: str,
    outcome: str,
    error: Optional[str] = None,
    **details: Any,
) -> None:
    """
    Record one replacement attempt on the replacement lifecycle stream.

    Args:
        container: Container name
        image: Target image
        outcome: "success" or the stage the run failed at
        error: Error message if failed
        **details: Additional fields (container_id, recovery_performed, ...)
    """
    logger = logging.getLogger(REPLACEMENTS_LOGGER)

    message = f"Replacement {container} -> {image}: {outcome.upper()}"
    if error:
        message += f" - {error}"
    if details:
        message += f" - {json.dumps(details, default=str)}"

    extra = {"container": container, "image": image, "outcome": outcome}
    extra.update(details)

    if outcome == "success":
        logger.info(message, extra=extra)
    else:
        logger.error(message, extra=extra)
