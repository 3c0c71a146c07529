from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional


LOGGER_NAME = "gitritual"

# Environment variables for configuration
ENV_LOG_DIR = "GITRITUAL_LOG_DIR"
ENV_LOG_LEVEL = "GITRITUAL_LOG_LEVEL"
ENV_LOG_MAX_BYTES = "GITRITUAL_LOG_MAX_BYTES"
ENV_LOG_BACKUP_COUNT = "GITRITUAL_LOG_BACKUP_COUNT"
ENV_LOG_DISABLE_FILE = "GITRITUAL_LOG_DISABLE_FILE"

# Defaults
DEFAULT_LOG_DIR = Path.home() / ".gitritual" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CONSOLE_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

# Between INFO and WARNING so console filtering keeps it visible
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_logger_initialized = False
_session_start = datetime.now().strftime("%Y-%m-%d_%H%M%S")


def _level_from_name(name: Optional[str], default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def _get_log_level() -> int:
    """Get log level from environment, defaulting to INFO."""
    return _level_from_name(os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL), logging.INFO)


def _get_log_file_path(log_dir: Optional[Path] = None, disable_file: Optional[bool] = None) -> Optional[Path]:
    """Get the log file path, creating directories if needed.

    Returns None if file logging is disabled via GITRITUAL_LOG_DISABLE_FILE=1.
    """
    if disable_file is None:
        disable_file = os.getenv(ENV_LOG_DISABLE_FILE, "").lower() in ("1", "true", "yes")
    if disable_file:
        return None

    if log_dir is None:
        log_dir = Path(os.getenv(ENV_LOG_DIR, DEFAULT_LOG_DIR))
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    # Session-based filename: gitritual_2024-01-15_143022.log
    return log_dir / f"gitritual_{_session_start}.log"


def _build_logger(
    *,
    level: int,
    console_level: int,
    log_dir: Optional[Path] = None,
    disable_file: Optional[bool] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()  # Remove any existing handlers
    logger.setLevel(min(level, console_level))
    logger.propagate = False

    file_formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)-7s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler (enabled by default)
    log_file = _get_log_file_path(log_dir, disable_file)
    if log_file:
        if max_bytes is None:
            max_bytes = int(os.getenv(ENV_LOG_MAX_BYTES, DEFAULT_MAX_BYTES))
        if backup_count is None:
            backup_count = int(os.getenv(ENV_LOG_BACKUP_COUNT, DEFAULT_BACKUP_COUNT))

        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    # Console output: plain messages, progress included
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    stream_handler.setLevel(console_level)
    logger.addHandler(stream_handler)

    return logger


def _get_logger() -> logging.Logger:
    """Get or initialize the gitritual logger.

    By default, logs to ~/.gitritual/logs/gitritual_<session>.log and echoes
    INFO and above to stderr.

    Configuration via environment variables:
    - GITRITUAL_LOG_DIR: Directory for log files (default: ~/.gitritual/logs/)
    - GITRITUAL_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - GITRITUAL_LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
    - GITRITUAL_LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    - GITRITUAL_LOG_DISABLE_FILE: Set to 1 to disable file logging (stderr only)
    """
    global _logger_initialized
    logger = logging.getLogger(LOGGER_NAME)

    if not _logger_initialized:
        _logger_initialized = True
        _build_logger(
            level=_get_log_level(),
            console_level=_level_from_name(DEFAULT_CONSOLE_LEVEL, logging.INFO),
        )

    return logger


def configure_logging(
    *,
    level: Optional[str] = None,
    console_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    disable_file: Optional[bool] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
) -> logging.Logger:
    """(Re)build the gitritual logger from resolved configuration values.

    Values left as None fall back to the environment variables and defaults
    used by the lazy initialisation in ``_get_logger``.
    """
    global _logger_initialized
    _logger_initialized = True
    return _build_logger(
        level=_level_from_name(level, _get_log_level()),
        console_level=_level_from_name(console_level or DEFAULT_CONSOLE_LEVEL, logging.INFO),
        log_dir=Path(log_dir) if log_dir else None,
        disable_file=disable_file,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )


def _with_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    return f"{message} " + json.dumps(fields, separators=(",", ":"), sort_keys=True, default=str)


def log_action(
    action: str,
    *,
    outcome: str = "ok",
    duration_ms: Optional[float] = None,
    step: Optional[str] = None,
    **fields: Any,
) -> None:
    """Emit a structured log line for an action.

    Fields are serialized to JSON for safety. Keep schema lightweight.
    Written at DEBUG so the console stays readable; the log file keeps it
    whenever the level is DEBUG.

    Args:
        action: Name of the action being logged
        outcome: Result status ("ok", "error", etc.)
        duration_ms: How long the action took in milliseconds
        step: Step name the action belongs to
        **fields: Additional fields to include
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now().isoformat(),
        "action": action,
        "outcome": outcome,
    }
    if duration_ms is not None:
        payload["duration_ms"] = round(duration_ms, 2)
    if step is not None:
        payload["step"] = step
    if fields:
        payload.update(fields)

    _get_logger().debug(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))


def log_debug(message: str, **fields: Any) -> None:
    """Log a debug message with optional structured fields.

    Only emitted when log level is DEBUG.
    """
    logger = _get_logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(_with_fields(message, fields))


def log_info(message: str, **fields: Any) -> None:
    """Log a progress message."""
    _get_logger().info(_with_fields(message, fields))


def log_success(message: str, **fields: Any) -> None:
    """Log a completed operation."""
    _get_logger().log(SUCCESS, _with_fields(message, fields))


def log_warning(message: str, **fields: Any) -> None:
    """Log a warning message with optional structured fields."""
    _get_logger().warning(_with_fields(message, fields))


def log_error(message: str, **fields: Any) -> None:
    """Log an error message with optional structured fields."""
    _get_logger().error(_with_fields(message, fields))


@contextmanager
def timeit(action: str, *, step: Optional[str] = None, **fields: Any):
    """Time a block and emit a structured log on exit.

    On exception, logs outcome="error" and re-raises.

    Yields:
        A dict that can be updated with extra fields for the final record
    """
    start = time.perf_counter()
    result_info: Dict[str, Any] = {}
    try:
        yield result_info
        duration_ms = (time.perf_counter() - start) * 1000.0
        log_action(action, outcome="ok", duration_ms=duration_ms, step=step, **{**fields, **result_info})
    except BaseException:
        duration_ms = (time.perf_counter() - start) * 1000.0
        log_action(action, outcome="error", duration_ms=duration_ms, step=step, **{**fields, **result_info})
        raise
