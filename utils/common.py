"""Common utilities for Logcat Relay.

This module centralises logging setup, trace identifier management and the
platform lookup for the adb executable used across the relay.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
import platform
import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Iterator, Optional


_TRACE_ID_DEFAULT = "-"
_TRACE_ID_VAR: ContextVar[str] = ContextVar("logcat_relay_trace_id", default=_TRACE_ID_DEFAULT)

_LOGGER_PREFIX = "logcat_relay"
_LOG_FILE_PREFIX = "logcat_relay_"

# Track whether log cleanup has already run for the current day.
_logs_cleaned_today = False

# Shared across every logger handed out by get_logger; the file handler is
# only created once configure_logging enables file output.
_file_handler: Optional[logging.Handler] = None
_console_handler: Optional[logging.Handler] = None


class TraceIdFilter(logging.Filter):
    """Augment log records with their active trace identifier."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id()
        return True


def generate_trace_id() -> str:
    """Return a new random trace identifier."""
    return uuid.uuid4().hex


def get_trace_id() -> str:
    """Return the current trace identifier ("-" when unset)."""
    return _TRACE_ID_VAR.get()


def set_trace_id(trace_id: Optional[str]) -> Token[str]:
    """Set the active trace identifier and return the context token."""
    value = trace_id or _TRACE_ID_DEFAULT
    return _TRACE_ID_VAR.set(value)


def reset_trace_id(token: Token[str]) -> None:
    """Reset the trace identifier to the previous context."""
    _TRACE_ID_VAR.reset(token)


@contextmanager
def trace_id_scope(trace_id: Optional[str]) -> Iterator[None]:
    """Context manager that temporarily sets the trace identifier."""
    token = set_trace_id(trace_id)
    try:
        yield
    finally:
        reset_trace_id(token)


def _resolve_logs_dir() -> Path:
    """Return the directory path where log files should be stored."""
    system = platform.system().lower()
    home_dir = Path.home()

    if system == "darwin":
        return home_dir / ".logcat_relay_logs"

    if system == "linux":
        xdg_data_home = os.environ.get("XDG_DATA_HOME")
        if xdg_data_home:
            return Path(xdg_data_home) / "logcat_relay" / "logs"
        return home_dir / ".local" / "share" / "logcat_relay" / "logs"

    return home_dir / ".logcat_relay_logs"


def _cleanup_old_logs(logs_dir: Path, bootstrap_logger: logging.Logger) -> int:
    """Remove log files that do not belong to today (runs at most once per day)."""
    global _logs_cleaned_today

    if _logs_cleaned_today:
        return 0

    try:
        today = dt.date.today().strftime("%Y%m%d")
        cleaned_count = 0
        offset = len(_LOG_FILE_PREFIX)

        for filename in os.listdir(logs_dir):
            if not (filename.startswith(_LOG_FILE_PREFIX) and filename.endswith(".log")):
                continue

            date_part = filename[offset:offset + 8]
            if len(date_part) != 8 or not date_part.isdigit():
                continue

            if date_part == today:
                continue

            old_log_path = logs_dir / filename
            try:
                old_log_path.unlink()
                cleaned_count += 1
            except OSError:
                bootstrap_logger.exception("Error removing stale log file", extra={"stale_log": str(old_log_path)})

        _logs_cleaned_today = True
        return cleaned_count
    except OSError:
        bootstrap_logger.exception(
            "Unexpected failure while cleaning logs directory", extra={"logs_dir": str(logs_dir)}
        )
        return 0


def _build_file_handler(bootstrap_logger: logging.Logger) -> Optional[logging.Handler]:
    """Create the per-run file handler, falling back to ./logs when needed."""
    logs_dir = _resolve_logs_dir()
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        logs_dir = Path.cwd() / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)

    cleaned_count = _cleanup_old_logs(logs_dir, bootstrap_logger)

    current_time = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = f"{_LOG_FILE_PREFIX}{current_time}.log"
    log_filepath = logs_dir / log_filename

    try:
        handler = logging.FileHandler(log_filepath, encoding="utf-8")
    except (OSError, PermissionError):
        fallback_dir = Path.cwd() / "logs"
        try:
            fallback_dir.mkdir(parents=True, exist_ok=True)
            log_filepath = fallback_dir / log_filename
            handler = logging.FileHandler(log_filepath, encoding="utf-8")
        except OSError:
            bootstrap_logger.warning("File logging disabled; no writable log directory")
            return None

    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(trace_id)s %(name)-24s %(levelname)-8s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(TraceIdFilter())

    if cleaned_count > 0:
        bootstrap_logger.info("Removed %s old log file(s)", cleaned_count)
    return handler


def _ensure_logger_filters(logger: logging.Logger) -> None:
    """Attach the TraceIdFilter to the logger if not already present."""
    if any(isinstance(item, TraceIdFilter) for item in logger.filters):
        return
    logger.addFilter(TraceIdFilter())


def _bootstrap_logger() -> logging.Logger:
    bootstrap_logger = logging.getLogger(f"{_LOGGER_PREFIX}.bootstrap")
    if not any(isinstance(handler, logging.NullHandler) for handler in bootstrap_logger.handlers):
        bootstrap_logger.addHandler(logging.NullHandler())
    return bootstrap_logger


def _root_logger() -> logging.Logger:
    """Return the package root logger, installing the console handler on first use."""
    global _console_handler

    root = logging.getLogger(_LOGGER_PREFIX)
    if root.handlers:
        return root

    _console_handler = logging.StreamHandler()
    _console_handler.setFormatter(logging.Formatter("%(levelname)s [%(trace_id)s] %(name)s: %(message)s"))
    _console_handler.addFilter(TraceIdFilter())
    root.addHandler(_console_handler)

    root.setLevel(logging.INFO)
    root.propagate = False
    return root


def get_logger(name: str = _LOGGER_PREFIX) -> logging.Logger:
    """Return a configured logger augmented with trace identifiers.

    Loggers are children of the ``logcat_relay`` logger so one set of
    handlers serves the whole process. Obtaining a logger never touches the
    log directory.
    """
    root = _root_logger()
    if name == _LOGGER_PREFIX:
        return root

    logger = logging.getLogger(f"{_LOGGER_PREFIX}.{name}")
    _ensure_logger_filters(logger)
    return logger


def configure_logging(level: str = "INFO", log_to_file: bool = True) -> None:
    """Apply logging settings to the shared relay handlers.

    The per-run log file is created (and stale files cleaned) only when
    ``log_to_file`` is enabled.
    """
    global _file_handler

    root = _root_logger()
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        root.warning("Unknown log level %r, keeping %s", level, logging.getLevelName(root.level))
        numeric_level = root.level
    root.setLevel(numeric_level)

    if log_to_file:
        if _file_handler is None:
            _file_handler = _build_file_handler(_bootstrap_logger())
            if _file_handler is not None:
                root.addHandler(_file_handler)
    elif _file_handler is not None:
        root.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None


def default_adb_executable() -> str:
    """Return the adb executable name for the current platform."""
    return "adb.exe" if platform.system().lower() == "windows" else "adb"


__all__ = [
    "TraceIdFilter",
    "configure_logging",
    "default_adb_executable",
    "generate_trace_id",
    "get_logger",
    "get_trace_id",
    "reset_trace_id",
    "set_trace_id",
    "trace_id_scope",
]
